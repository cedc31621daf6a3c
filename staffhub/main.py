import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware, structlog
from .auth.router import router as auth_router
from .routes.tasks import router as tasks_router
from .routes.admin import router as admin_router
from .routes.review import router as review_router
from .services.review_tokens import purge_expired_review_tokens


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(StaleDataError)
    async def _stale_task(request, exc):
        logger.info("concurrent_update_rejected", path=request.url.path)
        return JSONResponse(status_code=409, content={"detail": "Task was modified concurrently, reload and retry"})

    # Routers
    app.include_router(auth_router)
    app.include_router(tasks_router)
    app.include_router(admin_router)
    app.include_router(review_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        if settings.auto_create_db:
            if engine.url.get_backend_name() == "sqlite" and engine.url.database:
                folder = os.path.dirname(engine.url.database)
                if folder:
                    os.makedirs(folder, exist_ok=True)
            Base.metadata.create_all(bind=engine)
            logger.info("database_ready", backend=engine.url.get_backend_name())
        db = SessionLocal()
        try:
            purge_expired_review_tokens(db)
        finally:
            db.close()

    return app


app = create_app()
