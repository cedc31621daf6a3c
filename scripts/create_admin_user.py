"""
Create (or promote) an admin account.

Usage:
    python scripts/create_admin_user.py --email admin@example.com --name "Site Admin" --password secret123
"""
import sys
import os
import argparse
import getpass

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()

from staffhub.auth.security import get_password_hash
from staffhub.db import Base, SessionLocal, engine
from staffhub.models.models import User


def create_admin(email: str, name: str, password: str) -> User:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user:
            print(f"[UPDATE] {email} exists, promoting to admin and resetting password")
        else:
            user = User(email=email, name=name)
            db.add(user)
            print(f"[CREATE] {email}")
        user.role = "admin"
        user.is_active = True
        user.password_hash = get_password_hash(password)
        db.commit()
        db.refresh(user)
        return user
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("[ERROR] Password must be at least 8 characters", file=sys.stderr)
        return 1
    user = create_admin(args.email, args.name, password)
    print(f"[OK] Admin {user.email} ({user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
