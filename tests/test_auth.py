from staffhub.auth.security import create_access_token, decode_token, verify_password, get_password_hash


def test_password_hashing():
    hashed = get_password_hash("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("password123", "not-a-hash")


def test_access_token_claims():
    claims = decode_token(create_access_token("abc", role="admin"))
    assert claims["sub"] == "abc"
    assert claims["role"] == "admin"
    assert claims["exp"] > claims["iat"]


def test_login_and_me(client, staff):
    r = client.post("/auth/login", json={"email": "Staff@Example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    assert r.json()["token_type"] == "bearer"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "staff@example.com"
    assert me.json()["role"] == "staff"
    assert me.json()["isActive"] is True


def test_login_bad_credentials(client, staff):
    assert client.post("/auth/login", json={"email": "staff@example.com", "password": "nope"}).status_code == 401
    assert client.post("/auth/login", json={"email": "ghost@example.com", "password": "password123"}).status_code == 401


def test_login_inactive_account(client, make_user):
    make_user("benched@example.com", is_active=False)
    r = client.post("/auth/login", json={"email": "benched@example.com", "password": "password123"})
    assert r.status_code == 403


def test_ordinary_token_rejected_once_deactivated(client, make_user, headers, db):
    user = make_user("leaver@example.com")
    h = headers(user)
    assert client.get("/auth/me", headers=h).status_code == 200
    user.is_active = False
    db.commit()
    assert client.get("/auth/me", headers=h).status_code == 401


def test_missing_and_garbage_tokens(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_admin_routes_need_admin(client, headers, staff, admin):
    assert client.get("/admin/staff", headers=headers(staff)).status_code == 403
    assert client.get("/admin/staff", headers=headers(admin)).status_code == 200
