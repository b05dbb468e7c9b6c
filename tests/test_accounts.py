import pytest
from jose import jwt

from hacktowin.auth import hash_password, verify_password
from hacktowin.models import User

PARTICIPANT = {
    "name": "Asha Rao",
    "email": "Asha@Example.com",
    "password": "correct horse battery staple",
    "role": "participant",
}


@pytest.fixture
def registered(client):
    response = client.post("/api/auth/register", json=PARTICIPANT)
    assert response.status_code == 201
    return PARTICIPANT


def _login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_creates_user_with_hashed_password(client, database):
    response = client.post("/api/auth/register", json=PARTICIPANT)

    assert response.status_code == 201
    assert response.json() == {"msg": "Account created successfully! Please log in."}

    with database.session() as db:
        user = db.query(User).filter_by(email="asha@example.com").first()
    assert user is not None
    assert user.role == "participant"
    assert user.password_hash != PARTICIPANT["password"]
    assert verify_password(PARTICIPANT["password"], user.password_hash)
    assert user.registered_at is not None


@pytest.mark.parametrize("missing", ["name", "email", "password", "role"])
def test_register_requires_all_fields(client, missing):
    body = {k: v for k, v in PARTICIPANT.items() if k != missing}

    response = client.post("/api/auth/register", json=body)

    assert response.status_code == 400
    assert response.json() == {"msg": "Please enter all fields."}


def test_register_rejects_unknown_role(client):
    response = client.post("/api/auth/register", json={**PARTICIPANT, "role": "admin"})

    assert response.status_code == 400
    assert "error" not in response.json()
    assert response.json()["msg"].startswith("Role must be one of")


def test_register_rejects_overlong_password(client):
    response = client.post("/api/auth/register", json={**PARTICIPANT, "password": "x" * 73})

    assert response.status_code == 400


def test_register_duplicate_email_is_case_insensitive(client, registered):
    response = client.post(
        "/api/auth/register", json={**PARTICIPANT, "email": "ASHA@example.COM"}
    )

    assert response.status_code == 400
    assert response.json() == {"msg": "User with this email already exists."}


def test_login_returns_signed_token(client, registered):
    response = _login(client, "asha@example.com", PARTICIPANT["password"])

    assert response.status_code == 200
    body = response.json()
    assert body["msg"] == "Logged in successfully!"

    claims = jwt.decode(body["token"], "test-jwt-secret", algorithms=["HS256"])
    assert claims["user"]["name"] == "Asha Rao"
    assert claims["user"]["role"] == "participant"
    assert isinstance(claims["user"]["id"], int)
    assert claims["exp"] - claims["iat"] == 3600


@pytest.mark.parametrize("email,password", [
    ("asha@example.com", "wrong password"),
    ("nobody@example.com", "correct horse battery staple"),
])
def test_login_invalid_credentials(client, registered, email, password):
    response = _login(client, email, password)

    assert response.status_code == 400
    assert response.json() == {"msg": "Invalid credentials."}


def test_login_requires_fields(client):
    response = client.post("/api/auth/login", json={"email": "asha@example.com"})

    assert response.status_code == 400
    assert response.json() == {"msg": "Please enter all fields."}


def test_me_with_valid_token(client, registered):
    token = _login(client, PARTICIPANT["email"], PARTICIPANT["password"]).json()["token"]

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Asha Rao"


@pytest.mark.parametrize("header", [
    None,
    "Bearer not-a-jwt",
    "Basic dXNlcjpwYXNz",
    "Bearer",
])
def test_me_rejects_bad_tokens(client, header):
    headers = {"Authorization": header} if header else {}

    response = client.get("/api/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or missing token"


def test_me_rejects_token_signed_with_other_secret(client):
    forged = jwt.encode({"user": {"id": 1}}, "another-secret", algorithm="HS256")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401


def test_token_signing_failure_is_token_error(client, registered, mocker):
    from jose import JWTError

    mocker.patch("hacktowin.auth.jwt.encode", side_effect=JWTError("bad key"))

    response = _login(client, PARTICIPANT["email"], PARTICIPANT["password"])

    assert response.status_code == 500
    assert response.json() == {"msg": "Could not issue access token."}


def test_verify_password_with_garbage_hash():
    assert verify_password("secret", "not-a-bcrypt-hash") is False
    assert verify_password("secret", hash_password("secret")) is True
