from pizzeria.security import decode_token

SIGNUP = {"name": "Carol", "email": "Carol@Example.com", "address": "3 Hill Rd", "password": "s3cret"}


async def test_signup_and_login(client, user_repo):
    resp = await client.post("/api/auth/signup", json=SIGNUP)
    assert resp.status_code == 201
    assert resp.json() == {"message": "Signup successful", "role": "user"}

    stored = await user_repo.find_by_email("carol@example.com")
    assert stored is not None
    assert stored.password != "s3cret"

    resp = await client.post("/api/auth/login", json={"email": "carol@example.com", "password": "s3cret"})
    assert resp.status_code == 200
    body = resp.json()
    assert decode_token(body["token"]) == stored.id
    assert body["user"] == {
        "id": stored.id,
        "name": "Carol",
        "email": "carol@example.com",
        "address": "3 Hill Rd",
        "role": "user",
    }


async def test_signup_admin_role(client):
    resp = await client.post("/api/auth/signup", json={**SIGNUP, "role": "admin"})
    assert resp.status_code == 201
    assert resp.json()["role"] == "admin"


async def test_signup_duplicate_email(client):
    assert (await client.post("/api/auth/signup", json=SIGNUP)).status_code == 201
    resp = await client.post("/api/auth/signup", json={**SIGNUP, "email": "carol@example.com"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already in use."


async def test_signup_rejects_unknown_role(client):
    resp = await client.post("/api/auth/signup", json={**SIGNUP, "role": "owner"})
    assert resp.status_code == 400


async def test_login_bad_credentials(client):
    await client.post("/api/auth/signup", json=SIGNUP)
    for creds in (
        {"email": "carol@example.com", "password": "nope"},
        {"email": "nobody@example.com", "password": "s3cret"},
    ):
        resp = await client.post("/api/auth/login", json=creds)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid credentials"
