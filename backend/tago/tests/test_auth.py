"""
Tests for authentication endpoints.
"""


def test_signup(client):
    """Test user signup."""
    response = client.post(
        "/api/auth/signup",
        json={
            "email": "newbie@sungshin.ac.kr",
            "name": "새내기",
            "short_student_id": "25",
            "password": "testpassword123"
        }
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "newbie@sungshin.ac.kr"
    assert "hashed_password" not in body


def test_signup_duplicate_email(client):
    payload = {
        "email": "twice@sungshin.ac.kr",
        "name": "중복",
        "short_student_id": "24",
        "password": "testpassword123"
    }
    client.post("/api/auth/signup", json=payload)

    response = client.post("/api/auth/signup", json=payload)
    assert response.status_code == 400


def test_login(client):
    """Test user login."""
    # First signup
    client.post(
        "/api/auth/signup",
        json={
            "email": "rider@sungshin.ac.kr",
            "name": "동승",
            "short_student_id": "23",
            "password": "testpassword123"
        }
    )

    # Then login
    response = client.post(
        "/api/auth/login",
        json={
            "email": "rider@sungshin.ac.kr",
            "password": "testpassword123"
        }
    )
    assert response.status_code == 200
    assert "access_token" in response.json()

    token = response.json()["access_token"]
    me = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["name"] == "동승"


def test_login_invalid_credentials(client):
    """Test login with invalid credentials."""
    response = client.post(
        "/api/auth/login",
        json={
            "email": "nobody@sungshin.ac.kr",
            "password": "wrongpassword"
        }
    )
    assert response.status_code == 401


def test_protected_route_requires_token(client):
    assert client.get("/api/users/me").status_code == 401
    assert client.get("/api/users/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_get_user_by_id(client, make_user, auth_headers):
    viewer = make_user()
    other = make_user(name="총대", short_student_id="21")

    response = client.get(f"/api/users/{other.id}", headers=auth_headers(viewer))
    assert response.status_code == 200
    assert response.json()["name"] == "총대"
    assert response.json()["short_student_id"] == "21"

    missing = client.get("/api/users/9999", headers=auth_headers(viewer))
    assert missing.status_code == 404
