from conftest import TEST_PASSWORD
from sqlalchemy import update
from sqlmodel import Session

from lostfound.models.schema import BoxCommand, LockStatus, Role, User

REGISTRATION = {
    "name": "Ada Finder",
    "email": "Ada@Example.com",
    "password": "s3cret-pass",
    "phone": "+15551234567",
    "role": "finder",
}


def deactivate(engine, user_id):
    with Session(engine) as session:
        session.exec(update(User).where(User.user_id == user_id).values(is_active=False))
        session.commit()


class TestRegister:
    def test_register(self, client, codec):
        response = client.post("/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Registration successful"
        user = body["data"]["user"]
        assert user["display_name"] == "Ada Finder"
        assert user["email"] == "ada@example.com"
        assert user["role"] == "finder"
        assert user["active"] is True
        assert "password_hash" not in user

        claims = codec.verify(body["data"]["token"])
        assert claims["subject_id"] == user["subject_id"]
        assert claims["role"] == "finder"

    def test_duplicate_email(self, client):
        client.post("/auth/register", json=REGISTRATION)
        response = client.post(
            "/auth/register", json={**REGISTRATION, "email": "ada@example.com"}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered."

    def test_field_errors(self, client):
        response = client.post(
            "/auth/register",
            json={**REGISTRATION, "email": "not-an-email", "password": "123"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert set(body["details"]["validation_errors"]) == {"email", "password"}

    def test_default_role(self, client):
        payload = {k: v for k, v in REGISTRATION.items() if k != "role"}
        response = client.post("/auth/register", json=payload)

        assert response.json()["data"]["user"]["role"] == "both"


class TestLogin:
    def test_login(self, client, make_user, codec):
        user, _ = make_user()

        response = client.post(
            "/auth/login",
            json={"email": "FOUNDER@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["subject_id"] == user.user_id
        assert codec.verify(data["token"])["subject_id"] == user.user_id

    def test_rejections_look_alike(self, client, make_user, engine):
        user, _ = make_user()
        wrong_password = client.post(
            "/auth/login", json={"email": "founder@example.com", "password": "nope"}
        )
        unknown_email = client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD}
        )
        deactivate(engine, user.user_id)
        inactive = client.post(
            "/auth/login", json={"email": "founder@example.com", "password": TEST_PASSWORD}
        )

        for response in (wrong_password, unknown_email, inactive):
            assert response.status_code == 401
            assert response.json()["error"] == "Invalid email or password."

    def test_unknown_email_still_checks_a_hash(self, client, hasher, monkeypatch):
        checks = []
        dummy_verify = hasher.dummy_verify

        def counting_dummy_verify():
            checks.append(True)
            return dummy_verify()

        monkeypatch.setattr(hasher, "dummy_verify", counting_dummy_verify)

        response = client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD}
        )

        assert response.status_code == 401
        assert checks == [True]

    def test_records_last_login(self, client, make_user, engine):
        user, _ = make_user()
        client.post(
            "/auth/login", json={"email": "founder@example.com", "password": TEST_PASSWORD}
        )

        with Session(engine) as session:
            assert session.get(User, user.user_id).last_login is not None


class TestProfile:
    def test_bearer(self, client, make_user):
        user, token = make_user()

        response = client.get("/auth/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["data"]["subject_id"] == user.user_id

    def test_alternate_header(self, client, make_user):
        _, token = make_user()
        response = client.get("/auth/profile", headers={"X-Auth-Token": token})
        assert response.status_code == 200

    def test_query_token(self, client, make_user):
        _, token = make_user()
        response = client.get("/auth/profile", params={"token": token})
        assert response.status_code == 200

    def test_missing_token(self, client):
        response = client.get("/auth/profile")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"] == "No authentication token provided."

    def test_tampered_token(self, client, make_user):
        _, token = make_user()
        header, payload, signature = token.split(".")
        forged = f"{header}.{payload}.{signature[::-1]}"

        response = client.get("/auth/profile", headers={"Authorization": f"Bearer {forged}"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token."

    def test_expired_token(self, client, make_user, clock):
        _, token = make_user()
        clock.advance(30 * 24 * 3600)

        response = client.get("/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_deactivated_user(self, client, make_user, engine):
        user, token = make_user()
        deactivate(engine, user.user_id)

        response = client.get("/auth/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token."


class TestBoxesApi:
    def test_anonymous_listing_hides_command_state(self, client, make_box, queue):
        make_box("BOX_A1")
        queue.issue_command("BOX_A1", BoxCommand.UNLOCK, "user-1")

        response = client.get("/boxes")

        assert response.status_code == 200
        (box,) = response.json()["data"]
        assert box["box_id"] == "BOX_A1"
        assert box["status"] == "available"
        assert "pending_command" not in box
        assert "last_ping" not in box

    def test_authenticated_listing(self, client, make_box, make_user, queue):
        make_box("BOX_A1")
        make_box("BOX_B1")
        queue.issue_command("BOX_A1", BoxCommand.UNLOCK, "user-1")
        _, token = make_user()

        response = client.get("/boxes", headers={"Authorization": f"Bearer {token}"})

        boxes = response.json()["data"]
        assert [b["pending_command"] for b in boxes] == ["unlock", None]

    def test_listing_with_bad_token(self, client, make_box):
        make_box("BOX_A1")
        response = client.get("/boxes", headers={"Authorization": "Bearer junk"})

        assert response.status_code == 200
        assert "pending_command" not in response.json()["data"][0]

    def test_status_filter(self, client, make_box, queue):
        make_box("BOX_A1")
        make_box("BOX_B1")
        queue.set_lock_status("BOX_B1", LockStatus.OCCUPIED)

        response = client.get("/boxes", params={"status": "occupied"})
        assert [b["box_id"] for b in response.json()["data"]] == ["BOX_B1"]

    def test_box_details_need_login(self, client, make_box, make_user):
        make_box("BOX_A1")
        assert client.get("/boxes/BOX_A1").status_code == 401

        _, token = make_user()
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get("/boxes/BOX_A1", headers=headers).status_code == 200
        assert client.get("/boxes/BOX_Z9", headers=headers).status_code == 404
        assert client.get("/boxes/desk", headers=headers).status_code == 400

    def test_unlock_needs_login(self, client, make_box):
        make_box("BOX_A1")
        response = client.post("/boxes/unlock", json={"box_id": "BOX_A1"})
        assert response.status_code == 401

    def test_unlock_unknown_box(self, client, make_user):
        _, token = make_user()
        response = client.post(
            "/boxes/unlock",
            json={"box_id": "BOX_Z9"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Box not found."

    def test_lock_restricted_to_founders(self, client, make_box, make_user, queue):
        make_box("BOX_A1")
        _, finder_token = make_user(email="finder@example.com", role=Role.FINDER)
        _, both_token = make_user(email="both@example.com", role=Role.BOTH)

        denied = client.post(
            "/boxes/lock",
            json={"box_id": "BOX_A1"},
            headers={"Authorization": f"Bearer {finder_token}"},
        )
        assert denied.status_code == 403
        assert queue.fetch_command("BOX_A1") is None

        allowed = client.post(
            "/boxes/lock",
            json={"box_id": "BOX_A1"},
            headers={"Authorization": f"Bearer {both_token}"},
        )
        assert allowed.status_code == 200
        assert allowed.json()["message"] == "Lock command sent to box"
        assert queue.fetch_command("BOX_A1").command == BoxCommand.LOCK


def test_index(client):
    body = client.get("/").json()
    assert body["success"] is True
    assert body["data"]["endpoints"]["boxes"] == "/boxes/*"
