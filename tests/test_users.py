from unittest.mock import patch

import pytest
from pymongo.errors import DuplicateKeyError


class TestSignup:
    def test_signup_creates_user(self, signup):
        res = signup(name="A", email="a@x.com", password="p")
        assert res.status_code == 201
        body = res.json()
        assert body["id"]
        assert body["name"] == "A"
        assert body["email"] == "a@x.com"
        assert "password" not in body
        assert "password_hash" not in body

    def test_second_signup_rejected(self, signup):
        assert signup(name="A", email="a@x.com", password="p").status_code == 201
        res = signup(name="A", email="a@x.com", password="p")
        assert res.status_code == 400
        assert res.text == "User already exists"

    def test_existing_email_rejected_regardless_of_payload(self, signup):
        signup(email="a@x.com")
        res = signup(name="Someone Else", email="A@X.com", password="different")
        assert res.status_code == 400
        assert res.text == "User already exists"

    @pytest.mark.parametrize("payload", [
        {"email": "a@x.com"},
        {"email": "a@x.com", "name": "A"},
        {"email": "a@x.com", "password": "p"},
    ])
    def test_existing_email_rejected_with_partial_payload(self, client, signup, payload):
        signup(email="a@x.com")
        res = client.post("/signup", json=payload)
        assert res.status_code == 400
        assert res.text == "User already exists"

    @pytest.mark.parametrize("payload", [
        {},
        {"email": "new@x.com"},
        {"email": "new@x.com", "name": "N"},
        {"name": "N", "password": "p"},
    ])
    def test_missing_fields(self, client, database, payload):
        res = client.post("/signup", json=payload)
        assert res.status_code == 400
        assert res.json() == {"message": "Missing name, email or password"}
        assert database.get_documents("user") == []

    def test_password_is_stored_hashed(self, signup, database):
        signup(email="a@x.com", password="plain-secret")
        stored = database.find_document("user", {"email": "a@x.com"})
        assert "password" not in stored
        assert stored["password_hash"] != "plain-secret"
        assert stored["password_hash"].startswith("$2")

    def test_concurrent_duplicate_caught_by_unique_index(self, signup, database):
        with patch.object(database, "find_document", return_value=None), \
                patch.object(database, "create_document", side_effect=DuplicateKeyError("dup email")):
            res = signup(email="a@x.com")
        assert res.status_code == 400
        assert res.text == "User already exists"

    def test_invalid_email_is_rejected(self, signup):
        assert signup(email="not-an-email").status_code == 422


class TestLogin:
    def test_login_returns_reduced_projection(self, client, signup):
        user_id = signup(name="Asha", email="asha@shop.io", password="pw").json()["id"]
        res = client.post("/login", json={"email": "asha@shop.io", "password": "pw"})
        assert res.status_code == 200
        assert res.json() == {
            "message": "User logged in",
            "user": {"id": user_id, "name": "Asha", "email": "asha@shop.io"},
        }

    def test_repeated_logins_are_identical(self, client, signup):
        signup(email="asha@shop.io", password="pw")
        first = client.post("/login", json={"email": "asha@shop.io", "password": "pw"}).json()
        second = client.post("/login", json={"email": "asha@shop.io", "password": "pw"}).json()
        assert first == second

    def test_unknown_email(self, client):
        res = client.post("/login", json={"email": "ghost@shop.io", "password": "pw"})
        assert res.status_code == 404
        assert res.text == "User not found"

    def test_wrong_password(self, client, signup):
        signup(email="asha@shop.io", password="pw")
        res = client.post("/login", json={"email": "asha@shop.io", "password": "nope"})
        assert res.status_code == 400
        assert res.text == "Incorrect password"


class TestProfile:
    def test_fetch_profile(self, client, signup):
        signup(name="Asha", email="asha@shop.io")
        res = client.get("/profile/asha@shop.io")
        assert res.status_code == 200
        body = res.json()
        assert body["name"] == "Asha"
        assert "password_hash" not in body

    def test_fetch_missing_profile(self, client):
        res = client.get("/profile/ghost@shop.io")
        assert res.status_code == 404
        assert res.text == "User not found"

    def test_update_profile(self, client, signup):
        signup(name="Asha", email="asha@shop.io")
        res = client.put(
            "/profile/update",
            json={"name": "Asha K", "email": "asha@shop.io", "address": "12 Market St"},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["name"] == "Asha K"
        assert body["address"] == "12 Market St"
        assert client.get("/profile/asha@shop.io").json()["address"] == "12 Market St"

    def test_update_keeps_fields_not_sent(self, client, signup):
        signup(name="Asha", email="asha@shop.io")
        res = client.put("/profile/update", json={"email": "asha@shop.io", "address": "Flat 2"})
        assert res.json()["name"] == "Asha"

    def test_update_missing_profile(self, client):
        res = client.put("/profile/update", json={"name": "X", "email": "ghost@shop.io", "address": "-"})
        assert res.status_code == 404
        assert res.text == "User not found"
