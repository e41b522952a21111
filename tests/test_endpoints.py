"""End-to-end tests for the HTTP API."""

import time

import pytest

PASSWORD = "password1"


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, username, password=PASSWORD):
    response = client.post("/register", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def user_id_of(client, tokens):
    return client.get("/me", headers=auth(tokens["access_token"])).json()["user_id"]


def upload(client, tokens, content=b"0123456789", filename="data.bin", is_public="false"):
    return client.post(
        "/file/upload",
        files={"file": (filename, content, "application/octet-stream")},
        data={"is_public": is_public},
        headers=auth(tokens["access_token"]),
    )


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers


class TestAuthEndpoints:

    def test_register_returns_token_pair(self, client):
        data = register(client, "alice")

        assert data["access_token"]
        assert data["refresh_token"]
        assert data["expires_in"] == 3600

    def test_duplicate_registration(self, client):
        register(client, "alice")
        response = client.post("/register", json={"username": "alice", "password": "another-pass"})

        assert response.status_code == 400
        assert response.json()["code"] == "USER_ALREADY_EXISTS"

    @pytest.mark.parametrize("payload", [
        {"username": "alice"},
        {"password": "password1"},
        {"username": "", "password": "password1"},
        {"username": "alice", "password": "short"},
    ])
    def test_register_validation(self, client, payload):
        response = client.post("/register", json=payload)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_login(self, client):
        register(client, "alice")
        response = client.post("/login", json={"username": "alice", "password": PASSWORD})

        assert response.status_code == 200
        assert set(response.json()) >= {"access_token", "refresh_token", "expires_in"}

    def test_login_failures_are_identical(self, client):
        register(client, "alice")
        wrong = client.post("/login", json={"username": "alice", "password": "not-the-password"})
        unknown = client.post("/login", json={"username": "bob", "password": PASSWORD})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_malformed_login(self, client):
        response = client.post("/login", json={"username": "alice"})
        assert response.status_code == 400

    def test_refresh_rotates_once(self, client):
        tokens = register(client, "alice")

        first = client.get("/token/refresh", headers=auth(tokens["refresh_token"]))
        replay = client.get("/token/refresh", headers=auth(tokens["refresh_token"]))

        assert first.status_code == 200
        assert first.json()["refresh_token"] != tokens["refresh_token"]
        assert replay.status_code == 401
        assert replay.json()["code"] == "INVALID_REFRESH_TOKEN"

        second = client.get("/token/refresh", headers=auth(first.json()["refresh_token"]))
        assert second.status_code == 200

    def test_refresh_without_header(self, client):
        assert client.get("/token/refresh").status_code == 401

    def test_access_token_is_not_a_refresh_token(self, client):
        tokens = register(client, "alice")
        response = client.get("/token/refresh", headers=auth(tokens["access_token"]))
        assert response.status_code == 401

    def test_logout_revokes_refresh(self, client):
        tokens = register(client, "alice")

        response = client.post("/logout", headers=auth(tokens["access_token"]))

        assert response.status_code == 204
        assert client.get("/token/refresh", headers=auth(tokens["refresh_token"])).status_code == 401


class TestAccessGate:

    def test_missing_token(self, client):
        response = client.get("/me")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.get("/me", headers=auth("garbage"))
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_expired_token(self, client, token_issuer):
        tokens = register(client, "alice")
        user_id = user_id_of(client, tokens)
        expired = token_issuer.issue_access_token(user_id, now=int(time.time()) - 3601)

        response = client.get("/me", headers=auth(expired))

        assert response.status_code == 401
        assert response.json()["code"] == "TOKEN_EXPIRED"

    def test_refresh_token_is_not_an_access_token(self, client):
        tokens = register(client, "alice")
        assert client.get("/me", headers=auth(tokens["refresh_token"])).status_code == 401


class TestAccountEndpoints:

    def test_me(self, client):
        tokens = register(client, "alice")
        response = client.get("/me", headers=auth(tokens["access_token"]))

        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert isinstance(response.json()["user_id"], int)

    def test_change_password(self, client):
        tokens = register(client, "alice")

        response = client.post(
            "/me/password",
            json={"old_password": PASSWORD, "new_password": "brand-new-pass"},
            headers=auth(tokens["access_token"]),
        )

        assert response.status_code == 204
        assert client.get("/token/refresh", headers=auth(tokens["refresh_token"])).status_code == 401
        assert client.post("/login", json={"username": "alice", "password": PASSWORD}).status_code == 401
        assert client.post("/login", json={"username": "alice", "password": "brand-new-pass"}).status_code == 200

    def test_change_password_wrong_old(self, client):
        tokens = register(client, "alice")
        response = client.post(
            "/me/password",
            json={"old_password": "nope-nope", "new_password": "brand-new-pass"},
            headers=auth(tokens["access_token"]),
        )
        assert response.status_code == 401

    def test_update_email(self, client):
        tokens = register(client, "alice")

        ok = client.put("/me/email", json={"email": "alice@example.com"}, headers=auth(tokens["access_token"]))
        bad = client.put("/me/email", json={"email": "not-an-email"}, headers=auth(tokens["access_token"]))

        assert ok.status_code == 200
        assert ok.json()["email"] == "alice@example.com"
        assert bad.status_code == 400

    def test_deactivate(self, client):
        tokens = register(client, "alice")

        response = client.delete("/me", headers=auth(tokens["access_token"]))

        assert response.status_code == 204
        login = client.post("/login", json={"username": "alice", "password": PASSWORD})
        assert login.status_code == 401
        assert login.json()["code"] == "INVALID_CREDENTIALS"
        assert client.get("/token/refresh", headers=auth(tokens["refresh_token"])).status_code == 401


class TestFileEndpoints:

    def test_end_to_end_share_scenario(self, client):
        register(client, "alice")
        alice = client.post("/login", json={"username": "alice", "password": PASSWORD}).json()
        bob = register(client, "bob")
        bob_id = user_id_of(client, bob)

        uploaded = upload(client, alice)
        assert uploaded.status_code == 200
        assert uploaded.json() == {"file_id": 1, "filename": "data.bin", "size": 10, "is_public": False}

        own = client.get("/file/1", headers=auth(alice["access_token"]))
        assert own.status_code == 200
        assert own.content == b"0123456789"
        assert own.headers["content-type"] == "application/octet-stream"
        assert own.headers["content-disposition"] == 'attachment; filename="data.bin"'

        assert client.get("/file/1", headers=auth(bob["access_token"])).status_code == 404

        shared = client.post("/file/1/share", json={"user_id": bob_id}, headers=auth(alice["access_token"]))
        assert shared.status_code == 200
        assert shared.json()["permission_id"] > 0
        assert shared.json()["file_id"] == 1
        assert shared.json()["user_id"] == bob_id

        bob_download = client.get("/file/1", headers=auth(bob["access_token"]))
        assert bob_download.status_code == 200
        assert bob_download.content == b"0123456789"

    def test_forbidden_and_missing_look_the_same(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        upload(client, alice)

        forbidden = client.get("/file/1", headers=auth(bob["access_token"]))
        missing = client.get("/file/999", headers=auth(bob["access_token"]))

        assert forbidden.status_code == missing.status_code == 404
        assert forbidden.json() == missing.json()

    def test_ids_beyond_integer_range_are_not_found(self, client):
        alice = register(client, "alice")
        upload(client, alice)
        headers = auth(alice["access_token"])
        huge = "99999999999999999999"

        missing = client.get("/file/999", headers=headers)
        responses = [
            client.get(f"/file/{huge}", headers=headers),
            client.get(f"/file/{huge}/meta", headers=headers),
            client.patch(f"/file/{huge}", json={"is_public": True}, headers=headers),
            client.get(f"/file/public/{huge}"),
            client.post("/file/1/share", json={"user_id": int(huge)}, headers=headers),
            client.delete(f"/file/1/share/{huge}", headers=headers),
            client.delete(f"/file/1/share/user/{huge}", headers=headers),
        ]

        for response in responses:
            assert response.status_code == 404, response.text
        assert responses[0].json() == missing.json()

    def test_download_requires_auth(self, client):
        alice = register(client, "alice")
        upload(client, alice)
        assert client.get("/file/1").status_code == 401

    def test_upload_requires_auth(self, client):
        response = client.post("/file/upload", files={"file": ("a.bin", b"abc")})
        assert response.status_code == 401

    def test_share_twice_then_revoke_and_share_again(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        bob_id = user_id_of(client, bob)
        upload(client, alice)
        headers = auth(alice["access_token"])

        first = client.post("/file/1/share", json={"user_id": bob_id}, headers=headers)
        second = client.post("/file/1/share", json={"user_id": bob_id}, headers=headers)
        assert first.status_code == 200
        assert second.status_code == 409

        revoked = client.delete(f"/file/1/share/{first.json()['permission_id']}", headers=headers)
        assert revoked.status_code == 204
        assert client.get("/file/1", headers=auth(bob["access_token"])).status_code == 404

        again = client.post("/file/1/share", json={"user_id": bob_id}, headers=headers)
        assert again.status_code == 200

        by_user = client.delete(f"/file/1/share/user/{bob_id}", headers=headers)
        assert by_user.status_code == 204
        assert client.delete(f"/file/1/share/user/{bob_id}", headers=headers).status_code == 404

    def test_share_errors(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        alice_id = user_id_of(client, alice)
        upload(client, alice)

        unknown_user = client.post("/file/1/share", json={"user_id": 999}, headers=auth(alice["access_token"]))
        not_owner = client.post("/file/1/share", json={"user_id": alice_id}, headers=auth(bob["access_token"]))
        bad_body = client.post("/file/1/share", json={"user_id": "x"}, headers=auth(alice["access_token"]))

        assert unknown_user.status_code == 404
        assert not_owner.status_code == 404
        assert bad_body.status_code == 400

    def test_public_download(self, client):
        alice = register(client, "alice")
        upload(client, alice, is_public="yes")

        public = client.get("/file/public/1")
        assert public.status_code == 200
        assert public.content == b"0123456789"

        patched = client.patch("/file/1", json={"is_public": False}, headers=auth(alice["access_token"]))
        assert patched.status_code == 200
        assert patched.json()["is_public"] is False
        assert client.get("/file/public/1").status_code == 404

    def test_private_file_not_public(self, client):
        alice = register(client, "alice")
        upload(client, alice)
        assert client.get("/file/public/1").status_code == 404
        assert client.get("/file/public/999").status_code == 404

    def test_list_and_metadata(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        bob_id = user_id_of(client, bob)
        upload(client, alice, filename="one.txt")
        upload(client, alice, filename="two.txt")
        client.post("/file/2/share", json={"user_id": bob_id}, headers=auth(alice["access_token"]))

        alice_files = client.get("/files", headers=auth(alice["access_token"])).json()["files"]
        bob_files = client.get("/files", headers=auth(bob["access_token"])).json()["files"]
        assert [f["filename"] for f in alice_files] == ["one.txt", "two.txt"]
        assert [f["filename"] for f in bob_files] == ["two.txt"]

        meta = client.get("/file/2/meta", headers=auth(alice["access_token"]))
        assert meta.status_code == 200
        assert [s["user_id"] for s in meta.json()["shares"]] == [bob_id]
        assert client.get("/file/2/meta", headers=auth(bob["access_token"])).status_code == 404

    def test_upload_too_large(self, client, storage, monkeypatch):
        monkeypatch.setattr("server.config.MAX_UPLOAD_BYTES", 16)
        alice = register(client, "alice")

        response = upload(client, alice, content=b"x" * 100)

        assert response.status_code == 413
        assert response.json()["code"] == "PAYLOAD_TOO_LARGE"
        assert list(storage.upload_dir.iterdir()) == []
        assert client.get("/files", headers=auth(alice["access_token"])).json()["files"] == []

    def test_upload_without_file_part(self, client):
        alice = register(client, "alice")
        response = client.post(
            "/file/upload",
            data={"is_public": "true"},
            files={"other": ("a.bin", b"abc")},
            headers=auth(alice["access_token"]),
        )
        assert response.status_code == 400

    def test_upload_not_multipart(self, client):
        alice = register(client, "alice")
        response = client.post("/file/upload", json={"file": "abc"}, headers=auth(alice["access_token"]))
        assert response.status_code == 400

    def test_storage_failure_hides_details(self, client, storage, monkeypatch):
        async def broken_commit(temp_path, file_id):
            raise OSError("/secret/path: disk full")

        monkeypatch.setattr(storage, "commit", broken_commit)
        alice = register(client, "alice")

        response = upload(client, alice)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "code": "INTERNAL_ERROR"}
        assert list(storage.upload_dir.iterdir()) == []
        assert client.get("/files", headers=auth(alice["access_token"])).json()["files"] == []

    def test_non_ascii_filename_header(self, client):
        alice = register(client, "alice")
        upload(client, alice, filename="résumé.pdf")

        response = client.get("/file/1", headers=auth(alice["access_token"]))

        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="r_sum_.pdf"')
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in disposition
