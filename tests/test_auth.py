"""Registration, login, password reset, profile, avatar and deactivation."""
from datetime import timedelta

import auth.router
from core.storage import AVATAR_MAX_BYTES
from core.timeutil import utcnow
from models.user import Role, User

from conftest import API, PASSWORD, bearer, make_user

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _reload(db, user_id):
    db.expire_all()
    return db.get(User, user_id)


# ---------------------------------------------------------------------------
# register / login / me
# ---------------------------------------------------------------------------


def test_register_creates_user_and_returns_token(client, db):
    resp = client.post(
        f"{API}/auth/register",
        json={"email": " Ann@Example.com ", "password": "secret123", "name": "Ann"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "success"
    assert body["token"]
    user = body["data"]["user"]
    assert user["email"] == "ann@example.com"
    assert user["role"] == "user"
    assert "passwordHash" not in user and "password" not in user

    stored = db.query(User).filter(User.email == "ann@example.com").one()
    assert stored.password_hash != "secret123"


def test_register_duplicate_email(client, member):
    resp = client.post(
        f"{API}/auth/register",
        json={"email": member.email, "password": "secret123", "name": "Twin"},
    )

    assert resp.status_code == 400
    assert resp.json()["status"] == "error"


def test_register_short_password(client):
    resp = client.post(
        f"{API}/auth/register",
        json={"email": "short@example.com", "password": "12345", "name": "Short"},
    )

    assert resp.status_code == 400
    assert resp.json()["status"] == "error"


def test_login_success(client, member):
    resp = client.post(f"{API}/auth/login", json={"email": member.email, "password": PASSWORD})

    assert resp.status_code == 200
    token = resp.json()["token"]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["user"]["id"] == member.id


def test_login_failures_share_one_message(client, member):
    wrong_password = client.post(
        f"{API}/auth/login", json={"email": member.email, "password": "not-it"}
    )
    unknown_email = client.post(
        f"{API}/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"]
    assert wrong_password.json().get("token") is None


def test_me_requires_token(client):
    resp = client.get(f"{API}/auth/me")

    assert resp.status_code == 401
    assert resp.json() == {"status": "error", "message": "Not authenticated"}


def test_me_rejects_garbage_token(client):
    resp = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401


def test_token_of_deleted_user_is_rejected(client, db, member):
    headers = bearer(member)
    db.delete(member)
    db.commit()

    assert client.get(f"{API}/auth/me", headers=headers).status_code == 401


# ---------------------------------------------------------------------------
# forgot / reset password
# ---------------------------------------------------------------------------


def _request_reset(client, mailer, email):
    resp = client.post(f"{API}/auth/forgot-password", json={"email": email})
    assert resp.status_code == 200
    return mailer.sent[-1]["reset_url"].rsplit("/", 1)[1]


def test_reset_round_trip_then_replay(client, db, mailer, member):
    token = _request_reset(client, mailer, member.email)
    assert mailer.sent[-1]["to"] == member.email

    stored = _reload(db, member.id)
    assert stored.password_reset_token and stored.password_reset_token != token

    resp = client.post(f"{API}/auth/reset-password/{token}", json={"password": "brandnew1"})
    assert resp.status_code == 200
    assert resp.json()["token"]

    login = client.post(f"{API}/auth/login", json={"email": member.email, "password": "brandnew1"})
    assert login.status_code == 200

    replay = client.post(f"{API}/auth/reset-password/{token}", json={"password": "another1"})
    assert replay.status_code == 400
    assert replay.json()["message"] == "Reset token is invalid"


def test_reset_token_expires_after_ten_minutes(client, mailer, member, monkeypatch):
    token = _request_reset(client, mailer, member.email)
    later = utcnow() + timedelta(minutes=11)
    monkeypatch.setattr(auth.router, "utcnow", lambda: later)

    resp = client.post(f"{API}/auth/reset-password/{token}", json={"password": "brandnew1"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Reset token has expired"


def test_forgot_password_unknown_email(client, mailer):
    resp = client.post(f"{API}/auth/forgot-password", json={"email": "ghost@example.com"})

    assert resp.status_code == 404
    assert mailer.sent == []


def test_mail_failure_clears_token(client, db, mailer, member):
    mailer.fail = True

    resp = client.post(f"{API}/auth/forgot-password", json={"email": member.email})

    assert resp.status_code == 500
    assert resp.json()["status"] == "error"
    stored = _reload(db, member.id)
    assert stored.password_reset_token is None
    assert stored.password_reset_expires is None


# ---------------------------------------------------------------------------
# profile / password
# ---------------------------------------------------------------------------


def test_update_profile(client, member, member_headers):
    resp = client.patch(
        f"{API}/auth/update-profile",
        json={"name": "Renamed", "email": "renamed@example.com"},
        headers=member_headers,
    )

    assert resp.status_code == 200
    user = resp.json()["data"]["user"]
    assert (user["name"], user["email"]) == ("Renamed", "renamed@example.com")


def test_update_profile_refuses_password(client, member_headers):
    resp = client.patch(
        f"{API}/auth/update-profile", json={"password": "sneaky1"}, headers=member_headers
    )
    assert resp.status_code == 400


def test_update_profile_email_taken(client, db, member_headers):
    make_user(db, "taken@example.com")

    resp = client.patch(
        f"{API}/auth/update-profile", json={"email": "taken@example.com"}, headers=member_headers
    )
    assert resp.status_code == 400


def test_update_password(client, member, member_headers):
    wrong = client.patch(
        f"{API}/auth/update-password",
        json={"currentPassword": "nope", "newPassword": "brandnew1"},
        headers=member_headers,
    )
    assert wrong.status_code == 401

    ok = client.patch(
        f"{API}/auth/update-password",
        json={"currentPassword": PASSWORD, "newPassword": "brandnew1"},
        headers=member_headers,
    )
    assert ok.status_code == 200
    assert ok.json()["token"]
    assert client.post(
        f"{API}/auth/login", json={"email": member.email, "password": "brandnew1"}
    ).status_code == 200


# ---------------------------------------------------------------------------
# avatar
# ---------------------------------------------------------------------------


def test_upload_avatar_replaces_previous(client, storage, member_headers):
    first = client.post(
        f"{API}/auth/upload-avatar",
        files={"avatar": ("me.png", PNG, "image/png")},
        headers=member_headers,
    )
    assert first.status_code == 200
    first_url = first.json()["data"]["user"]["avatar"]
    assert first_url.startswith(f"{storage.base_url}/avatars/")
    assert first_url.endswith(".png")
    assert len(storage.objects) == 1

    second = client.post(
        f"{API}/auth/upload-avatar",
        files={"avatar": ("me.jpg", b"\xff\xd8\xff" + b"\x00" * 32, "image/jpeg")},
        headers=member_headers,
    )
    assert second.status_code == 200
    assert second.json()["data"]["user"]["avatar"] != first_url
    assert len(storage.objects) == 1


def test_upload_avatar_rejects_non_image(client, storage, member_headers):
    resp = client.post(
        f"{API}/auth/upload-avatar",
        files={"avatar": ("notes.txt", b"hello", "text/plain")},
        headers=member_headers,
    )

    assert resp.status_code == 400
    assert storage.objects == {}


def test_upload_avatar_rejects_oversize(client, storage, member_headers):
    resp = client.post(
        f"{API}/auth/upload-avatar",
        files={"avatar": ("big.png", b"\x00" * (AVATAR_MAX_BYTES + 1), "image/png")},
        headers=member_headers,
    )

    assert resp.status_code == 400
    assert storage.objects == {}


# ---------------------------------------------------------------------------
# deactivate
# ---------------------------------------------------------------------------


def test_deactivate_requires_password(client, db, member, member_headers):
    resp = client.request(
        "DELETE", f"{API}/auth/deactivate", json={"password": "nope"}, headers=member_headers
    )

    assert resp.status_code == 401
    assert _reload(db, member.id) is not None


def test_deactivate_deletes_account(client, db, member, member_headers):
    resp = client.request(
        "DELETE", f"{API}/auth/deactivate", json={"password": PASSWORD}, headers=member_headers
    )

    assert resp.status_code == 200
    assert _reload(db, member.id) is None
    assert client.get(f"{API}/auth/me", headers=member_headers).status_code == 401


def test_last_admin_cannot_deactivate(client, db, admin, admin_headers):
    resp = client.request(
        "DELETE", f"{API}/auth/deactivate", json={"password": PASSWORD}, headers=admin_headers
    )

    assert resp.status_code == 400
    stored = _reload(db, admin.id)
    assert stored is not None and stored.role == Role.admin


def test_success_envelope_omits_unused_keys(client, member_headers):
    body = client.get(f"{API}/auth/me", headers=member_headers).json()

    assert set(body) == {"status", "data"}
    # Nested nulls stay
    assert "avatar" in body["data"]["user"] and body["data"]["user"]["avatar"] is None


def test_blank_name_is_rejected(client, db):
    resp = client.post(
        f"{API}/auth/register",
        json={"email": "blank@example.com", "password": "secret123", "name": "   "},
    )

    assert resp.status_code == 400
    assert db.query(User).filter(User.email == "blank@example.com").first() is None


def test_name_is_trimmed(client, member_headers):
    resp = client.patch(
        f"{API}/auth/update-profile", json={"name": "  Ann  "}, headers=member_headers
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["name"] == "Ann"


def test_update_profile_refuses_empty_password(client, member, member_headers):
    resp = client.patch(
        f"{API}/auth/update-profile", json={"password": ""}, headers=member_headers
    )

    assert resp.status_code == 400
    assert client.post(
        f"{API}/auth/login", json={"email": member.email, "password": PASSWORD}
    ).status_code == 200
