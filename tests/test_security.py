import datetime

import jwt
import pytest
from bson import ObjectId

import context
import dal.entities as entities
from dal.privileges import ROLE_ADMIN
from services.errors import AppError, APPERR_CANT_VERIFY_TOKEN, APPERR_NO_TOKEN, APPERR_SESSION_EXPIRED, \
    APPERR_UNKNOWN_ROLE, APPERR_ROLE_NOPRIVILEGES
from services.security import AccessGate, RoleRepository, DEV_ADMIN_USERNAME, SOURCE_MOBILE, TOKEN_HEADER


def app_code(resp):
    return resp.get_json()["error"].get("appCode")


def test_level_ranges(client, staff):
    _, headers = staff
    assert client.get("/test/has/canvasser", headers=headers).status_code == 200
    assert client.get("/test/has/staff", headers=headers).status_code == 200
    assert client.get("/test/is/staff", headers=headers).status_code == 200
    assert client.get("/test/has/public", headers=headers).status_code == 200

    resp = client.get("/test/has/grouplead", headers=headers)
    assert resp.status_code == 403
    assert app_code(resp) == APPERR_ROLE_NOPRIVILEGES
    assert resp.get_json()["error"]["status"] == 403
    assert client.get("/test/is/canvasser", headers=headers).status_code == 403
    assert client.get("/test/is/admin", headers=headers).status_code == 403


def test_admin_passes_has_gates(client, admin):
    _, headers = admin
    for name in ["admin", "manager", "grouplead", "staff", "canvasser", "public"]:
        assert client.get("/test/has/" + name, headers=headers).status_code == 200
    assert client.get("/test/is/manager", headers=headers).status_code == 403


def test_public_role(client, nobody):
    _, headers = nobody
    assert client.get("/test/is/public", headers=headers).status_code == 200
    assert client.get("/test/has/public", headers=headers).status_code == 200
    assert client.get("/test/has/canvasser", headers=headers).status_code == 403


def test_self_or_admin(client, nobody, admin):
    me, headers = nobody
    other, admin_headers = admin

    resp = client.get("/db/users/%s" % me["_id"], headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["username"] == "nobody"

    resp = client.get("/db/users/%s" % other["_id"], headers=headers)
    assert resp.status_code == 403
    assert app_code(resp) == APPERR_ROLE_NOPRIVILEGES

    assert client.get("/db/users/%s" % me["_id"], headers=admin_headers).status_code == 200


def test_no_token(client, db):
    resp = client.get("/test/has/public")
    assert resp.status_code == 403
    assert app_code(resp) == APPERR_NO_TOKEN
    assert resp.get_json()["message"] == "Not logged in. Please login to continue."


def test_bad_token(client, db):
    resp = client.get("/test/has/public", headers={TOKEN_HEADER: "not.a.token"})
    assert resp.status_code == 401
    assert app_code(resp) == APPERR_CANT_VERIFY_TOKEN

    forged = jwt.encode({"username": "x", "role": "y"}, "some other key", algorithm="HS256")
    resp = client.get("/test/has/public", headers={TOKEN_HEADER: forged})
    assert app_code(resp) == APPERR_CANT_VERIFY_TOKEN


def test_expired_token(client, nobody):
    user, _ = nobody
    gate = AccessGate(RoleRepository(entities.roles), context.JWT_SECRET_KEY, token_life_web=-60)
    token = gate.get_token({"username": "nobody", "_id": str(user["_id"]), "role": str(user["role"])})["token"]
    resp = client.get("/test/has/public", headers={TOKEN_HEADER: token})
    assert resp.status_code == 403
    assert app_code(resp) == APPERR_SESSION_EXPIRED


def test_unknown_role(client, db):
    token = context.security.get_token({"username": "ghost", "_id": str(ObjectId()), "role": str(ObjectId())})["token"]
    resp = client.get("/test/has/public", headers={TOKEN_HEADER: token})
    assert resp.status_code == 403
    assert app_code(resp) == APPERR_UNKNOWN_ROLE


def test_token_sources(client, canvasser):
    _, headers = canvasser
    token = headers[TOKEN_HEADER]
    assert client.get("/test/has/canvasser", query_string={"token": token}).status_code == 200
    assert client.get("/test/has/canvasser", headers={"Authorization": "Bearer " + token}).status_code == 200
    assert client.post("/db/users/refresh", json={"token": token}).status_code == 200


def test_refresh(client, canvasser):
    user, headers = canvasser
    resp = client.post("/db/users/refresh", headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"]
    payload = jwt.decode(body["token"], context.JWT_SECRET_KEY, algorithms=["HS256"])
    assert payload["username"] == "canvasser"
    assert payload["_id"] == str(user["_id"])
    assert body["expires"].endswith("GMT")

    assert client.post("/db/users/refresh").status_code == 403


def test_token_lifetimes(db):
    payload = {"username": "x", "_id": "1", "role": "2", "exp": 0, "iat": 0}
    web = jwt.decode(context.security.get_token(payload)["token"], context.JWT_SECRET_KEY, algorithms=["HS256"])
    assert web["exp"] - web["iat"] == context.TOKEN_LIFE_WEB
    mobile = jwt.decode(context.security.get_token(payload, source=SOURCE_MOBILE)["token"], context.JWT_SECRET_KEY, algorithms=["HS256"])
    assert mobile["exp"] - mobile["iat"] == context.TOKEN_LIFE_MOBILE
    assert mobile["source"] == SOURCE_MOBILE


def test_expiry_string(db):
    expires = context.security.get_token({"username": "x"})["expires"]
    parsed = datetime.datetime.strptime(expires, "%a, %d %b %Y %H:%M:%S GMT")
    assert parsed > datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def test_disabled_authentication(client, db, monkeypatch):
    monkeypatch.setattr(context.security, "disable_auth", True)
    assert client.get("/test/is/admin").status_code == 200
    assert client.get("/db/users").status_code in (200, 204)

    with context.app.test_request_context("/"):
        principal = context.security.verify_credentials()
        assert principal["username"] == DEV_ADMIN_USERNAME
        assert context.security.get_role(principal)["level"] == ROLE_ADMIN


def test_verify_token_directly(db):
    with pytest.raises(AppError) as excinfo:
        context.security.verify_token(None)
    assert excinfo.value.app_code == APPERR_NO_TOKEN


def test_no_check_passes_everything(app):
    def helper():
        return "done"
    assert context.security.no_check(helper) is helper
    with app.test_request_context("/"):
        assert helper() == "done"
        assert context.security.get_current_user_id() is None


def test_notices_privilege(client, admin, canvasser):
    notice = {
        "title": "Canvass this weekend",
        "message": "Meet at the office at 10",
        "from_date": "2026-10-01T00:00:00Z",
        "to_date": "2026-10-31T00:00:00Z",
    }
    _, canvasser_headers = canvasser
    resp = client.post("/db/notice", json=notice, headers=canvasser_headers)
    assert resp.status_code == 403
    assert app_code(resp) == APPERR_ROLE_NOPRIVILEGES

    _, admin_headers = admin
    resp = client.post("/db/notice", json=notice, headers=admin_headers)
    assert resp.status_code == 201
    created = resp.get_json()
    assert created["title"] == "Canvass this weekend"

    resp = client.get("/db/notice")
    assert resp.status_code == 200
    assert [n["_id"] for n in resp.get_json()] == [created["_id"]]


def test_env_flags_need_an_explicit_true_value(monkeypatch):
    for value in ["0", "false", "False", "no", "off", ""]:
        monkeypatch.setenv("DISABLE_AUTH", value)
        assert not context.env_flag("DISABLE_AUTH")
    for value in ["1", "true", "TRUE", " yes ", "on"]:
        monkeypatch.setenv("DISABLE_AUTH", value)
        assert context.env_flag("DISABLE_AUTH")
    monkeypatch.delenv("DISABLE_AUTH", raising=False)
    assert not context.env_flag("DISABLE_AUTH")
