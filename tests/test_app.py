# tests/test_app.py
import io
import jwt
import json
import pytest
from datetime import timedelta
from wsgiref.util import setup_testing_defaults

from src.app import create_app
from src.config import Settings
from src.context import AppContext
from src.database import models
from src.database.db_init import initialize_db
from src.utils.clock import utcnow

SECRET = "test-secret-that-is-at-least-32-bytes-long"
ORIGIN = "http://localhost:3000"
ADMIN_EMAIL, ADMIN_PASSWORD = "admin@example.com", "admin-password"

# ===================================================================
#  테스트용 WSGI 호출 유틸리티
# ===================================================================

class Response:
    def __init__(self, status, headers, body):
        self.status = status
        self.status_code = int(status.split()[0])
        self.headers = dict(headers)
        self.body = body

    def json(self):
        return json.loads(self.body)

def call(app, method, path, body=None, token=None):
    environ = {}
    setup_testing_defaults(environ)
    raw = json.dumps(body).encode("utf-8") if body is not None else b""
    environ.update({
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "CONTENT_LENGTH": str(len(raw)),
        "CONTENT_TYPE": "application/json",
        "wsgi.input": io.BytesIO(raw),
    })
    if token:
        environ["HTTP_AUTHORIZATION"] = f"Bearer {token}"

    captured = {}
    def start_response(status, headers):
        captured["status"], captured["headers"] = status, headers

    body_bytes = b"".join(app(environ, start_response))
    return Response(captured["status"], captured["headers"], body_bytes.decode("utf-8"))

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def context():
    settings = Settings(
        jwt_secret=SECRET,
        database_url="sqlite://",
        allowed_origin=ORIGIN,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )
    ctx = AppContext.create(settings)
    initialize_db(ctx)
    yield ctx
    ctx.close()

@pytest.fixture
def app(context):
    return create_app(context)

def register(app, email, role, password="secret123"):
    response = call(app, "POST", "/v1/users", {"email": email, "password": password, "role": role})
    assert response.status_code == 201, response.body
    return response.json()["user"]["uid"]

def login(app, email, password="secret123"):
    response = call(app, "POST", "/v1/auth/tokens", {"email": email, "password": password})
    assert response.status_code == 201, response.body
    return response.json()["token"]

@pytest.fixture
def admin_token(app):
    return login(app, ADMIN_EMAIL, ADMIN_PASSWORD)

@pytest.fixture
def target_uid(app, context):
    """claims {role: Executive, foo: bar}를 가진 대상 사용자 U1."""
    uid = register(app, "u1@example.com", "Executive")
    db = context.session_factory()
    try:
        account = db.get(models.AuthAccount, uid)
        account.custom_claims = {"role": "Executive", "foo": "bar"}
        db.commit()
    finally:
        db.close()
    return uid

def load_state(context, uid):
    db = context.session_factory()
    try:
        profile = db.get(models.Profile, uid)
        account = db.get(models.AuthAccount, uid)
        return profile.role, profile.last_modified, dict(account.custom_claims)
    finally:
        db.close()

# ===================================================================
#  HTTP 레벨 게이트 (CORS, 메서드, 인증)
# ===================================================================
class TestGates:
    def test_preflight_returns_empty_204(self, app):
        response = call(app, "OPTIONS", "/assignRole")

        assert response.status == "204 No Content"
        assert response.body == ""
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN

    def test_wrong_method_is_405(self, app, admin_token):
        response = call(app, "GET", "/assignRole", token=admin_token)

        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method not allowed"}

    def test_unknown_path_is_404(self, app):
        assert call(app, "GET", "/nowhere").status_code == 404

    def test_missing_token_is_401_and_writes_nothing(self, app, context, target_uid):
        before = load_state(context, target_uid)

        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Master"})

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert load_state(context, target_uid) == before

    def test_invalid_token_is_401(self, app, target_uid):
        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Master"}, token="garbage")

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired ID token"

    def test_cors_headers_on_regular_responses(self, app):
        response = call(app, "POST", "/assignRole", {})

        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
        assert response.headers["Content-Type"] == "application/json"

# ===================================================================
#  역할 부여 엔드포인트
# ===================================================================
class TestAssignRoleEndpoint:
    def test_admin_assigns_master_and_claims_are_merged(self, app, context, admin_token, target_uid):
        """claims {role: Executive, foo: bar}인 U1에게 Master를 부여하면 foo는 보존됩니다."""
        # === Act ===
        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Master"}, token=admin_token)

        # === Assert ===
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Role updated to Master"}
        role, last_modified, claims = load_state(context, target_uid)
        assert role == "Master"
        assert last_modified is not None
        assert claims == {"role": "Master", "foo": "bar"}

    def test_assignment_is_idempotent(self, app, context, admin_token, target_uid):
        call(app, "POST", "/assignRole", {"uid": target_uid, "role": "TeamAdmin"}, token=admin_token)
        role_once, _, claims_once = load_state(context, target_uid)

        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "TeamAdmin"}, token=admin_token)

        assert response.status_code == 200
        role_twice, _, claims_twice = load_state(context, target_uid)
        assert (role_twice, claims_twice) == (role_once, claims_once)

    def test_executive_gets_403_and_nothing_changes(self, app, context, target_uid):
        register(app, "exec@example.com", "Executive")
        token = login(app, "exec@example.com")
        before = load_state(context, target_uid)

        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Admin"}, token=token)

        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Only Admins can assign roles."}
        assert load_state(context, target_uid) == before

    @pytest.mark.parametrize("declared_role", ["Admin", "admin"])
    def test_self_declared_admin_cannot_assign_roles(self, app, context, target_uid, declared_role):
        """가입 때 Admin을 선언해도 거부되고, 같은 계정으로 역할을 바꿀 수 없습니다."""
        # === Arrange ===
        rejected = call(app, "POST", "/v1/users", {"email": "mallory@example.com", "password": "secret123", "role": declared_role})
        assert rejected.status_code == 400
        register(app, "mallory@example.com", "Executive")
        token = login(app, "mallory@example.com")
        before = load_state(context, target_uid)

        # === Act ===
        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "TeamAdmin"}, token=token)

        # === Assert ===
        assert response.status_code == 403
        assert load_state(context, target_uid) == before
        assert call(app, "GET", "/v1/users", token=token).status_code == 403

    @pytest.mark.parametrize("body", [
        {"uid": "x", "role": "Boss"},
        {"uid": "x"},
        {"role": "Master"},
        {"uid": "  ", "role": "Master"},
    ])
    def test_validation_errors_are_400(self, app, context, admin_token, target_uid, body):
        before = load_state(context, target_uid)

        response = call(app, "POST", "/assignRole", body, token=admin_token)

        assert response.status_code == 400
        assert load_state(context, target_uid) == before

    def test_unknown_target_is_400(self, app, admin_token):
        response = call(app, "POST", "/assignRole", {"uid": "nobody", "role": "Master"}, token=admin_token)

        assert response.status_code == 400
        assert "not found" in response.json()["error"]

    def test_disabled_target_is_400(self, app, context, admin_token, target_uid):
        disable = call(app, "PUT", f"/v1/users/{target_uid}/disabled", {"disabled": True}, token=admin_token)
        assert disable.status_code == 200

        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Master"}, token=admin_token)

        assert response.status_code == 400
        assert "disabled" in response.json()["error"]
        assert load_state(context, target_uid)[0] == "Executive"

    def test_target_sees_new_role_after_refresh(self, app, admin_token, target_uid):
        """역할 변경은 대상이 토큰을 갱신해야 클레임에 반영됩니다."""
        old_token = login(app, "u1@example.com")
        call(app, "POST", "/assignRole", {"uid": target_uid, "role": "TeamAdmin"}, token=admin_token)

        refreshed = call(app, "POST", "/v1/auth/tokens/refresh", token=old_token)

        assert refreshed.status_code == 201
        assert jwt.decode(refreshed.json()["token"], SECRET, algorithms=["HS256"])["role"] == "TeamAdmin"

# ===================================================================
#  호출 한도
# ===================================================================
class TestRateLimitEndpoint:
    def test_21st_call_is_throttled_then_window_rolls_over(self, app, context, admin_token, target_uid):
        # === Arrange: 같은 윈도우에서 20번 성공 ===
        for _ in range(20):
            assert call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Master"}, token=admin_token).status_code == 200

        # === Act & Assert: 21번째는 거부, 상태 변화 없음 ===
        before = load_state(context, target_uid)
        throttled = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Executive"}, token=admin_token)
        assert throttled.status_code == 429
        assert load_state(context, target_uid) == before

        # 시나리오: 윈도우 시작 시각을 두 시간 전으로 옮겨 만료시킴
        db = context.session_factory()
        try:
            counter = db.query(models.RateLimitCounter).one()
            counter.window_start = utcnow() - timedelta(hours=2)
            db.commit()
        finally:
            db.close()

        response = call(app, "POST", "/assignRole", {"uid": target_uid, "role": "Executive"}, token=admin_token)

        assert response.status_code == 200
        db = context.session_factory()
        try:
            assert db.query(models.RateLimitCounter).one().count == 1
        finally:
            db.close()

# ===================================================================
#  보조 엔드포인트 (등록, 프로필, 활성 상태)
# ===================================================================
class TestUserEndpoints:
    def test_duplicate_registration_is_400(self, app):
        register(app, "dup@example.com", "Executive")

        response = call(app, "POST", "/v1/users", {"email": "DUP@example.com", "password": "secret123", "role": "Master"})

        assert response.status_code == 400

    def test_owner_reads_own_profile_but_not_others(self, app, target_uid):
        other_uid = register(app, "u2@example.com", "Master")
        token = login(app, "u1@example.com")

        own = call(app, "GET", f"/v1/users/{target_uid}", token=token)
        other = call(app, "GET", f"/v1/users/{other_uid}", token=token)

        assert own.status_code == 200
        assert own.json()["user"]["role"] == "Executive"
        assert other.status_code == 403

    def test_admin_lists_and_deactivates_users(self, app, admin_token, target_uid):
        listed = call(app, "GET", "/v1/users", token=admin_token)
        assert {u["email"] for u in listed.json()["users"]} == {ADMIN_EMAIL, "u1@example.com"}

        response = call(app, "PUT", f"/v1/users/{target_uid}/active", {"isActive": False}, token=admin_token)

        assert response.status_code == 200
        assert response.json()["user"]["isActive"] is False
        profile = call(app, "GET", f"/v1/users/{target_uid}", token=admin_token).json()["user"]
        assert profile["isActive"] is False

    def test_disabled_account_cannot_sign_in(self, app, admin_token, target_uid):
        call(app, "PUT", f"/v1/users/{target_uid}/disabled", {"disabled": True}, token=admin_token)

        response = call(app, "POST", "/v1/auth/tokens", {"email": "u1@example.com", "password": "secret123"})

        assert response.status_code == 401

    def test_missing_profile_is_404(self, app, admin_token):
        assert call(app, "GET", "/v1/users/ghost", token=admin_token).status_code == 404
