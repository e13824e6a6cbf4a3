# src/app.py
from wsgiref.simple_server import make_server
import json
import re

from loguru import logger

from src.config import Settings, configure_logging
from src.context import AppContext
from src.database.db_init import initialize_db
from src.repositories.sqlalchemy import (
    SqlalchemyAuthAccountRepository, SqlalchemyProfileRepository, SqlalchemyRateLimitRepository
)
from src.services.identity_service import IdentityService
from src.services.rate_limiter import RateLimiter
from src.services.role_service import RoleAssignmentService
from src.services.exceptions import *

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

BEARER_PATTERN = re.compile(r"^Bearer (.+)$")

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise InvalidParameterError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise InvalidParameterError("Request body must be a JSON object.")
    return data

def authorize_and_get_token_data(environ):
    match = BEARER_PATTERN.match(environ.get('HTTP_AUTHORIZATION', ''))
    if not match:
        raise TokenInvalidError("Unauthorized. Expected Authorization: Bearer <ID_TOKEN> header.")
    identity_service = environ['services']['identity']
    return identity_service.validate_token(match.group(1).strip())

# 예상된 오류: 메시지를 그대로 돌려주고 info/warning으로 기록
ERROR_MAP = {
    TokenInvalidError: "401 Unauthorized",
    AuthenticationError: "401 Unauthorized",
    InvalidParameterError: "400 Bad Request",
    UserCreationError: "400 Bad Request",
    TargetNotFoundError: "400 Bad Request",
    TargetDisabledError: "400 Bad Request",
    PermissionDeniedError: "403 Forbidden",
    ProfileNotFoundError: "404 Not Found",
    MethodNotAllowedError: "405 Method Not Allowed",
    RateLimitExceededError: "429 Too Many Requests",
}

def handle_exception(e):
    status = ERROR_MAP.get(type(e))
    if status:
        logger.info(f"{status}: {e}")
        return status, json.dumps({"success": False, "error": str(e)})
    if isinstance(e, RoleAssignmentError):
        # 이미 서비스에서 전체 컨텍스트와 함께 기록됨
        return "500 Internal Server Error", json.dumps({"success": False, "error": str(e)})
    logger.opt(exception=e).error("Unhandled error while processing request")
    return "500 Internal Server Error", json.dumps({"success": False, "error": "Internal server error"})

def cors_headers(allowed_origin):
    return [
        ("Access-Control-Allow-Origin", allowed_origin),
        ("Access-Control-Allow-Methods", "GET, POST, PUT, OPTIONS"),
        ("Access-Control-Allow-Headers", "Content-Type, Authorization"),
    ]

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def assign_role_handler(environ, *args):
    token_data = authorize_and_get_token_data(environ)
    data = get_request_data(environ)
    result = environ['services']['roles'].assign_role(token_data, data.get('uid'), data.get('role'))
    return '200 OK', json.dumps({"success": True, "message": f"Role updated to {result['role']}"})

def register_handler(environ, *args):
    data = get_request_data(environ)
    user = environ['services']['identity'].register(data.get('email'), data.get('password'), data.get('role'))
    return '201 Created', json.dumps({"success": True, "user": user})

def auth_tokens_handler(environ, *args):
    data = get_request_data(environ)
    token = environ['services']['identity'].authenticate(data.get('email'), data.get('password'))
    return '201 Created', json.dumps({"success": True, **token})

def refresh_token_handler(environ, *args):
    token_data = authorize_and_get_token_data(environ)
    token = environ['services']['identity'].refresh_token(token_data)
    return '201 Created', json.dumps({"success": True, **token})

def list_users_handler(environ, *args):
    token_data = authorize_and_get_token_data(environ)
    users = environ['services']['identity'].list_profiles(token_data)
    return '200 OK', json.dumps({"success": True, "users": users})

def get_user_handler(environ, uid):
    token_data = authorize_and_get_token_data(environ)
    user = environ['services']['identity'].get_profile(token_data, uid)
    return '200 OK', json.dumps({"success": True, "user": user})

def set_active_handler(environ, uid):
    token_data = authorize_and_get_token_data(environ)
    data = get_request_data(environ)
    user = environ['services']['identity'].set_active(token_data, uid, data.get('isActive'))
    return '200 OK', json.dumps({"success": True, "user": user})

def set_disabled_handler(environ, uid):
    token_data = authorize_and_get_token_data(environ)
    data = get_request_data(environ)
    account = environ['services']['identity'].set_disabled(token_data, uid, data.get('disabled'))
    return '200 OK', json.dumps({"success": True, "account": account})

ROUTES = [
    ('POST', r'^/assignRole$', assign_role_handler),
    ('POST', r'^/v1/users$', register_handler),
    ('GET', r'^/v1/users$', list_users_handler),
    ('GET', r'^/v1/users/([a-zA-Z0-9_-]+)$', get_user_handler),
    ('PUT', r'^/v1/users/([a-zA-Z0-9_-]+)/active$', set_active_handler),
    ('PUT', r'^/v1/users/([a-zA-Z0-9_-]+)/disabled$', set_disabled_handler),
    ('POST', r'^/v1/auth/tokens$', auth_tokens_handler),
    ('POST', r'^/v1/auth/tokens/refresh$', refresh_token_handler),
]

def resolve_route(method, path):
    """(핸들러, 경로 인자)를 반환합니다. 경로는 맞지만 메서드가 다르면 MethodNotAllowedError."""
    path_matched = False
    for route_method, pattern, route_handler in ROUTES:
        if match := re.match(pattern, path):
            if method == route_method:
                return route_handler, match.groups()
            path_matched = True
    if path_matched:
        raise MethodNotAllowedError("Method not allowed")
    return None, ()

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def create_app(context: AppContext):
    settings = context.settings

    def application(environ, start_response):
        method = environ.get("REQUEST_METHOD", "")
        headers = [("Content-Type", "application/json")] + cors_headers(settings.allowed_origin)

        if method == "OPTIONS":
            # CORS preflight
            start_response("204 No Content", cors_headers(settings.allowed_origin))
            return [b""]

        db_session = context.session_factory()
        try:
            # 1. 의존성 생성 (Repositories -> Services)
            profile_repo = SqlalchemyProfileRepository(db_session)
            auth_repo = SqlalchemyAuthAccountRepository(db_session)
            rate_limit_repo = SqlalchemyRateLimitRepository(db_session)

            identity_service = IdentityService(auth_repo, profile_repo, settings.jwt_secret, settings.token_ttl)
            rate_limiter = RateLimiter(rate_limit_repo, settings.rate_limit_max_calls, settings.rate_limit_window)
            role_service = RoleAssignmentService(profile_repo, auth_repo, rate_limiter)

            # 2. 생성된 서비스 객체들을 environ을 통해 핸들러에 전달
            environ['services'] = {
                'identity': identity_service,
                'roles': role_service,
            }

            # 3. 라우팅 및 핸들러 실행
            handler, path_args = resolve_route(method, environ.get("PATH_INFO", ""))
            if handler:
                status, response_body = handler(environ, *path_args)
            else:
                status, response_body = '404 Not Found', json.dumps({"success": False, "error": "Not Found"})

        except Exception as e:
            status, response_body = handle_exception(e)
        finally:
            db_session.close()

        start_response(status, headers)
        return [response_body.encode("utf-8")]

    return application

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    context = AppContext.create(settings)
    try:
        initialize_db(context)
        with make_server(settings.host, settings.port, create_app(context)) as httpd:
            logger.info(f"Serving role assignment API on port {settings.port}...")
            httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down.")
    finally:
        context.close()
