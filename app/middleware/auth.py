"""Authentication middleware: Bearer JWT or X-Internal-Auth"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import logger

PUBLIC_PATHS = ("/health", "/docs", "/openapi.json", "/redoc")


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> str:
    """
    Validate a user access token and return its subject.

    Raises:
        JWTError: If the token is invalid, expired or has no subject
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"verify_exp": True, "verify_aud": False},
    )
    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        raise JWTError("Invalid token type")
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("Token has no subject")
    return str(user_id)


class HybridAuthMiddleware(BaseHTTPMiddleware):
    """
    Resolves request.state.user_id from either credential:

    - Authorization: Bearer <jwt>, subject becomes the user id
    - X-Internal-Auth: <key> together with X-User-Id: <user> for trusted services

    Requests without credentials pass through with no user id; routes that
    need one reject them. A present but invalid Bearer token is a 401 here.
    """

    def __init__(self, app, jwt_secret: str, internal_api_key: str, jwt_algorithm: str = "HS256"):
        super().__init__(app)
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.internal_api_key = internal_api_key

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None

        if request.url.path in PUBLIC_PATHS or request.url.path.startswith("/ws/"):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                request.state.user_id = decode_access_token(token, self.jwt_secret, self.jwt_algorithm)
            except JWTError as e:
                logger.warning(f"JWT validation failed: {e}")
                return JSONResponse(
                    status_code=401,
                    content={"error": "Invalid or expired token", "detail": str(e)},
                )
            logger.debug(f"JWT validated: user_id={request.state.user_id}")
            return await call_next(request)

        internal_auth = request.headers.get("X-Internal-Auth")
        if internal_auth is not None:
            user_id = self._internal_user(internal_auth, request.headers.get("X-User-Id"))
            if user_id is None:
                logger.warning("Internal auth failed")
                return JSONResponse(status_code=401, content={"error": "Unauthorized"})
            request.state.user_id = user_id
            logger.debug(f"Internal auth validated: user_id={user_id}")

        return await call_next(request)

    def _internal_user(self, key: str, user_id: Optional[str]) -> Optional[str]:
        if key != self.internal_api_key or not user_id:
            return None
        return user_id
