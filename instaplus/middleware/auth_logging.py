from fastapi import Request
import logging
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("instaplus")

# Routes that answer without a bearer token
PUBLIC_PREFIXES = ("/docs", "/redoc", "/openapi.json", "/media/", "/health")

class AuthLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if not request.headers.get("Authorization") and path != "/" and not path.startswith(PUBLIC_PREFIXES):
            logger.warning(f"Endpoint {path} accessed without auth header")

        response = await call_next(request)

        # Log auth-related status codes
        if response.status_code in [401, 403]:
            logger.warning(f"Auth error: {response.status_code} on {request.method} {path}")

        return response
