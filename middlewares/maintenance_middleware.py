# middlewares/maintenance_middleware.py
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from config.settings import settings
import logging
logger = logging.getLogger("MaintenanceMiddleware")

# reads keep working so guards can still look people up
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


def _cors_headers(request: Request) -> dict:
    origin = request.headers.get("origin", "*")
    acrh = request.headers.get("access-control-request-headers", "content-type")
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,DELETE,OPTIONS",
        "Access-Control-Allow-Headers": acrh,
    }


class MaintenanceMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path or "/"

        if path.startswith("/health") or not settings.MAINTENANCE_MODE:
            return await call_next(request)

        # Preflight CORS
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=_cors_headers(request))

        if request.method in SAFE_METHODS:
            return await call_next(request)

        logger.info(f"[MaintenanceMiddleware] rejected {request.method} {path} (MAINTENANCE_MODE=on)")
        headers = _cors_headers(request)
        headers["Retry-After"] = "3600"
        return JSONResponse(
            {"detail": {
                "code": "MAINTENANCE",
                "message": "Checkpoint service is in maintenance mode.",
                "retryable": True,
            }},
            status_code=503,
            headers=headers,
        )
