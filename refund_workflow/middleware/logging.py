import time
import json
from datetime import datetime, timezone
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured JSON access log line per request. Never logs key values."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.monotonic()

        if "X-Admin-Key" in request.headers:
            role = "admin"
        elif "X-API-Key" in request.headers:
            role = "learner"
        else:
            role = "anonymous"

        response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000)

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
            "method": request.method,
            "path": str(request.url.path),
            "status_code": response.status_code,
            "user_id": request.headers.get("X-User-Id"),
            "role": role,
            "duration_ms": duration_ms,
        }
        print(json.dumps(log_entry), flush=True)

        return response
