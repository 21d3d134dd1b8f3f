"""Request context middleware for logging."""
import asyncio
import json
import re
import time
import uuid
from contextvars import ContextVar
from typing import Any
from typing import Callable
from typing import Optional

import jwt
from fastapi import Request
from fastapi import Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

# Context variables to store request-specific data
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
client_ip_ctx: ContextVar[str] = ContextVar("client_ip", default="")
user_identity_ctx: ContextVar[str] = ContextVar("user_identity", default="")
user_agent_ctx: ContextVar[str] = ContextVar("user_agent", default="")
request_path_ctx: ContextVar[str] = ContextVar("request_path", default="")

# Maximum size for request/response body logging (to avoid memory issues)
MAX_BODY_LOG_SIZE = 10000  # 10KB limit

SENSITIVE_KEYS = (
    "password",
    "secret",
    "token",
    "otp",
    "signature",
    "authorization",
)

SENSITIVE_PATTERNS = [
    r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+",  # JWT tokens
    r"bearer\s+[A-Za-z0-9_-]{20,}",  # Bearer tokens
    r"-----BEGIN[^\n]+PRIVATE KEY-----",  # Private key block
]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to capture and log request context information."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Capture request context and add to logging.

        Captures:
        - Request ID (from header or generated)
        - Client IP (real IP from proxy headers or direct)
        - User identity (email claim of the bearer token)
        - User agent
        - Request body for JSON POST/PUT/PATCH/DELETE (sensitive keys redacted)
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_ctx.set(request_id)

        client_ip = self._get_client_ip(request)
        client_ip_ctx.set(client_ip)

        user_identity = self._get_user_identity(request)
        user_identity_ctx.set(user_identity)

        user_agent = request.headers.get("User-Agent", "unknown")
        user_agent_ctx.set(user_agent)

        request_path = f"{request.method} {request.url.path}"
        request_path_ctx.set(request_path)

        # Store in request state early so error handlers can access it
        request.state.request_body = None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            request.state.request_body = await self._get_request_body(request)

        with logger.contextualize(
            request_id=request_id,
            client_ip=client_ip,
            user_identity=user_identity,
            request_path=request_path,
        ):
            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            response_body, response = await self._capture_response_body(response)
            if response_body is not None and self._contains_sensitive_information(response_body):
                response_body = None

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code}",
                event_type="http_request",
                http_method=request.method,
                url_path=str(request.url.path),
                url_query=str(request.query_params) if request.query_params else None,
                user_agent=user_agent,
                request_body=request.state.request_body,
                status_code=response.status_code,
                http_status=response.status_code,
                response_time_ms=round(duration_ms, 2),
                response_body=response_body,
            )

            response.headers["X-Request-ID"] = request_id
            return response

    async def _get_request_body(self, request: Request) -> Optional[dict]:
        """
        Read the JSON request body for logging, with sensitive values redacted.

        Non-JSON bodies (multipart uploads) are not read. Returns None when
        the body is empty or unreadable.
        """
        content_type = request.headers.get("Content-Type", "")
        if "application/json" not in content_type.lower():
            return None

        try:
            body = await asyncio.wait_for(request.body(), timeout=2.0)
        except asyncio.TimeoutError:
            return {"_error": "Request body read timeout (>2s)"}

        if not body:
            return None

        if len(body) > MAX_BODY_LOG_SIZE:
            return {"_truncated": True, "_size": len(body)}

        try:
            parsed = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return {"_error": "Failed to parse request body", "_error_detail": str(e)}

        return redact(parsed)

    async def _capture_response_body(self, response: Response) -> tuple[Optional[Any], Response]:
        """
        Capture the JSON response body without breaking the response.

        Returns:
            Tuple of (parsed body or None, response to send)
        """
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return None, response

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        new_response = Response(
            content=body_bytes,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )

        if not body_bytes:
            return None, new_response

        if len(body_bytes) > MAX_BODY_LOG_SIZE:
            response_body = {
                "_truncated": True,
                "_size": len(body_bytes),
                "_preview": body_bytes[:1000].decode("utf-8", errors="replace"),
            }
        else:
            try:
                response_body = json.loads(body_bytes)
            except json.JSONDecodeError:
                response_body = {"_raw": body_bytes.decode("utf-8", errors="replace")[:1000]}

        return response_body, new_response

    def _get_client_ip(self, request: Request) -> str:
        """
        Get real client IP address.

        Azure Web App and most reverse proxies provide:
        - X-Azure-ClientIP: Client IP from Azure
        - X-Forwarded-For: Original client IP chain
        """
        client_ip = request.headers.get("X-Azure-ClientIP")
        if client_ip:
            return client_ip

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"

    def _get_user_identity(self, request: Request) -> str:
        """
        Get the caller's identity for log correlation.

        The bearer token is decoded without verification purely to read its email
        claim; authorization happens in the route dependencies.
        """
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return "anonymous"

        try:
            claims = jwt.decode(auth_header[7:], options={"verify_signature": False})
        except jwt.PyJWTError:
            return "bearer_token:undecodable"

        return claims.get("email") or "bearer_token:no-email"

    def _contains_sensitive_information(self, body: Any) -> bool:
        """Check if a response body contains tokens or secrets that must not be logged."""
        if isinstance(body, dict):
            for key in body.keys():
                if isinstance(key, str) and any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                    return True

        try:
            body_str = json.dumps(body, default=str)
        except (TypeError, ValueError):
            return False

        return any(re.search(pattern, body_str, re.IGNORECASE) for pattern in SENSITIVE_PATTERNS)


def redact(value: Any) -> Any:
    """Replace values of sensitive keys with a marker, recursively."""
    if isinstance(value, dict):
        return {
            key: "***redacted***"
            if isinstance(key, str) and any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS)
            else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


def get_request_context() -> dict:
    """
    Get current request context for logging.

    Returns:
        Dictionary with request context variables
    """
    return {
        "request_id": request_id_ctx.get(),
        "client_ip": client_ip_ctx.get(),
        "user_identity": user_identity_ctx.get(),
        "user_agent": user_agent_ctx.get(),
        "request_path": request_path_ctx.get(),
    }
