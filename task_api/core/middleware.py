"""
HTTP middleware: request logging, security headers and rate limiting.
"""
import logging
import threading
import time
from collections import Counter
from typing import Dict, Tuple

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

QUIET_PATHS = ("/health", "/ping")
DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


class RateLimiter:
    """Fixed-window request counter keyed by client address"""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = None
        self._lock = threading.Lock()

    def hit(self, key: str, now: float = None) -> Tuple[bool, int, int]:
        """
        Record a request for key.

        Returns:
            tuple: (allowed, remaining, seconds until the window resets)
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            self._sweep(now)
            window_start, count = self._hits.get(key, (now, 0))
            if now - window_start >= self.window_seconds:
                window_start, count = now, 0
            count += 1
            self._hits[key] = (window_start, count)

        reset_in = max(int(window_start + self.window_seconds - now), 0)
        remaining = max(self.max_requests - count, 0)
        return count <= self.max_requests, remaining, reset_in

    def _sweep(self, now: float):
        """Forget clients whose window has run out, at most once per window"""
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [
            key for key, (window_start, _) in self._hits.items()
            if now - window_start >= self.window_seconds
        ]
        for key in expired:
            del self._hits[key]

    def reset(self):
        with self._lock:
            self._hits.clear()
            self._last_sweep = None

    def __len__(self):
        return len(self._hits)


class RequestMetrics:
    """Counters exposed by the metrics endpoint"""

    def __init__(self):
        self.started_at = time.time()
        self._lock = threading.Lock()
        self.total = 0
        self.by_status = Counter()

    def record(self, status_code: int):
        with self._lock:
            self.total += 1
            self.by_status[f"{status_code // 100}xx"] += 1

    def snapshot(self) -> dict:
        with self._lock:
            return {"total": self.total, "by_status": dict(self.by_status)}

    def reset(self):
        with self._lock:
            self.total = 0
            self.by_status.clear()

    @property
    def uptime(self) -> float:
        return time.time() - self.started_at


rate_limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window)
request_metrics = RequestMetrics()


def error_body(request: Request, status_code: int, error_type: str, message) -> dict:
    return {
        "error": {
            "type": error_type,
            "status_code": status_code,
            "message": message,
            "path": str(request.url.path),
            "timestamp": time.time(),
        }
    }


def apply_security_headers(response, path: str):
    """Baseline browser hardening headers"""
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    # Swagger UI loads its assets from a CDN
    if not path.startswith(DOCS_PATHS):
        response.headers.setdefault("Content-Security-Policy", "default-src 'self'")
    if settings.is_production:
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=15552000; includeSubDomains"
        )


def register_middleware(app: FastAPI):
    """Attach the HTTP middleware to the application"""

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if request.method == "OPTIONS" or not request.url.path.startswith(settings.api_prefix):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        allowed, remaining, reset_in = rate_limiter.hit(client_ip)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_ip}")
            response = JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=error_body(
                    request, 429, "rate_limited", "Too many requests from this IP"
                ),
                headers={"Retry-After": str(reset_in)},
            )
        else:
            response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(rate_limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Log all requests with timing"""
        start_time = time.time()
        path = request.url.path
        quiet = path.startswith(QUIET_PATHS)

        if not quiet:
            client = request.client.host if request.client else "unknown"
            logger.info(f"{request.method} {path} - Client: {client}")

        response = await call_next(request)
        process_time = time.time() - start_time

        response.headers["X-Process-Time"] = str(process_time)
        apply_security_headers(response, path)
        request_metrics.record(response.status_code)

        if not quiet:
            logger.info(f"{request.method} {path} - {response.status_code} ({process_time:.3f}s)")

        return response
