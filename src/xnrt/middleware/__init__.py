"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from xnrt.config import Settings
from xnrt.middleware.error_handler import setup_error_handlers
from xnrt.middleware.logging import setup_logging
from xnrt.middleware.rate_limit import RateLimitMiddleware
from xnrt.middleware.request_context import REQUEST_ID_HEADER, RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and the middleware stack.

    Starlette runs the last added middleware outermost, so a request passes
    CORS, then the request context, then the rate limiter. The rate
    limiter's 429s therefore carry a request id and CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        # Read endpoints, create/claim/review posts, notification read marks.
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )
