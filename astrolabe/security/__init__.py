"""Security façade for request rate limiting."""

from .rate_limit import limiter  # noqa: F401

__all__ = ["limiter"]
