"""Security helpers for headers and the shared inspector login."""
import hmac
import threading
import time
from typing import Optional


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers suitable for production deployments."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'self'; img-src 'self' data: blob:;")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if force_https:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response


def credentials_match(username: str, password: str, expected_username: str, expected_password: str) -> bool:
    """Compare a login attempt with the configured static credentials."""
    user_ok = hmac.compare_digest((username or "").encode("utf-8"), (expected_username or "").encode("utf-8"))
    pass_ok = hmac.compare_digest((password or "").encode("utf-8"), (expected_password or "").encode("utf-8"))
    return bool(expected_username) and user_ok and pass_ok


# In-process attempt counters: key -> (count, window start)
_attempts = {}
_attempts_lock = threading.Lock()


def _prune_attempts(now: float, window_seconds: float) -> None:
    expired = [key for key, (_, started) in _attempts.items() if now - started >= window_seconds]
    for key in expired:
        del _attempts[key]


def track_attempt(key: str, limit: int = 10, window_seconds: float = 15 * 60, now: Optional[float] = None) -> bool:
    """Count an attempt for ``key`` (e.g. an IP) and report whether it is within ``limit``.

    Counters reset once ``window_seconds`` have passed since the first attempt
    of the window, and expired keys are dropped on every call.
    """
    now = time.monotonic() if now is None else now
    with _attempts_lock:
        _prune_attempts(now, window_seconds)
        count, started = _attempts.get(key, (0, now))
        count += 1
        _attempts[key] = (count, started)
    return count <= limit


def reset_attempts(key: str) -> None:
    with _attempts_lock:
        _attempts.pop(key, None)
