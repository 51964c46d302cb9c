"""
Cache connectivity probe — Redis over a ``redis://`` URI.

Same contract as the primary-store probes: connect, ``PING``,
disconnect, never raise.  Adds ``AUTH_REQUIRED`` for servers that
demand credentials the URI does not carry.
"""

from __future__ import annotations

import logging
import time

from create_enfyra_be.core.errors import ErrorCode
from create_enfyra_be.core.models.connection import RedisSpec
from create_enfyra_be.core.models.results import ProbeResult
from create_enfyra_be.core.services.connection_probes import (
    DEFAULT_PROBE_TIMEOUT_MS,
    classify_message,
)

logger = logging.getLogger(__name__)


def _is_noauth(message: str) -> bool:
    lowered = message.lower()
    return "noauth" in lowered or "authentication required" in lowered


def classify_redis_error(exc: BaseException, spec: RedisSpec) -> ErrorCode:
    """Classify a redis-py exception for ``spec``."""
    from redis.exceptions import (
        AuthenticationError,
        ConnectionError as RedisConnectionError,
        ResponseError,
        TimeoutError as RedisTimeoutError,
    )

    message = str(exc)

    # AuthenticationError subclasses ConnectionError: check it first.
    if isinstance(exc, AuthenticationError):
        if _is_noauth(message) and not spec.has_password:
            return ErrorCode.AUTH_REQUIRED
        return ErrorCode.AUTH_FAILED
    if isinstance(exc, ResponseError):
        if _is_noauth(message) and not spec.has_password:
            return ErrorCode.AUTH_REQUIRED
        if "db index is out of range" in message.lower():
            return ErrorCode.DB_NOT_FOUND
        if "auth" in message.lower():
            return ErrorCode.AUTH_FAILED
        return classify_message(message)
    if isinstance(exc, (RedisConnectionError, RedisTimeoutError)):
        return ErrorCode.CONN_REFUSED
    return classify_message(message)


def probe_redis(spec: RedisSpec, timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS) -> ProbeResult:
    """Redis: connect from URI, ``PING``, close."""
    import redis
    from redis.backoff import NoBackoff
    from redis.retry import Retry

    seconds = timeout_ms / 1000
    logger.debug("Probing redis at %s (timeout=%dms)", spec.target, timeout_ms)
    start = time.monotonic()
    client = None
    try:
        client = redis.Redis.from_url(
            spec.uri,
            socket_connect_timeout=seconds,
            socket_timeout=seconds,
            retry=Retry(NoBackoff(), 0),
            retry_on_timeout=False,
        )
        client.ping()
    except Exception as exc:
        code = classify_redis_error(exc, spec)
        message = str(exc)
        logger.info("redis probe failed at %s: %s (%s)", spec.target, code.value, message)
        return ProbeResult.failure(
            backend="redis",
            target=spec.target,
            error_code=code,
            message=message,
            role="cache",
            latency_ms=int((time.monotonic() - start) * 1000),
        )
    finally:
        if client is not None:
            client.close()

    return ProbeResult.success(
        backend="redis",
        target=spec.target,
        role="cache",
        latency_ms=int((time.monotonic() - start) * 1000),
    )
