"""
Primary-store connectivity probes — one per wire protocol.

Each probe opens a single connection, runs a no-op liveness check,
and closes the connection unconditionally.  Probes never raise for
connection problems: failures come back as a classified
``ProbeResult``.

Adding a backend means adding one probe function and one ``PROBES``
entry; callers only ever go through ``probe()``.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Protocol

from create_enfyra_be.core.errors import ErrorCode
from create_enfyra_be.core.models.connection import (
    ConnectionSpec,
    MongoSpec,
    MySQLSpec,
    PostgresSpec,
)
from create_enfyra_be.core.models.results import ProbeResult

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 5000


class Probe(Protocol):
    def __call__(self, spec: ConnectionSpec, timeout_ms: int = ...) -> ProbeResult: ...


# ── Error classification ────────────────────────────────────────

_REFUSED_NEEDLES: tuple[str, ...] = (
    "connection refused",
    "can't connect",
    "could not connect",
    "could not translate host name",
    "name or service not known",
    "nodename nor servname",
    "no route to host",
    "host is unreachable",
    "network is unreachable",
    "timeout expired",
    "timed out",
    "lost connection",
)

_AUTH_NEEDLES: tuple[str, ...] = (
    "access denied",
    "password authentication failed",
    "authentication failed",
    "no password supplied",
)

_MYSQL_ERRNO: dict[int, ErrorCode] = {
    2002: ErrorCode.CONN_REFUSED,   # can't connect through socket
    2003: ErrorCode.CONN_REFUSED,   # can't connect to server
    2005: ErrorCode.CONN_REFUSED,   # unknown host
    2006: ErrorCode.CONN_REFUSED,   # server has gone away
    2013: ErrorCode.CONN_REFUSED,   # lost connection during handshake
    1044: ErrorCode.AUTH_FAILED,    # access denied to database
    1045: ErrorCode.AUTH_FAILED,    # access denied for user
    1698: ErrorCode.AUTH_FAILED,    # access denied (auth plugin)
    1049: ErrorCode.DB_NOT_FOUND,   # unknown database
}

_PG_SQLSTATE: dict[str, ErrorCode] = {
    "28P01": ErrorCode.AUTH_FAILED,     # invalid_password
    "28000": ErrorCode.AUTH_FAILED,     # invalid_authorization_specification
    "3D000": ErrorCode.DB_NOT_FOUND,    # invalid_catalog_name
    "08001": ErrorCode.CONN_REFUSED,    # sqlclient_unable_to_establish_sqlconnection
    "08006": ErrorCode.CONN_REFUSED,    # connection_failure
}

# MongoDB server error codes
_MONGO_AUTH_CODES = {11, 13, 18}      # UserNotFound, Unauthorized, AuthenticationFailed


def classify_message(message: str) -> ErrorCode:
    """Map a raw driver message onto the closed error set (first match wins)."""
    lowered = message.lower()
    if any(needle in lowered for needle in _REFUSED_NEEDLES):
        return ErrorCode.CONN_REFUSED
    if any(needle in lowered for needle in _AUTH_NEEDLES):
        return ErrorCode.AUTH_FAILED
    if "role \"" in lowered and "does not exist" in lowered:
        return ErrorCode.AUTH_FAILED
    if "unknown database" in lowered:
        return ErrorCode.DB_NOT_FOUND
    if "database \"" in lowered and "does not exist" in lowered:
        return ErrorCode.DB_NOT_FOUND
    return ErrorCode.UNKNOWN


def _classify_mysql(exc: BaseException) -> tuple[ErrorCode, str]:
    orig = getattr(exc, "orig", None) or exc
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        message = str(args[1]) if len(args) > 1 else str(orig)
        code = _MYSQL_ERRNO.get(args[0])
        if code is not None:
            return code, message
        return classify_message(message), message
    message = str(orig)
    return classify_message(message), message


def _classify_postgres(exc: BaseException) -> tuple[ErrorCode, str]:
    orig = getattr(exc, "orig", None) or exc
    message = str(orig).strip()
    pgcode = getattr(orig, "pgcode", None)
    if pgcode and pgcode in _PG_SQLSTATE:
        return _PG_SQLSTATE[pgcode], message
    return classify_message(message), message


def _timeout_seconds(timeout_ms: int) -> int:
    # Driver connect timeouts take whole seconds
    return max(1, math.ceil(timeout_ms / 1000))


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# ── Relational stores (SQLAlchemy) ──────────────────────────────


def _probe_sql(
    spec: MySQLSpec | PostgresSpec,
    timeout_ms: int,
    *,
    drivername: str,
    connect_args: dict,
    classify,
    role: str = "primary",
) -> ProbeResult:
    from sqlalchemy import create_engine, text
    from sqlalchemy.engine import URL
    from sqlalchemy.pool import NullPool

    url = URL.create(
        drivername,
        username=spec.username or None,
        password=spec.password or None,
        host=spec.host,
        port=spec.port,
        database=spec.database or None,
        query=spec.query,
    )

    logger.debug("Probing %s at %s (timeout=%dms)", spec.kind, spec.target, timeout_ms)
    start = time.monotonic()
    engine = None
    try:
        engine = create_engine(url, poolclass=NullPool, connect_args=connect_args)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        code, message = classify(exc)
        logger.info("%s probe failed at %s: %s (%s)", spec.kind, spec.target, code.value, message)
        return ProbeResult.failure(
            backend=spec.kind,
            target=spec.target,
            error_code=code,
            message=message,
            role=role,
            latency_ms=_elapsed_ms(start),
        )
    finally:
        if engine is not None:
            engine.dispose()

    return ProbeResult.success(
        backend=spec.kind,
        target=spec.target,
        role=role,
        latency_ms=_elapsed_ms(start),
    )


def _with_replica(
    primary: ProbeResult,
    spec: MySQLSpec | PostgresSpec,
    timeout_ms: int,
    probe_fn,
) -> ProbeResult:
    """Attach the replica's result without touching the primary outcome."""
    replica_spec = spec.replica()
    if replica_spec is None:
        return primary
    replica = probe_fn(replica_spec, timeout_ms, role="replica")
    return primary.model_copy(update={"replica": replica})


def _probe_mysql_once(
    spec: MySQLSpec, timeout_ms: int, role: str = "primary",
) -> ProbeResult:
    seconds = _timeout_seconds(timeout_ms)
    return _probe_sql(
        spec,
        timeout_ms,
        drivername="mysql+pymysql",
        connect_args={
            "connect_timeout": seconds,
            "read_timeout": seconds,
            "write_timeout": seconds,
        },
        classify=_classify_mysql,
        role=role,
    )


def _probe_postgres_once(
    spec: PostgresSpec, timeout_ms: int, role: str = "primary",
) -> ProbeResult:
    return _probe_sql(
        spec,
        timeout_ms,
        drivername="postgresql+psycopg2",
        connect_args={
            "connect_timeout": _timeout_seconds(timeout_ms),
            "options": f"-c statement_timeout={timeout_ms}",
        },
        classify=_classify_postgres,
        role=role,
    )


def probe_mysql(spec: MySQLSpec, timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS) -> ProbeResult:
    """MySQL / MariaDB: connect, ``SELECT 1``, close."""
    primary = _probe_mysql_once(spec, timeout_ms)
    return _with_replica(primary, spec, timeout_ms, _probe_mysql_once)


def probe_postgres(
    spec: PostgresSpec, timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> ProbeResult:
    """PostgreSQL: connect, ``SELECT 1``, close."""
    primary = _probe_postgres_once(spec, timeout_ms)
    return _with_replica(primary, spec, timeout_ms, _probe_postgres_once)


# ── Document store (pymongo) ────────────────────────────────────


def _mongo_client_args(spec: MongoSpec, timeout_ms: int) -> dict:
    """Keyword arguments for ``MongoClient``.

    A supplied URI is passed through untouched.  Discrete fields dial the
    one server directly; credentials go along only with a password, since
    pymongo rejects a username without one.
    """
    timeouts = {
        "serverSelectionTimeoutMS": timeout_ms,
        "connectTimeoutMS": timeout_ms,
        "socketTimeoutMS": timeout_ms,
    }
    if spec.uri:
        return {"host": spec.uri, **timeouts}
    args: dict = {"host": spec.host, "port": spec.port, "directConnection": True, **timeouts}
    if spec.password:
        args.update(
            username=spec.username or None,
            password=spec.password,
            authSource=spec.auth_source,
        )
    return args


def probe_mongodb(spec: MongoSpec, timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS) -> ProbeResult:
    """MongoDB: connect, ``ping``, close.

    The server creates databases lazily, so a missing namespace is
    never reported as DB_NOT_FOUND here.
    """
    from pymongo import MongoClient
    from pymongo.errors import ConfigurationError, ConnectionFailure, OperationFailure

    logger.debug("Probing mongodb at %s (timeout=%dms)", spec.target, timeout_ms)
    start = time.monotonic()
    client = None
    try:
        client = MongoClient(**_mongo_client_args(spec, timeout_ms))
        client[spec.database or "admin"].command("ping")
    except OperationFailure as exc:
        message = str(exc.details.get("errmsg", exc)) if exc.details else str(exc)
        if exc.code in _MONGO_AUTH_CODES:
            code = ErrorCode.AUTH_FAILED
        else:
            code = classify_message(message)
        return _mongo_failure(spec, code, message, start)
    except ConnectionFailure as exc:
        return _mongo_failure(spec, ErrorCode.CONN_REFUSED, str(exc), start)
    except ConfigurationError as exc:
        # Raised before dialing: bad URI options or a failed +srv DNS lookup
        message = str(exc)
        code = ErrorCode.CONN_REFUSED if "dns" in message.lower() else ErrorCode.UNKNOWN
        return _mongo_failure(spec, code, message, start)
    except Exception as exc:
        message = str(exc)
        return _mongo_failure(spec, classify_message(message), message, start)
    finally:
        if client is not None:
            client.close()

    return ProbeResult.success(
        backend="mongodb", target=spec.target, latency_ms=_elapsed_ms(start),
    )


def _mongo_failure(
    spec: MongoSpec, code: ErrorCode, message: str, start: float,
) -> ProbeResult:
    logger.info("mongodb probe failed at %s: %s (%s)", spec.target, code.value, message)
    return ProbeResult.failure(
        backend="mongodb",
        target=spec.target,
        error_code=code,
        message=message,
        latency_ms=_elapsed_ms(start),
    )


# ── Dispatch ────────────────────────────────────────────────────


PROBES: dict[str, Probe] = {
    "mysql": probe_mysql,
    "mariadb": probe_mysql,
    "postgres": probe_postgres,
    "mongodb": probe_mongodb,
}


def probe(spec: ConnectionSpec, timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS) -> ProbeResult:
    """Probe the primary store described by ``spec``."""
    probe_fn = PROBES.get(spec.kind)
    if probe_fn is None:
        return ProbeResult.failure(
            backend=spec.kind,
            target=spec.target,
            error_code=ErrorCode.UNKNOWN,
            message=f"No probe registered for backend '{spec.kind}'",
        )
    return probe_fn(spec, timeout_ms)
