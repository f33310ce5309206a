"""
Database engine construction and transaction management.
"""

from typing import Any, Callable, TypeVar

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from sqladapter.core.config import DatabaseSettings
from sqladapter.core.exceptions import BeginError, CommitError, RollbackError

logger = structlog.get_logger()

T = TypeVar("T")


def create_db_engine(
    url: str | URL,
    settings: DatabaseSettings | None = None,
    **engine_options: Any,
) -> Engine:
    """
    Create a pooled engine.

    The engine connects lazily: nothing touches the database until the
    first operation, so bad credentials surface there.

    Args:
        url: SQLAlchemy URL
        settings: Pool settings, defaults to DatabaseSettings()
        **engine_options: Passed through to create_engine
    """
    settings = settings or DatabaseSettings()
    url = make_url(url)

    options: dict[str, Any] = {"echo": settings.echo}
    # SQLite picks its own pool class; the sizing options don't apply
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.pool_size,
            max_overflow=settings.pool_overflow,
            pool_timeout=settings.pool_timeout,
            pool_pre_ping=True,
        )
    options.update(engine_options)

    return create_engine(url, **options)


def split_host_port(host: str | None, port: int | None = None) -> tuple[str | None, int | None]:
    """
    Split "host:port" into its parts.

    Only an all-digit suffix counts as a port. Bracketed IPv6 hosts
    ("[::1]:3306") lose their brackets; a bare IPv6 address is left alone.
    An explicit port wins over one embedded in host.
    """
    if not host:
        return host, port

    if host.startswith("["):
        address, closed, rest = host[1:].partition("]")
        if not closed:
            return host, port
        if rest.startswith(":") and rest[1:].isdigit() and port is None:
            return address, int(rest[1:])
        return address, port

    name, sep, suffix = host.rpartition(":")
    if not sep or ":" in name or not name:
        return host, port
    if suffix == "":
        return name, port
    if suffix.isdigit():
        return name, port if port is not None else int(suffix)
    return host, port


def engine_from_credentials(
    driver: str,
    user: str | None,
    password: str | None,
    host: str | None,
    database: str | None,
    port: int | None = None,
    settings: DatabaseSettings | None = None,
) -> Engine:
    """Build an engine from a driver name and connection parts."""
    url = URL.create(
        driver,
        username=user,
        password=password,
        host=host,
        port=port,
        database=database,
    )
    return create_db_engine(url, settings=settings)


def run_in_transaction(engine: Engine, work: Callable[[Connection], T]) -> T:
    """
    Run ``work`` inside one transaction and return its result.

    - work raises: roll back, re-raise. If the rollback fails too, raise
      RollbackError carrying both exceptions.
    - work returns: commit. A failed commit raises CommitError.
    - KeyboardInterrupt and other BaseExceptions still roll back first.

    The connection goes back to the pool on every path.
    """
    with engine.connect() as conn:
        try:
            trans = conn.begin()
        except SQLAlchemyError as exc:
            raise BeginError(f"beginning transaction: {exc}") from exc

        try:
            result = work(conn)
        except BaseException as exc:
            try:
                trans.rollback()
            except Exception as rollback_exc:
                logger.error(
                    "transaction.rollback_failed",
                    error=repr(exc),
                    rollback_error=repr(rollback_exc),
                )
                if not isinstance(exc, Exception):
                    raise exc
                raise RollbackError(exc, rollback_exc) from exc
            logger.debug("transaction.rollback", error=repr(exc))
            raise

        try:
            trans.commit()
        except SQLAlchemyError as exc:
            raise CommitError(f"committing transaction: {exc}") from exc

        return result
