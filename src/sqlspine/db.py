"""Database handle: dialect, connection pool and transaction entry point.

Example:
    >>> db = Db("sqlite://", process_ref="worker-1")
    >>> with db.tx() as tx:
    ...     tx.new_insert(USERS).set(USER_ID, "u1").execute()
    >>> total = count()
    >>> db.run_in_tx(lambda tx: tx.new_select(total).from_(USERS).execute()
    ...     .get_first(lambda r: r.get(total)))
    1

Any exception escaping the ``with`` block marks the transaction
rollback-only and propagates; otherwise the transaction commits when the
block ends.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from sqlspine.connection import connection_info, create_db_engine, default_process_ref
from sqlspine.dialect import Dialect, dialect_for_url, get_dialect
from sqlspine.errors import DatabaseConnectionError, SqlSpineError
from sqlspine.logging import LogContext, get_logger
from sqlspine.settings import DbSettings, get_settings
from sqlspine.tx import Tx, _current_tx

logger = get_logger(__name__)

T = TypeVar("T")


class Db:
    """A configured database.

    Args:
        url: Connection URL; also selects the dialect unless ``dialect`` is given
        user: User name, overriding any in ``url``
        password: Password, overriding any in ``url``
        process_ref: Identifies this process in the schema lock (default ``pid@host``)
        dialect: Dialect instance or registered name
        connection_factory: Zero-argument callable returning a DB-API
            connection; replaces the SQLAlchemy pool (needed for ``jdbc:h2:``)
    """

    def __init__(
        self,
        url: str = "sqlite://",
        *,
        user: str | None = None,
        password: str | None = None,
        process_ref: str | None = None,
        dialect: Dialect | str | None = None,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        pool_timeout: float | None = None,
        echo: bool = False,
        connection_factory: Callable[[], Any] | None = None,
    ):
        self.url = url
        if isinstance(dialect, str):
            dialect = get_dialect(dialect)
        self.dialect: Dialect = dialect or dialect_for_url(url)
        self.process_ref = process_ref or default_process_ref()
        self._connection_factory = connection_factory
        self.engine = None
        if connection_factory is None:
            self.engine = create_db_engine(
                url,
                user=user,
                password=password,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                echo=echo,
            )
        logger.debug(
            "db.created",
            dialect=self.dialect.name,
            process_ref=self.process_ref,
            url=connection_info(url).url if self.engine is not None else url,
        )

    @classmethod
    def from_settings(cls, settings: DbSettings | None = None, **kwargs: Any) -> Db:
        """Build a ``Db`` from settings (the cached environment settings by default)."""
        if settings is None:
            settings = get_settings()
        return cls(
            settings.url,
            user=settings.user,
            password=settings.password,
            process_ref=settings.process_ref,
            dialect=settings.dialect,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            echo=settings.echo,
            **kwargs,
        )

    # -- Connections ---------------------------------------------------------

    def get_connection(self) -> Any:
        try:
            if self._connection_factory is not None:
                return self._connection_factory()
            return self.engine.raw_connection()
        except SqlSpineError:
            raise
        except Exception as e:
            raise DatabaseConnectionError(
                f"Couldn't get a connection for {self.url}: {e}", cause=e
            ) from e

    # -- Transactions --------------------------------------------------------

    @contextmanager
    def tx(self) -> Iterator[Tx]:
        """Open a transaction that is the current transaction until the block ends."""
        connection = self.get_connection()
        tx = Tx(self, connection)
        token = _current_tx.set(tx)
        try:
            with LogContext(tx=str(tx)):
                logger.debug("tx.started", tx=str(tx))
                try:
                    yield tx
                except BaseException as e:
                    tx.set_rollback_only(e)
                    raise
                finally:
                    tx.end()
        finally:
            _current_tx.reset(token)
            try:
                connection.close()
            except Exception:
                logger.warning("tx.connection_close_failed", tx=str(tx), exc_info=True)

    def run_in_tx(self, logic: Callable[[Tx], T]) -> T | Any:
        """Run ``logic`` in a new transaction.

        Returns what ``logic`` returns or, when that is None, ``tx.result``.
        """
        with self.tx() as tx:
            result = logic(tx)
            return result if result is not None else tx.result

    def close(self) -> None:
        """Dispose of the connection pool."""
        if self.engine is not None:
            self.engine.dispose()

    def __repr__(self) -> str:
        return f"<Db dialect={self.dialect.name} process_ref={self.process_ref!r}>"


__all__ = ["Db"]
