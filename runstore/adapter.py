"""
Storage adapters: one class per supported backend behind a common interface.

The adapter owns the SQLAlchemy engine and a single connection that is opened on
first use and kept until :meth:`StorageAdapter.close`. Statements run in
autocommit mode, so every insert or select commits on its own.
"""
from __future__ import annotations

import abc
import enum
import logging
import time
from collections.abc import Mapping
from typing import Any

import sqlalchemy
from sqlalchemy import event, literal
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from runstore.errors import QueryTimeout, StorageConnectionError

logger = logging.getLogger("runstore")


class Backend(str, enum.Enum):
    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"


class StorageAdapter(abc.ABC):
    """Execute SQL against one backend and hide its dialect differences"""

    backend: Backend
    binary_type: sqlalchemy.types.TypeEngine = sqlalchemy.LargeBinary()

    def __init__(self, db_url: str, query_timeout: float | None = None, **engine_kwargs):
        self.db_url = db_url
        self.query_timeout = query_timeout
        self._engine_kwargs = engine_kwargs
        self._engine: Engine | None = None
        self._conn: Connection | None = None
        self._last: CursorResult | None = None

    # Engine / connection lifecycle

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = sqlalchemy.create_engine(
                self.db_url, future=True, **self._engine_kwargs
            )
            self.install_hooks(self._engine)
        return self._engine

    def install_hooks(self, engine: Engine) -> None:
        """Run :meth:`session_statements` on every new DBAPI connection"""
        if not self.session_statements():
            return

        @event.listens_for(engine, "connect")
        def _init_session(dbapi_conn, record):
            self.init_session(dbapi_conn)

    def session_statements(self) -> list[str]:
        """Session-level ``SET`` statements, e.g. the per-query timeout"""
        return []

    def init_session(self, dbapi_conn) -> None:
        cursor = dbapi_conn.cursor()
        try:
            for statement in self.session_statements():
                cursor.execute(statement)
        finally:
            cursor.close()

    def connect(self) -> Connection:
        if self._conn is None:
            try:
                conn = self.engine.connect()
            except (OperationalError, InterfaceError) as e:
                logger.error("Could not connect to %s: %s", self.backend.value, e)
                raise StorageConnectionError(
                    f"Unable to connect to {self.backend.value} database"
                ) from e
            self._conn = conn.execution_options(isolation_level="AUTOCOMMIT")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    # Statements

    def prepare(self, sql):
        if isinstance(sql, str):
            return sqlalchemy.text(sql)
        return sql

    def execute(self, statement, params: Mapping[str, Any] | None = None) -> CursorResult:
        conn = self.connect()
        statement = self.prepare(statement)
        try:
            if params:
                result = conn.execute(statement, dict(params))
            else:
                result = conn.execute(statement)
        except OperationalError as e:
            if self.is_timeout(e):
                logger.warning("Query cancelled after %ss: %s", self.query_timeout, e.statement)
                raise QueryTimeout(
                    f"Query exceeded the {self.query_timeout}s timeout"
                ) from e
            raise
        self._last = result
        return result

    @staticmethod
    def fetch(resultset: CursorResult) -> dict[str, Any] | None:
        row = resultset.fetchone()
        return None if row is None else dict(row._mapping)

    def affected_rows(self) -> int:
        return self._last.rowcount if self._last is not None else 0

    def escape(self, raw: str) -> str:
        """Escape ``raw`` for use inside a single-quoted SQL string literal"""
        return raw.replace("'", "''")

    def bind_binary(self, statement, param: str, value: bytes):
        """Bind ``value`` to the ``param`` column of an INSERT through the
        backend's binary-safe path"""
        return statement.values({param: literal(value, type_=self.binary_type)})

    def is_timeout(self, error: DBAPIError) -> bool:
        return False

    # Dialect fragments

    @abc.abstractmethod
    def unix_timestamp(self, column: str) -> str:
        """SQL expression for ``column`` as integer seconds since the epoch"""

    @abc.abstractmethod
    def date_sub(self, days: int) -> str:
        """SQL expression for today's date minus ``days`` days"""


class SQLiteAdapter(StorageAdapter):
    backend = Backend.SQLITE

    # Number of virtual machine instructions between deadline checks
    PROGRESS_STEPS = 1000

    def install_hooks(self, engine: Engine) -> None:
        super().install_hooks(engine)
        if self.query_timeout is None:
            return
        timeout = self.query_timeout

        @event.listens_for(engine, "connect")
        def _progress_handler(dbapi_conn, record):
            record.info["deadline"] = None

            def check():
                deadline = record.info.get("deadline")
                return int(deadline is not None and time.monotonic() > deadline)

            dbapi_conn.set_progress_handler(check, self.PROGRESS_STEPS)

        @event.listens_for(engine, "before_cursor_execute")
        def _arm(conn, cursor, statement, parameters, context, executemany):
            conn.info["deadline"] = time.monotonic() + timeout

        @event.listens_for(engine, "after_cursor_execute")
        def _disarm(conn, cursor, statement, parameters, context, executemany):
            conn.info["deadline"] = None

    def is_timeout(self, error: DBAPIError) -> bool:
        return "interrupted" in str(error.orig)

    def unix_timestamp(self, column: str) -> str:
        return f"CAST(strftime('%s', {column}) AS INTEGER)"

    def date_sub(self, days: int) -> str:
        return f"DATE('now', '-{int(days)} days')"


class MySQLAdapter(StorageAdapter):
    backend = Backend.MYSQL

    # MySQL treats binary data as strings
    binary_type = sqlalchemy.String()

    def session_statements(self) -> list[str]:
        # Timestamps are stored as UTC
        statements = ["SET time_zone = '+00:00'"]
        if self.query_timeout is not None:
            millis = int(self.query_timeout * 1000)
            statements.append(f"SET SESSION max_execution_time = {millis}")
        return statements

    def is_timeout(self, error: DBAPIError) -> bool:
        args = getattr(error.orig, "args", ())
        return bool(args) and args[0] == 3024

    def escape(self, raw: str) -> str:
        return super().escape(raw.replace("\\", "\\\\"))

    def unix_timestamp(self, column: str) -> str:
        return f"UNIX_TIMESTAMP({column})"

    def date_sub(self, days: int) -> str:
        return f"DATE_SUB(CURDATE(), INTERVAL {int(days)} DAY)"


class PostgreSQLAdapter(StorageAdapter):
    backend = Backend.POSTGRESQL

    def session_statements(self) -> list[str]:
        statements = ["SET TIME ZONE 'UTC'"]
        if self.query_timeout is not None:
            millis = int(self.query_timeout * 1000)
            statements.append(f"SET statement_timeout = {millis}")
        return statements

    def init_session(self, dbapi_conn) -> None:
        # A SET inside the implicit transaction is undone by the rollback that
        # precedes the switch to AUTOCOMMIT
        autocommit = dbapi_conn.autocommit
        dbapi_conn.autocommit = True
        try:
            super().init_session(dbapi_conn)
        finally:
            dbapi_conn.autocommit = autocommit

    def is_timeout(self, error: DBAPIError) -> bool:
        # query_canceled
        return getattr(error.orig, "pgcode", None) == "57014"

    def unix_timestamp(self, column: str) -> str:
        return f"CAST(EXTRACT(EPOCH FROM {column}) AS BIGINT)"

    def date_sub(self, days: int) -> str:
        return f"CURRENT_DATE - INTERVAL '{int(days)} days'"


ADAPTERS: dict[Backend, type[StorageAdapter]] = {
    Backend.SQLITE: SQLiteAdapter,
    Backend.MYSQL: MySQLAdapter,
    Backend.POSTGRESQL: PostgreSQLAdapter,
}


def make_adapter(settings) -> StorageAdapter:
    """Instantiate the adapter for ``settings.backend``"""
    cls = ADAPTERS[Backend(settings.backend)]
    return cls(settings.db_url, query_timeout=settings.query_timeout)
