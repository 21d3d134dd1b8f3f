"""
Warehouse Connection

Process-wide persistence gateway for the data room. Holds a single asyncpg
connection that is established in the background at startup with bounded
retries, and serializes statements over it.

Usage:
    warehouse = Warehouse(settings.database_url)
    warehouse.start()                      # on startup
    async with warehouse.acquire() as conn:
        rows = await conn.fetch("SELECT ... WHERE id = $1", item_id)
    async with warehouse.transaction() as conn:
        ...                                # multi-statement sequences
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any
from typing import AsyncIterator
from typing import Optional

import asyncpg
from loguru import logger

from vdr_api.errors import PersistenceError


class WarehouseConnectionError(PersistenceError):
    """The warehouse could not be reached after all connection attempts."""


class QueryError(PersistenceError):
    """A statement failed; carries the statement text for diagnostics."""

    def __init__(self, message: str, statement: str):
        super().__init__(message)
        self.statement = statement

    def __str__(self) -> str:
        return f"{self.message} | SQL: {self.statement}"


class WarehouseSession:
    """Statement API over the shared connection; wraps driver errors into QueryError."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def fetch(self, statement: str, *args: Any) -> list[dict[str, Any]]:
        """Run a query and return all rows as dicts."""
        try:
            rows = await self._conn.fetch(statement, *args)
        except asyncpg.PostgresError as e:
            raise QueryError(str(e), statement) from e
        return [dict(row) for row in rows]

    async def fetchrow(self, statement: str, *args: Any) -> Optional[dict[str, Any]]:
        """Run a query and return the first row as a dict, or None."""
        try:
            row = await self._conn.fetchrow(statement, *args)
        except asyncpg.PostgresError as e:
            raise QueryError(str(e), statement) from e
        return dict(row) if row is not None else None

    async def fetchval(self, statement: str, *args: Any) -> Any:
        """Run a query and return the first column of the first row."""
        try:
            return await self._conn.fetchval(statement, *args)
        except asyncpg.PostgresError as e:
            raise QueryError(str(e), statement) from e

    async def execute(self, statement: str, *args: Any) -> str:
        """Run a statement and return its status tag (e.g. ``UPDATE 1``)."""
        try:
            return await self._conn.execute(statement, *args)
        except asyncpg.PostgresError as e:
            raise QueryError(str(e), statement) from e

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator["WarehouseSession"]:
        """Yield this session; lets repositories run unchanged inside a transaction."""
        yield self

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["WarehouseSession"]:
        """Open a savepoint inside the current transaction."""
        async with self._conn.transaction():
            yield self


def affected_rows(status_tag: str) -> int:
    """Return the row count from a status tag such as ``DELETE 3``."""
    try:
        return int(status_tag.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


def _log_connect_failure(task: asyncio.Task) -> None:
    """Retrieve the background connect result so a failure is logged once, not lost."""
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Background warehouse connect failed: {task.exception()}")


class Warehouse:
    """Single shared warehouse connection with retry-on-connect and readiness signalling."""

    def __init__(
        self,
        connection_string: str,
        connect_attempts: int = 5,
        connect_delay_seconds: float = 2.0,
        command_timeout: float = 60.0,
    ):
        """
        Initialize the gateway without connecting.

        Args:
            connection_string: PostgreSQL connection string
            connect_attempts: Attempts before raising WarehouseConnectionError
            connect_delay_seconds: Base delay; attempt N sleeps N times this value before retrying
            command_timeout: Per-statement timeout in seconds
        """
        self.connection_string = connection_string
        self.connect_attempts = connect_attempts
        self.connect_delay_seconds = connect_delay_seconds
        self.command_timeout = command_timeout
        self._conn: Optional[asyncpg.Connection] = None
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._connect_task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        """True once a connection is established and has not been found closed."""
        return self._ready.is_set() and self._conn is not None and not self._conn.is_closed()

    def start(self) -> asyncio.Task:
        """Begin connecting in the background; statements wait for readiness."""
        if self._connect_task is None or (self._connect_task.done() and not self.is_ready):
            self._connect_task = asyncio.create_task(self.connect())
            self._connect_task.add_done_callback(_log_connect_failure)
        return self._connect_task

    async def connect(self) -> None:
        """
        Establish the connection, retrying with linearly increasing delays.

        Raises:
            WarehouseConnectionError: All attempts failed
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.connect_attempts + 1):
            try:
                logger.info("Connecting to warehouse", attempt=attempt, max_attempts=self.connect_attempts)
                self._conn = await asyncpg.connect(
                    self.connection_string,
                    command_timeout=self.command_timeout,
                    timeout=15,
                )
                self._ready.set()
                logger.success("Warehouse connection established", attempt=attempt)
                return
            except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
                last_error = e
                logger.warning(
                    f"Warehouse connection attempt {attempt} failed: {e}",
                    attempt=attempt,
                    max_attempts=self.connect_attempts,
                )
                if attempt < self.connect_attempts:
                    await asyncio.sleep(self.connect_delay_seconds * attempt)

        logger.error("Warehouse unreachable after all attempts", attempts=self.connect_attempts)
        raise WarehouseConnectionError(
            f"Unable to connect to warehouse after {self.connect_attempts} attempts: {last_error}"
        ) from last_error

    async def wait_ready(self) -> None:
        """
        Wait until the connection is usable, reconnecting if it was lost.

        Raises:
            WarehouseConnectionError: Connecting failed
        """
        if self._conn is not None and self._conn.is_closed():
            logger.warning("Warehouse connection lost - reconnecting")
            self._ready.clear()
            self._conn = None

        if self._ready.is_set():
            return

        # A finished task without readiness means the previous connect failed
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self.connect())

        await asyncio.shield(self._connect_task)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[WarehouseSession]:
        """
        Borrow the shared connection exclusively for the duration of the block.

        Usage:
            async with warehouse.acquire() as conn:
                row = await conn.fetchrow("SELECT ...", arg)
        """
        async with self._lock:
            await self.wait_ready()
            yield WarehouseSession(self._conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[WarehouseSession]:
        """Borrow the connection and run the block inside a database transaction."""
        async with self._lock:
            await self.wait_ready()
            async with self._conn.transaction():
                yield WarehouseSession(self._conn)

    async def health_check(self) -> bool:
        """
        Check if the warehouse connection is healthy.

        Returns:
            True if ``SELECT 1`` succeeds, False otherwise
        """
        if not self.is_ready:
            return False
        try:
            async with self.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except PersistenceError as e:
            logger.error(f"Warehouse health check failed: {e}")
            return False

    async def close(self) -> None:
        """Cancel a pending connect and close the connection."""
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self._conn is not None and not self._conn.is_closed():
            logger.info("Closing warehouse connection")
            await self._conn.close()
        self._conn = None
        self._ready.clear()
        self._connect_task = None
