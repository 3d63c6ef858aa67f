"""
Safe KuzuDB Connection Manager

Provides thread-safe access to the embedded KuzuDB database. One
``kuzu.Database`` is opened per process; every query runs on its own
short-lived connection while holding a reentrant lock, and rows are
materialized before the connection is released.
"""

import threading
import logging
import kuzu  # type: ignore
import os
import time
from typing import Optional, Dict, Any, List, Generator
from contextlib import contextmanager
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

# Logging controls
_QUERY_LOG_ENABLED = os.getenv('KUZU_QUERY_LOG', 'false').lower() in ('1', 'true', 'on', 'yes')
try:
    _SLOW_QUERY_MS = int(os.getenv('KUZU_SLOW_QUERY_MS', '150'))
except ValueError:
    _SLOW_QUERY_MS = 150

DATABASE_FILENAME = 'tastelog.db'


def _to_db_value(value: Any) -> Any:
    """Kuzu TIMESTAMP columns take naive UTC datetimes."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, dict) and '_label' in value:
        # Node/relationship values come back with internal _id/_label keys
        return {k: _from_db_value(v) for k, v in value.items() if not k.startswith('_')}
    return value


def _convert_query_result_to_list(result) -> List[Dict[str, Any]]:
    """Convert a KuzuDB query result to a list of column -> value dicts."""
    if isinstance(result, list):
        # Multi-statement queries return one result per statement
        result = result[-1] if result else None
    if not result:
        return []

    rows = []
    columns = result.get_column_names()
    while result.has_next():
        row = result.get_next()
        rows.append({col: _from_db_value(row[i]) for i, col in enumerate(columns)})
    return rows


class _TransactionScope:
    """Runs queries on the connection that owns an open transaction."""

    def __init__(self, manager: 'SafeKuzuManager', connection: kuzu.Connection):
        self._manager = manager
        self._connection = connection

    def query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._manager._run(self._connection, query, params, operation='transaction')


class SafeKuzuManager:
    """
    Thread-safe KuzuDB connection manager.

    Key Features:
    - Lazy, lock-protected database and schema initialization
    - Connection-per-query pattern to avoid shared state
    - Explicit transactions for multi-statement writes
    """

    def __init__(self, database_path: Optional[str] = None):
        """Initialize manager state (no heavy I/O)."""
        if database_path:
            self.database_path = database_path
        else:
            kuzu_dir = os.getenv('KUZU_DB_PATH', 'data/kuzu')
            self.database_path = os.path.join(kuzu_dir, DATABASE_FILENAME)

        # Reentrant so a transaction can call helpers that query again
        self._lock = threading.RLock()
        self._database: Optional[kuzu.Database] = None
        self._is_initialized = False
        self._total_connections_created = 0

    def _initialize_database(self) -> None:
        if self._is_initialized:
            return

        start_time = time.time()
        logger.info(f"Initializing KuzuDB database at {self.database_path}")
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.database_path)), exist_ok=True)
            self._database = kuzu.Database(self.database_path)

            from ..infrastructure.kuzu_graph import initialize_schema
            connection = kuzu.Connection(self._database)
            try:
                initialize_schema(connection)
            finally:
                connection.close()

            self._is_initialized = True
            logger.info(f"KuzuDB database initialized in {time.time() - start_time:.3f}s")
        except Exception as e:
            logger.error(f"Failed to initialize KuzuDB database: {e}")
            self._database = None
            self._is_initialized = False
            raise

    @contextmanager
    def get_connection(self, operation: str = "unknown") -> Generator[kuzu.Connection, None, None]:
        """
        Get a KuzuDB connection with automatic cleanup.

        The manager lock is held for the lifetime of the connection, so the
        caller must consume results before leaving the block.

        Example:
            with manager.get_connection(operation="list_guilds") as conn:
                result = conn.execute("MATCH (g:Guild) RETURN g")
        """
        with self._lock:
            if not self._is_initialized:
                self._initialize_database()
            if self._database is None:
                raise RuntimeError("KuzuDB database not properly initialized")

            connection = kuzu.Connection(self._database)
            self._total_connections_created += 1
            connection_id = self._total_connections_created
            logger.debug(f"Created connection #{connection_id} for operation '{operation}'")
            try:
                yield connection
            except Exception as e:
                logger.error(f"Error during KuzuDB operation '{operation}': {e}")
                raise
            finally:
                connection.close()
                logger.debug(f"Closed connection #{connection_id} for operation '{operation}'")

    def _run(self, connection: kuzu.Connection, query: str, params: Optional[Dict[str, Any]],
             operation: str) -> List[Dict[str, Any]]:
        if _QUERY_LOG_ENABLED:
            q_snippet = ' '.join(query.split())[:120]
            logger.info(f"[KUZU] execute op='{operation}' q='{q_snippet}'")

        sanitized = {k: _to_db_value(v) for k, v in (params or {}).items()}
        t0 = time.time()
        result = connection.execute(query, sanitized)
        rows = _convert_query_result_to_list(result)
        elapsed_ms = (time.time() - t0) * 1000
        if elapsed_ms >= _SLOW_QUERY_MS:
            logger.warning(f"[KUZU] slow query op='{operation}' took {elapsed_ms:.0f}ms")
        return rows

    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None,
                      operation: str = "query") -> List[Dict[str, Any]]:
        """Execute a single Cypher statement and return its rows as dicts."""
        with self.get_connection(operation=operation) as conn:
            return self._run(conn, query, params, operation)

    # Alias that reads better at call sites that only fetch
    query = execute_query

    def query_value(self, query: str, params: Optional[Dict[str, Any]] = None,
                    default: Any = None, operation: str = "query") -> Any:
        """Return the first column of the first row, or ``default``."""
        rows = self.execute_query(query, params, operation=operation)
        if not rows:
            return default
        return next(iter(rows[0].values()), default)

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Generator[_TransactionScope, None, None]:
        """
        Run several statements atomically.

        Example:
            with manager.transaction("create_guild") as tx:
                tx.query("CREATE (g:Guild {...})", params)
                tx.query("CREATE (m:GuildMembership {...})", params)
        """
        with self.get_connection(operation=operation) as conn:
            conn.execute("BEGIN TRANSACTION")
            try:
                yield _TransactionScope(self, conn)
            except Exception:
                try:
                    conn.execute("ROLLBACK")
                except RuntimeError as rollback_err:
                    # Kuzu already rolls back a transaction whose statement failed
                    logger.debug(f"Rollback after failed '{operation}' was a no-op: {rollback_err}")
                raise
            else:
                conn.execute("COMMIT")

    def close(self) -> None:
        with self._lock:
            if self._database is not None:
                self._database.close()
            self._database = None
            self._is_initialized = False


_safe_kuzu_manager: Optional[SafeKuzuManager] = None
_manager_lock = threading.Lock()


def get_safe_kuzu_manager() -> SafeKuzuManager:
    """Get the global thread-safe KuzuDB manager instance."""
    global _safe_kuzu_manager

    # Double-checked locking pattern for thread-safe singleton
    if _safe_kuzu_manager is None:
        with _manager_lock:
            if _safe_kuzu_manager is None:
                _safe_kuzu_manager = SafeKuzuManager()
                logger.info("Global SafeKuzuManager instance created")

    return _safe_kuzu_manager


def reset_safe_kuzu_manager(database_path: Optional[str] = None) -> None:
    """
    Reset the global SafeKuzuManager instance.

    The app factory calls this with the configured path; tests use it to
    point each app at a fresh temporary database.
    """
    global _safe_kuzu_manager
    with _manager_lock:
        if _safe_kuzu_manager is not None:
            _safe_kuzu_manager.close()
        _safe_kuzu_manager = SafeKuzuManager(database_path) if database_path else None
