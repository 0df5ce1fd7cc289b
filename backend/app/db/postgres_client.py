"""
PostgreSQL database client using psycopg2.
Provides a connection pool, a fluent query builder and a transaction
scope that runs several builders on one connection.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
import psycopg2.pool
import psycopg2.extras
import logging

from shared_config import settings

logger = logging.getLogger(__name__)

# Connection pool
_pool = None
_pool_lock = threading.Lock()

# ThreadedConnectionPool raises once maxconn is checked out; callers
# wait on this instead.
_slots = threading.BoundedSemaphore(settings.DB_POOL_MAX)


def get_pool():
    """Get or create the connection pool."""
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                _pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=settings.DB_POOL_MIN,
                    maxconn=settings.DB_POOL_MAX,
                    dsn=settings.DATABASE_URL,
                )
                logger.info("PostgreSQL connection pool created")
    return _pool


def get_conn():
    """Get a connection from the pool, blocking until one is free."""
    _slots.acquire()
    try:
        return get_pool().getconn()
    except Exception:
        _slots.release()
        raise


def put_conn(conn):
    """Return a connection to the pool."""
    try:
        get_pool().putconn(conn)
    finally:
        _slots.release()


class DBResult:
    """Wraps query results to provide a consistent interface."""
    def __init__(self, data=None, count=None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class QueryBuilder:
    """
    Fluent query builder over raw psycopg2.

    Usage:  db.table("events").select("created_at").eq("form_id", fid).gte("created_at", ts).execute()

    When bound to a connection (inside Database.transaction) statements are
    neither committed nor returned to the pool; the transaction owns both.
    """

    def __init__(self, table_name: str, conn=None):
        self._table = table_name
        self._conn = conn
        self._select_cols = "*"
        self._filters = []
        self._filter_values = []
        self._order_col = None
        self._order_desc = False
        self._limit_val = None
        self._offset_val = None
        self._for_update = False
        self._group_col = None
        self._operation = None  # select, count, group_count, insert, update, delete
        self._data = None

    def select(self, columns: str = "*") -> "QueryBuilder":
        self._operation = "select"
        self._select_cols = columns
        return self

    def insert(self, data: dict) -> "QueryBuilder":
        self._operation = "insert"
        self._data = data
        return self

    def update(self, data: dict) -> "QueryBuilder":
        self._operation = "update"
        self._data = data
        return self

    def delete(self) -> "QueryBuilder":
        self._operation = "delete"
        return self

    # ── Filters ──────────────────────────────────────────────────

    def eq(self, column: str, value) -> "QueryBuilder":
        self._filters.append(f"{column} = %s")
        self._filter_values.append(value)
        return self

    def in_(self, column: str, values, cast: str = "uuid") -> "QueryBuilder":
        # psycopg2 sends a list of str as text[]; the cast keeps uuid = uuid
        self._filters.append(f"{column} = ANY(%s::{cast}[])")
        self._filter_values.append(list(values))
        return self

    def gte(self, column: str, value) -> "QueryBuilder":
        self._filters.append(f"{column} >= %s")
        self._filter_values.append(value)
        return self

    def is_null(self, column: str) -> "QueryBuilder":
        self._filters.append(f"{column} IS NULL")
        return self

    def not_null(self, column: str) -> "QueryBuilder":
        self._filters.append(f"{column} IS NOT NULL")
        return self

    # ── Modifiers ────────────────────────────────────────────────

    def order(self, column: str, desc: bool = False) -> "QueryBuilder":
        self._order_col = column
        self._order_desc = desc
        return self

    def limit(self, n: int) -> "QueryBuilder":
        self._limit_val = n
        return self

    def range(self, start: int, end: int) -> "QueryBuilder":
        self._offset_val = start
        self._limit_val = end - start + 1
        return self

    def for_update(self) -> "QueryBuilder":
        self._for_update = True
        return self

    # ── Terminal aggregates ──────────────────────────────────────

    def count(self) -> int:
        """Execute SELECT COUNT(*) with the current filters."""
        self._operation = "count"
        return self.execute().count

    def group_count(self, column: str) -> dict:
        """Execute a GROUP BY on `column` and return {value: row count}."""
        self._operation = "group_count"
        self._group_col = column
        result = self.execute()
        return {row[column]: row["count"] for row in result.data}

    # ── Execution ────────────────────────────────────────────────

    def execute(self) -> DBResult:
        """Execute the built query and return results."""
        if self._conn is not None:
            return self._run(self._conn)

        conn = get_conn()
        try:
            result = self._run(conn)
            conn.commit()
            return result
        except Exception as e:
            conn.rollback()
            logger.error(f"DB error on {self._table}: {e}")
            raise
        finally:
            put_conn(conn)

    def _run(self, conn) -> DBResult:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            if self._operation == "select":
                return self._exec_select(cur)
            elif self._operation == "count":
                return self._exec_count(cur)
            elif self._operation == "group_count":
                return self._exec_group_count(cur)
            elif self._operation == "insert":
                return self._exec_insert(cur)
            elif self._operation == "update":
                return self._exec_update(cur)
            elif self._operation == "delete":
                return self._exec_delete(cur)
            else:
                raise ValueError("No operation set. Call select/insert/update/delete first.")

    def _where_clause(self):
        if self._filters:
            return " WHERE " + " AND ".join(self._filters)
        return ""

    def _exec_select(self, cur):
        sql = f"SELECT {self._select_cols} FROM {self._table}"
        sql += self._where_clause()

        if self._order_col:
            direction = "DESC" if self._order_desc else "ASC"
            sql += f" ORDER BY {self._order_col} {direction}"
        if self._limit_val:
            sql += f" LIMIT {self._limit_val}"
        if self._offset_val:
            sql += f" OFFSET {self._offset_val}"
        if self._for_update:
            sql += " FOR UPDATE"

        cur.execute(sql, list(self._filter_values))
        return DBResult(data=[dict(row) for row in cur.fetchall()])

    def _exec_count(self, cur):
        sql = f"SELECT COUNT(*) AS count FROM {self._table}" + self._where_clause()
        cur.execute(sql, list(self._filter_values))
        return DBResult(count=cur.fetchone()["count"])

    def _exec_group_count(self, cur):
        col = self._group_col
        sql = (
            f"SELECT {col}, COUNT(*) AS count FROM {self._table}"
            f"{self._where_clause()} GROUP BY {col}"
        )
        cur.execute(sql, list(self._filter_values))
        return DBResult(data=[dict(row) for row in cur.fetchall()])

    def _exec_insert(self, cur):
        # Serialize dict/list values as JSON
        data = self._serialize_json_fields(self._data)
        columns = ", ".join(data.keys())
        placeholders = ", ".join(["%s"] * len(data))

        sql = f"INSERT INTO {self._table} ({columns}) VALUES ({placeholders}) RETURNING *"
        cur.execute(sql, list(data.values()))
        row = cur.fetchone()
        return DBResult(data=[dict(row)] if row else [])

    def _exec_update(self, cur):
        data = self._serialize_json_fields(self._data)
        set_clause = ", ".join([f"{k} = %s" for k in data.keys()])
        values = list(data.values()) + list(self._filter_values)

        sql = f"UPDATE {self._table} SET {set_clause}{self._where_clause()} RETURNING *"
        cur.execute(sql, values)
        return DBResult(data=[dict(row) for row in cur.fetchall()])

    def _exec_delete(self, cur):
        sql = f"DELETE FROM {self._table}{self._where_clause()} RETURNING *"
        cur.execute(sql, list(self._filter_values))
        return DBResult(data=[dict(r) for r in cur.fetchall()])

    def _serialize_json_fields(self, data: dict) -> dict:
        """Convert dict/list values to psycopg2 Json wrappers."""
        result = {}
        for k, v in data.items():
            if isinstance(v, (dict, list)):
                result[k] = psycopg2.extras.Json(v)
            else:
                result[k] = v
        return result


class Transaction:
    """Hands out query builders bound to a single connection."""

    def __init__(self, conn):
        self._conn = conn

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(name, conn=self._conn)


class Database:
    """
    Entry point for queries.
    Usage:  db.table("events").select("*").eq("form_id", "123").execute()
    """

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(name)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """All-or-nothing scope: commit on clean exit, rollback on any error."""
        conn = get_conn()
        try:
            yield Transaction(conn)
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise
        finally:
            put_conn(conn)


# Singleton
_db_instance: Optional[Database] = None


def get_db() -> Database:
    """Get the singleton Database instance."""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
    return _db_instance
