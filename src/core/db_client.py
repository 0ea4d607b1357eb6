"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a database operation fails."""


class StoreUnavailableError(DatabaseError):
    """Raised when the database cannot be reached at all."""


class DuplicateRecordError(DatabaseError):
    """Raised when an insert or update violates a uniqueness constraint."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist (or is not visible to the caller)."""


_UNAVAILABLE_PHRASES = ("unable to open database", "database is locked", "disk i/o error")


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and not isinstance(value, bool) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_sql_value(val: Any) -> Any:
    """Convert a Python value to something SQLite can bind."""
    if isinstance(val, datetime | date):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def _wrap_error(error: Exception, *, action: str, collection: str) -> DatabaseError:
    """Translate a low-level sqlite error into the client's error hierarchy."""
    error_str = str(error).lower()
    if isinstance(error, aiosqlite.IntegrityError) and "unique constraint failed" in error_str:
        return DuplicateRecordError(f"Duplicate record in {collection}: {error}")
    if isinstance(error, aiosqlite.OperationalError):
        if "no such table" in error_str:
            return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
        if any(phrase in error_str for phrase in _UNAVAILABLE_PHRASES):
            return StoreUnavailableError(f"Database unavailable while trying to {action} {collection}: {error}")
    return DatabaseError(f"Failed to {action} {collection}: {error}")


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str:
    """Prepare a quoted filter value for binding.

    Quoted values are always bound as text. SQLite column affinity converts
    them for INTEGER columns, while TEXT columns compare them verbatim, so
    "007" never matches "7".
    """
    if is_like:
        escaped = value.replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"
    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _unescape(raw_value: str, quote: str) -> str:
    """Undo the escaping applied by sanitize_param."""
    if quote == '"':
        try:
            return json.loads(f'"{raw_value}"')
        except json.JSONDecodeError as e:
            msg = f"Invalid escape sequence in filter value: {raw_value}"
            raise ValueError(msg) from e
    return re.sub(r"\\(.)", r"\1", raw_value)


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.fullmatch(
        r"""(\w+)\s*(>=|<=|!=|=|>|<|~)\s*(['"])((?:\\.|(?!\3).)*)\3""",
        comparison.strip(),
        re.DOTALL,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = _unescape(match.group(4), match.group(3))

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = _split_top_level(inner, "||")
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_top_level(filter_query: str, separator: str) -> list[str]:
    """Split on a separator outside quoted values and parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0
    quote: str | None = None
    escaped = False

    for char in filter_query:
        current += char

        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in "'\"":
            quote = char
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1
        elif paren_depth == 0 and current.endswith(separator):
            parts.append(current[: -len(separator)].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    return _split_top_level(filter_query, "&&")


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate a "-field,+other" / "field DESC" sort into an ORDER BY clause."""
    if not sort:
        return "id ASC"

    clauses = []
    for raw_term in sort.split(","):
        term = raw_term.strip()
        if term and term[0] in "+-":
            direction = "DESC" if term[0] == "-" else "ASC"
            term = f"{term[1:]} {direction}"

        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", term, re.IGNORECASE):
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        clauses.append(term)

    return ", ".join(clauses)


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()

# Connections are shared per loop, so writes are serialized to keep one
# caller's commit from flushing another caller's open transaction.
_write_locks: dict[tuple[int, int, str], asyncio.Lock] = {}
_in_transaction: ContextVar[bool] = ContextVar("db_in_transaction", default=False)


def _cache_key(db_path: str | None = None) -> tuple[int, int, str]:
    return (threading.get_ident(), id(asyncio.get_running_loop()), str(get_db_path(db_path)))


@asynccontextmanager
async def _write_access() -> AsyncIterator[None]:
    """Hold the write lock unless the caller already runs inside transaction()."""
    if _in_transaction.get():
        yield
        return

    lock = _write_locks.setdefault(_cache_key(), asyncio.Lock())
    async with lock:
        yield


async def _commit(conn: aiosqlite.Connection) -> None:
    if not _in_transaction.get():
        await conn.commit()


async def _rollback(conn: aiosqlite.Connection) -> None:
    # Inside transaction() the whole unit is rolled back when the error leaves the block.
    if not _in_transaction.get():
        await conn.rollback()


@asynccontextmanager
async def transaction() -> AsyncIterator[None]:
    """Run the enclosed writes as one atomic unit.

    Every create/update/delete inside the block shares a single
    ``BEGIN IMMEDIATE`` and is committed on exit. Any exception rolls all of
    them back. A nested block joins the outer transaction.
    """
    if _in_transaction.get():
        yield
        return

    conn = await get_connection()
    async with _write_locks.setdefault(_cache_key(), asyncio.Lock()):
        try:
            await conn.execute("BEGIN IMMEDIATE")
        except aiosqlite.Error as e:
            logger.error("begin_transaction_failed", extra={"error": str(e)})
            raise _wrap_error(e, action="begin transaction on", collection="database") from e

        token = _in_transaction.set(True)
        try:
            yield
        except BaseException:
            await conn.rollback()
            logger.warning("Rolled back transaction")
            raise
        else:
            try:
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                logger.error("commit_transaction_failed", extra={"error": str(e)})
                raise _wrap_error(e, action="commit transaction on", collection="database") from e
        finally:
            _in_transaction.reset(token)


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(path))
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute("PRAGMA journal_mode = WAL")
        except (OSError, aiosqlite.Error) as e:
            logger.error("sqlite_connect_failed", extra={"db_path": str(path), "error": str(e)})
            msg = f"Could not open SQLite database at {path}: {e}"
            raise StoreUnavailableError(msg) from e

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            _write_locks.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info("Closed SQLite connection", extra={"db_path": str(path)})
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    conn = await get_connection()

    async with _write_access():
        try:
            columns = list(data.keys())
            columns_str = ", ".join(columns)
            placeholders_str = ", ".join("?" for _ in columns)
            values = [_to_sql_value(data[key]) for key in columns]

            query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, values)
            await _commit(conn)
        except aiosqlite.Error as e:
            await _rollback(conn)
            wrapped = _wrap_error(e, action="create record in", collection=collection)
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            raise wrapped from e

    record_id = cursor.lastrowid
    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    conn = await get_connection()

    try:
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except ValueError as e:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg) from e
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, action="get record from", collection=collection) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    columns = [description[0] for description in cursor.description]
    record = dict(zip(columns, row, strict=True))

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _convert_record_ids(record)


async def _execute_update(
    *, collection: str, record_id: str, data: dict[str, Any], expected: dict[str, Any] | None = None
) -> int:
    """Run UPDATE ... WHERE id = ? (plus one equality per expected field) and return the rowcount."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    for field in [*data, *(expected or {})]:
        _validate_collection_name(field)
    conn = await get_connection()

    async with _write_access():
        try:
            set_clause = ", ".join(f"{key} = ?" for key in data)
            values = [_to_sql_value(val) for val in data.values()]
            values.append(int(record_id))
            where_clause = "id = ?"
            for key, val in (expected or {}).items():
                where_clause += f" AND {key} = ?"
                values.append(_to_sql_value(val))

            query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - names are validated
            cursor = await conn.execute(query, values)
            await _commit(conn)
        except ValueError as e:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg) from e
        except aiosqlite.Error as e:
            await _rollback(conn)
            logger.error(
                "update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise _wrap_error(e, action="update record in", collection=collection) from e

    return cursor.rowcount


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    rowcount = await _execute_update(collection=collection, record_id=record_id, data=data)
    if rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def compare_and_update_record(
    *, collection: str, record_id: str, expected: dict[str, Any], data: dict[str, Any]
) -> dict[str, Any] | None:
    """Update a record only while its stored values still equal ``expected``.

    The check and the write are a single UPDATE statement, so two callers
    racing on the same expected value cannot both succeed.

    Returns:
        The updated record, or None if the record is gone or any expected
        value has changed since the caller read it.
    """
    rowcount = await _execute_update(collection=collection, record_id=record_id, data=data, expected=expected)
    if rowcount == 0:
        logger.info(
            "Conditional update matched no record",
            extra={"collection": collection, "record_id": record_id, "expected": expected},
        )
        return None

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    conn = await get_connection()

    async with _write_access():
        try:
            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            await _commit(conn)
        except aiosqlite.Error as e:
            await _rollback(conn)
            logger.error(
                "delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise _wrap_error(e, action="delete record from", collection=collection) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)
    conn = await get_connection()

    where_clause = ""
    params: list[Any] = []
    if filter_query:
        where_clause, params = parse_filter(filter_query)
        where_clause = f"WHERE {where_clause}"

    order_by = parse_sort(sort)
    offset = (page - 1) * per_page

    try:
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*params, per_page, offset])
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, action="list records from", collection=collection) from e

    columns = [description[0] for description in cursor.description]
    records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]

    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, per_page=1, filter_query=filter_query)
    return records[0] if records else None


async def count_records(*, collection: str, filter_query: str = "") -> int:
    """Count records matching the filter."""
    _validate_collection_name(collection)
    conn = await get_connection()

    where_clause, params = parse_filter(filter_query)
    if where_clause:
        where_clause = f"WHERE {where_clause}"

    try:
        query = f"SELECT COUNT(*) FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("count_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, action="count records in", collection=collection) from e

    return int(row[0]) if row else 0


async def list_all_records(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Return every record matching the filter, fetched page by page.

    ``id`` is appended to the sort so rows with equal sort keys keep a stable
    order across pages.
    """
    per_page = constants.DEFAULT_PER_PAGE_LIMIT
    order = f"{sort},id" if sort else "id"
    records: list[dict[str, Any]] = []
    page = 1

    while True:
        batch = await list_records(
            collection=collection, page=page, per_page=per_page, filter_query=filter_query, sort=order
        )
        records.extend(batch)
        if len(batch) < per_page:
            return records
        page += 1
