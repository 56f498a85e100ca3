"""SQLite database client wrapper with CRUD operations."""

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from taskhub.core.config import Constants, settings


logger = logging.getLogger(__name__)

FilterParam = str | int | float | bool | None

# Foreign key columns exposed as strings at the Python boundary
_ID_FIELDS = {"id", "assigned_to", "created_by", "user_id", "related_task_id", "template_id", "entity_id"}

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<lparen>\()
      | (?P<rparen>\))
      | (?P<and>&&)
      | (?P<or>\|\|)
      | (?P<field>[A-Za-z_][A-Za-z0-9_]*)\s*(?P<op>>=|<=|!=|=|>|<|~)\s*
        (?:"(?P<dq>(?:[^"\\]|\\.)*)"|'(?P<sq>[^']*)')
    )""",
    re.VERBOSE,
)

_SQL_OPERATORS = {"=": "=", "!=": "!=", ">": ">", "<": "<", ">=": ">=", "<=": "<=", "~": "LIKE"}

_SORT_RE = re.compile(r"^(-?)([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", re.IGNORECASE)


class DuplicateRecordError(RuntimeError):
    """A create or update violated a unique index."""


class RecordNotFoundError(KeyError):
    """No record with the requested id exists in the collection."""


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in a double-quoted filter string."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = dict(record)
    for key, value in converted.items():
        if isinstance(value, int) and key in _ID_FIELDS:
            converted[key] = str(value)
    return converted


def _encode_value(value: Any) -> Any:  # noqa: ANN401
    """Encode a Python value for storage in SQLite."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _parse_value(value: str, *, is_like: bool = False) -> FilterParam:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _comparison(match: re.Match[str]) -> tuple[str, FilterParam]:
    """Build a SQL condition and parameter from a matched comparison token."""
    field = match.group("field")
    sql_op = _SQL_OPERATORS[match.group("op")]
    if match.group("dq") is not None:
        raw_value = json.loads(f'"{match.group("dq")}"')
    else:
        raw_value = match.group("sq")

    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)
    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def parse_filter(filter_query: str) -> tuple[str, list[FilterParam]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports comparisons (``=``, ``!=``, ``>``, ``<``, ``>=``, ``<=``, ``~`` for
    contains) joined with ``&&``, and parenthesized groups of comparisons joined
    with ``||``. Example: ``status = "todo" && (title ~ "x" || description ~ "x")``.

    Raises:
        ValueError: If the filter cannot be parsed
    """
    if not filter_query or not filter_query.strip():
        return "", []

    conditions: list[str] = []
    params: list[FilterParam] = []
    or_group: list[str] | None = None
    expect_operand = True
    pos = 0
    end = len(filter_query.rstrip())

    while pos < end:
        match = _TOKEN_RE.match(filter_query, pos)
        if not match:
            msg = f"Invalid filter syntax: {filter_query}"
            raise ValueError(msg)
        pos = match.end()

        if match.group("field"):
            if not expect_operand:
                msg = f"Missing operator between comparisons: {filter_query}"
                raise ValueError(msg)
            condition, value = _comparison(match)
            (or_group if or_group is not None else conditions).append(condition)
            params.append(value)
            expect_operand = False
        elif match.group("lparen"):
            if or_group is not None or not expect_operand:
                msg = f"Unexpected '(' in filter: {filter_query}"
                raise ValueError(msg)
            or_group = []
        elif match.group("rparen"):
            if or_group is None or not or_group or expect_operand:
                msg = f"Unexpected ')' in filter: {filter_query}"
                raise ValueError(msg)
            conditions.append(f"({' OR '.join(or_group)})")
            or_group = None
        elif match.group("or"):
            if or_group is None or expect_operand:
                msg = f"'||' is only allowed inside parentheses: {filter_query}"
                raise ValueError(msg)
            expect_operand = True
        else:
            if or_group is not None or expect_operand:
                msg = f"Unexpected '&&' in filter: {filter_query}"
                raise ValueError(msg)
            expect_operand = True

    if or_group is not None or expect_operand:
        msg = f"Incomplete filter: {filter_query}"
        raise ValueError(msg)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate ``-field`` / ``field DESC`` sort syntax into an ORDER BY clause."""
    match = _SORT_RE.match(sort.strip()) if sort else None
    if not match:
        if sort:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "id ASC"
    descending = match.group(1) == "-" or (match.group(3) or "").upper() == "DESC"
    return f"{match.group(2)} {'DESC' if descending else 'ASC'}, id {'DESC' if descending else 'ASC'}"


class DatabaseClient:
    """Async SQLite client holding one connection for the lifetime of the app."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = Path(db_path or settings.sqlite_db_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Database connection is not open. Call connect() first."
            raise RuntimeError(msg)
        return self._conn

    async def connect(self) -> None:
        """Open the connection and enable foreign keys."""
        if self._conn is not None:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(self._db_path))
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        self._conn = conn
        logger.info("Opened SQLite connection", extra={"db_path": str(self._db_path)})

    async def close(self) -> None:
        """Close the connection if open."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
            logger.info("Closed SQLite connection", extra={"db_path": str(self._db_path)})
        finally:
            self._conn = None

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record and return it with its assigned id and timestamps."""
        _validate_collection_name(collection)
        now = utc_now_iso()
        row = {"created": now, "updated": now, **data}
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        query = f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608 - collection is validated

        try:
            cursor = await self.connection.execute(query, [_encode_value(row[key]) for key in columns])
            await self.connection.commit()
        except aiosqlite.IntegrityError as e:
            await self.connection.rollback()
            if "UNIQUE" in str(e):
                msg = f"Duplicate record in {collection}: {e}"
                raise DuplicateRecordError(msg) from e
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to create record in {collection}: {e}"
            raise RuntimeError(msg) from e
        except aiosqlite.Error as e:
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to create record in {collection}: {e}"
            raise RuntimeError(msg) from e

        record_id = str(cursor.lastrowid)
        logger.debug("Created record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=record_id)

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Fetch a single record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        if not str(record_id).isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        try:
            query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await self.connection.execute(query, (int(record_id),))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
            msg = f"Failed to get record from {collection}: {e}"
            raise RuntimeError(msg) from e

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        return _convert_record_ids(dict(row))

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record by ID and return the updated record."""
        if not data:
            msg = "Empty update payload"
            raise ValueError(msg)
        _validate_collection_name(collection)
        # Raises RecordNotFoundError before touching anything
        await self.get_record(collection=collection, record_id=record_id)

        row = {**data, "updated": utc_now_iso()}
        set_clause = ", ".join(f"{key} = ?" for key in row)
        values = [_encode_value(value) for value in row.values()]
        values.append(int(record_id))

        try:
            query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
            await self.connection.execute(query, values)
            await self.connection.commit()
        except aiosqlite.IntegrityError as e:
            await self.connection.rollback()
            if "UNIQUE" in str(e):
                msg = f"Duplicate record in {collection}: {e}"
                raise DuplicateRecordError(msg) from e
            msg = f"Failed to update record in {collection}: {e}"
            raise RuntimeError(msg) from e
        except aiosqlite.Error as e:
            logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
            msg = f"Failed to update record in {collection}: {e}"
            raise RuntimeError(msg) from e

        logger.debug("Updated record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=record_id)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        if not str(record_id).isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        try:
            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await self.connection.execute(query, (int(record_id),))
            await self.connection.commit()
        except aiosqlite.Error as e:
            logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
            msg = f"Failed to delete record from {collection}: {e}"
            raise RuntimeError(msg) from e

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        logger.debug("Deleted record", extra={"collection": collection, "record_id": record_id})

    async def delete_records(self, *, collection: str, filter_query: str) -> int:
        """Delete every record matching the filter and return how many were removed."""
        _validate_collection_name(collection)
        where_clause, params = parse_filter(filter_query)
        if not where_clause:
            msg = "delete_records requires a filter"
            raise ValueError(msg)

        try:
            query = f"DELETE FROM {collection} WHERE {where_clause}"  # noqa: S608 - collection is validated
            cursor = await self.connection.execute(query, params)
            await self.connection.commit()
        except aiosqlite.Error as e:
            logger.error("delete_records_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to delete records from {collection}: {e}"
            raise RuntimeError(msg) from e

        logger.debug("Deleted records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering, sorting, and pagination."""
        _validate_collection_name(collection)
        where_clause, params = parse_filter(filter_query)
        where_sql = f"WHERE {where_clause}" if where_clause else ""
        offset = (max(page, 1) - 1) * per_page

        try:
            query = f"SELECT * FROM {collection} {where_sql} ORDER BY {parse_sort(sort)} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
            cursor = await self.connection.execute(query, [*params, per_page, offset])
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to list records from {collection}: {e}"
            raise RuntimeError(msg) from e

        return [_convert_record_ids(dict(row)) for row in rows]

    async def list_all_records(
        self,
        *,
        collection: str,
        filter_query: str = "",
        sort: str = "",
        per_page: int = Constants.DEFAULT_PER_PAGE_LIMIT,
    ) -> list[dict[str, Any]]:
        """List every record matching the filter, fetching page by page."""
        records: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self.list_records(
                collection=collection,
                page=page,
                per_page=per_page,
                filter_query=filter_query,
                sort=sort,
            )
            records.extend(batch)
            if len(batch) < per_page:
                return records
            page += 1

    async def get_first_record(self, *, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
        """Return the first record matching the filter, or None."""
        records = await self.list_records(collection=collection, per_page=1, filter_query=filter_query, sort=sort)
        return records[0] if records else None
