"""In-memory stand-in for the supabase client's PostgREST query builder.

Covers the subset of the builder the app uses: select (with count="exact"),
insert, update, delete, eq/neq/is_/in_/lt/lte/gt/gte filters, multi-key
order, limit and maybe_single. Unique indexes and foreign keys raise
postgrest APIError with the real SQLSTATE codes, and deleting a group
cascades to its rows the way the schema does.

Tests can inject store failures with `fail_next` and interleave a
concurrent writer with `before_next`.
"""

import copy
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from postgrest.exceptions import APIError

UNIQUE_KEYS = {
    "groups": [("id",)],
    "group_members": [("id",), ("group_id", "user_id")],
    "group_invites": [("id",), ("invite_token",)],
    "jobs": [("id",), ("idempotency_key",)],
    "prompt_responses": [("id",), ("group_id", "user_id", "response_date")],
    "messages": [("id",)],
}

# child table -> parent table, joined on child.group_id = groups.id, on delete cascade
GROUP_CHILDREN = ("group_members", "group_invites", "prompt_responses", "messages")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _comparable(value: Any) -> Any:
    if isinstance(value, str) and len(value) >= 19 and value[4] == "-" and value[10] == "T":
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


def api_error(code: str, message: str = "") -> APIError:
    return APIError({"code": code, "message": message or f"error {code}", "details": None, "hint": None})


class FakeResponse:
    def __init__(self, data: Any, count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.operation = "select"
        self.values: Any = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.ordering: List[tuple] = []
        self.row_limit: Optional[int] = None
        self.single = False
        self.count: Optional[str] = None

    # operations

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self.operation = "select"
        self.count = count
        return self

    def insert(self, values) -> "FakeQuery":
        self.operation = "insert"
        self.values = values
        return self

    def update(self, values: Dict[str, Any]) -> "FakeQuery":
        self.operation = "update"
        self.values = values
        return self

    def delete(self) -> "FakeQuery":
        self.operation = "delete"
        return self

    # filters

    def _where(self, predicate) -> "FakeQuery":
        self.filters.append(predicate)
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._where(lambda row: row.get(column) == value)

    def neq(self, column: str, value: Any) -> "FakeQuery":
        return self._where(lambda row: row.get(column) != value)

    def is_(self, column: str, value: Any) -> "FakeQuery":
        if value in ("null", None):
            return self._where(lambda row: row.get(column) is None)
        return self._where(lambda row: row.get(column) is value)

    def in_(self, column: str, values) -> "FakeQuery":
        values = list(values)
        return self._where(lambda row: row.get(column) in values)

    def _compare(self, column: str, value: Any, op) -> "FakeQuery":
        def predicate(row):
            current = row.get(column)
            return current is not None and op(_comparable(current), _comparable(value))
        return self._where(predicate)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a < b)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a <= b)

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a > b)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a >= b)

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.ordering.append((column, desc))
        return self

    def limit(self, size: int) -> "FakeQuery":
        self.row_limit = size
        return self

    def maybe_single(self) -> "FakeQuery":
        self.single = True
        return self

    # execution

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(predicate(row) for predicate in self.filters)

    def execute(self):
        self.db._before(self.table, self.operation)
        rows = self.db.tables.setdefault(self.table, [])
        if self.operation == "insert":
            return FakeResponse(self.db._insert(self.table, self.values))
        if self.operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.values))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)
        if self.operation == "delete":
            deleted = [row for row in rows if self._matches(row)]
            for row in deleted:
                self.db._delete_row(self.table, row)
            return FakeResponse(copy.deepcopy(deleted))

        selected = [copy.deepcopy(row) for row in rows if self._matches(row)]
        for column, desc in reversed(self.ordering):
            selected.sort(key=lambda row: (row.get(column) is None, _comparable(row.get(column))), reverse=desc)
        total = len(selected)
        if self.row_limit is not None:
            selected = selected[:self.row_limit]
        if self.single:
            if not selected:
                # supabase-py returns no response at all for an empty maybe_single
                return None
            if len(selected) > 1:
                raise api_error("PGRST116", "multiple rows returned")
            return FakeResponse(selected[0], total if self.count else None)
        return FakeResponse(selected, total if self.count else None)


class FakeSupabase:
    """Minimal in-memory supabase Client."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in UNIQUE_KEYS}
        self._seq = itertools.count(1)
        self._failures: List[list] = []
        self._hooks: List[list] = []
        self.calls: List[tuple] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    # test controls

    def fail_next(self, table: str, operation: str, error: Optional[Exception] = None, times: int = 1):
        """Make the next `times` matching operations raise (a connection failure by default)."""
        self._failures.append([table, operation, error or api_error("08006", "connection failure"), times])

    def before_next(self, table: str, operation: str, callback: Callable[[], None]):
        """Run `callback` once, just before the next matching operation executes."""
        self._hooks.append([table, operation, callback])

    def rows(self, table: str, **where) -> List[Dict[str, Any]]:
        return [row for row in self.tables.get(table, []) if all(row.get(k) == v for k, v in where.items())]

    def _before(self, table: str, operation: str):
        self.calls.append((table, operation))
        for hook in list(self._hooks):
            if hook[0] == table and hook[1] == operation:
                self._hooks.remove(hook)
                hook[2]()
        for failure in self._failures:
            if failure[0] == table and failure[1] == operation and failure[3] > 0:
                failure[3] -= 1
                raise failure[2]

    # storage

    def _defaults(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        row = copy.deepcopy(row)
        row.setdefault("id", str(uuid.uuid4()))
        if table == "group_members":
            row.setdefault("role", "member")
            row.setdefault("joined_at", _now())
            row.setdefault("invite_id", None)
            row["seq"] = next(self._seq)
        elif table == "group_invites":
            row.setdefault("used_at", None)
            row.setdefault("used_by", None)
            row.setdefault("created_at", _now())
        elif table == "jobs":
            for column in ("locked_until", "result", "error"):
                row.setdefault(column, None)
        elif table in ("groups", "prompt_responses", "messages"):
            row.setdefault("created_at", _now())
        return row

    def _insert(self, table: str, values) -> List[Dict[str, Any]]:
        batch = values if isinstance(values, list) else [values]
        rows = self.tables.setdefault(table, [])
        inserted = []
        for value in batch:
            row = self._defaults(table, value)
            for key in UNIQUE_KEYS.get(table, []):
                if any(all(existing.get(c) == row.get(c) for c in key) for existing in rows):
                    raise api_error("23505", f"duplicate key value violates unique constraint on {table}{key}")
            if table in GROUP_CHILDREN and not self.rows("groups", id=row.get("group_id")):
                raise api_error("23503", f"insert on {table} violates foreign key constraint on group_id")
            rows.append(row)
            inserted.append(copy.deepcopy(row))
        return inserted

    def _delete_row(self, table: str, row: Dict[str, Any]):
        self.tables[table].remove(row)
        if table == "groups":
            for child in GROUP_CHILDREN:
                self.tables[child] = [r for r in self.tables.get(child, []) if r.get("group_id") != row["id"]]
