"""
Association Cache - Test Fixtures
"""

import os
import re
from typing import Any, Dict, List

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("DB_HOST", "localhost")
os.environ.setdefault("DB_NAME", "assoc_cache_test")
os.environ.setdefault("ASSOCIATION_CACHE_INVALIDATION", "explicit")

from db.query import SelectQuery  # noqa: E402
from db.store import scope_to_type  # noqa: E402
from models.entity import Entity  # noqa: E402
from services.activation import init_caching, shutdown_caching  # noqa: E402
from services.association_cache import AssociationCache  # noqa: E402
from services.entity_types import TypeRegistry  # noqa: E402


# =============================================================================
# Entity types
# =============================================================================

class Account(Entity):
    __tablename__ = "accounts"


class User(Entity):
    __tablename__ = "users"


class Admin(User):
    pass


class Project(Entity):
    __tablename__ = "projects"


class Membership(Entity):
    __tablename__ = "memberships"


# =============================================================================
# In-memory store
# =============================================================================

_EQ_RE = re.compile(r"^(?:\w+\.)?(\w+) = %s$")
_IN_RE = re.compile(r"^(?:\w+\.)?(\w+) IN \(")


class FakeStore:
    """
    In-memory EntityStore that records every round trip.

    Understands the structured parts of a SelectQuery plus raw conditions
    of the form "col = %s" and "col IN (...)".
    """

    def __init__(self, types: TypeRegistry):
        self.types = types
        self.tables: Dict[str, Dict[Any, dict]] = {}
        self.join_rows: Dict[str, List[dict]] = {}
        self.sql_results: Dict[str, List[Any]] = {}
        self.calls: List[tuple] = []
        self.fail_with = None
        self._next_id = 1

    # -- seeding ------------------------------------------------------------

    def insert(self, type_name: str, **attributes) -> Entity:
        table = self.types.table_for(type_name)
        row = dict(attributes)
        row.setdefault("id", self._next_id)
        self._next_id = max(self._next_id, row["id"]) + 1
        if type_name != self.types.ancestry(type_name)[-1]:
            row.setdefault("type", type_name)
        self.tables.setdefault(table, {})[row["id"]] = row
        return self.types.materialize(type_name, row)

    def link(self, join_table: str, **row) -> None:
        self.join_rows.setdefault(join_table, []).append(row)

    def delete(self, type_name: str, identity: Any) -> None:
        self.tables[self.types.table_for(type_name)].pop(identity, None)

    def update(self, type_name: str, identity: Any, **attributes) -> None:
        self.tables[self.types.table_for(type_name)][identity].update(attributes)

    # -- introspection ------------------------------------------------------

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    @property
    def round_trips(self) -> int:
        return len(self.calls)

    # -- EntityStore --------------------------------------------------------

    def _record(self, *call):
        self.calls.append(call)
        if self.fail_with is not None:
            raise self.fail_with

    def find_by_id(self, type_name, identity):
        self._record("find_by_id", type_name, identity)
        query = SelectQuery(table=self.types.table_for(type_name), filters={"id": identity}, limit=1)
        rows = self._evaluate(scope_to_type(self.types, type_name, query))
        return self.types.materialize(type_name, rows[0]) if rows else None

    def find_by_ids(self, type_name, identities):
        identities = list(identities)
        self._record("find_by_ids", type_name, identities)
        query = SelectQuery(table=self.types.table_for(type_name)).restrict_ids(identities)
        rows = self._evaluate(scope_to_type(self.types, type_name, query))
        # Deliberately descending so callers must restore order themselves
        found = sorted(rows, key=lambda r: r["id"], reverse=True)
        return [self.types.materialize(type_name, row) for row in found]

    def select_ids(self, type_name, query):
        self._record("select_ids", type_name, query)
        return [row["id"] for row in self._evaluate(scope_to_type(self.types, type_name, query))]

    def find_all(self, type_name, query):
        self._record("find_all", type_name, query)
        rows = self._evaluate(scope_to_type(self.types, type_name, query))
        return [self.types.materialize(type_name, row) for row in rows]

    def find_by_sql(self, type_name, sql, params=()):
        self._record("find_by_sql", type_name, sql, tuple(params))
        rows = self.tables.get(self.types.table_for(type_name), {})
        return [self.types.materialize(type_name, rows[i]) for i in self.sql_results.get(sql, []) if i in rows]

    def delete_join_rows(self, join_table, foreign_key, owner_id):
        self._record("delete_join_rows", join_table, foreign_key, owner_id)
        before = self.join_rows.get(join_table, [])
        kept = [row for row in before if row.get(foreign_key) != owner_id]
        self.join_rows[join_table] = kept
        return len(before) - len(kept)

    def _evaluate(self, query) -> List[dict]:
        table = self.tables.get(query.table, {})
        if query.join_table is not None:
            jt = query.join_table
            rows = [
                table[link[jt.target_column]]
                for link in self.join_rows.get(jt.table, [])
                if link.get(jt.owner_column) == jt.owner_id and link[jt.target_column] in table
            ]
        else:
            rows = list(table.values())

        rows = [r for r in rows if all(r.get(col) == val for col, val in query.filters.items())]

        for sql, params in query.conditions:
            eq, is_in = _EQ_RE.match(sql), _IN_RE.match(sql)
            if eq:
                rows = [r for r in rows if r.get(eq.group(1)) == params[0]]
            elif is_in:
                rows = [r for r in rows if r.get(is_in.group(1)) in params]
            else:
                raise AssertionError(f"FakeStore cannot evaluate condition: {sql}")

        if query.order:
            for term in reversed([t.strip() for t in query.order.split(",")]):
                column, _, direction = term.partition(" ")
                column = column.split(".")[-1]
                rows.sort(key=lambda r: r.get(column), reverse=direction.upper() == "DESC")

        if query.limit is not None:
            rows = rows[:query.limit]
        return rows


# =============================================================================
# pymysql doubles
# =============================================================================

class MockCursor:
    """Mock DictCursor recording executed statements."""

    def __init__(self, results=None, rowcount=0):
        self.results = results or []
        self.rowcount = rowcount
        self._executed = []

    def execute(self, sql, params=None):
        self._executed.append((sql, params))

    def fetchone(self):
        return self.results[0] if self.results else None

    def fetchall(self):
        return self.results

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass


class MockConnection:
    """Mock pymysql connection handing out one shared cursor."""

    def __init__(self, cursor=None):
        self._cursor = cursor or MockCursor()
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, *args, **kwargs):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def caching_active():
    """Caching is on for every test unless a test switches it off."""
    init_caching(True)
    yield
    shutdown_caching()


@pytest.fixture
def types():
    registry = TypeRegistry()
    for cls in (Account, User, Admin, Project, Membership):
        registry.register(cls)
    return registry


@pytest.fixture
def store(types):
    return FakeStore(types)


@pytest.fixture
def association_cache(store, types):
    return AssociationCache(store, types)
