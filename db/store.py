"""
Association Cache - Entity Store

The persistent store seen by the cache layer. MySQLEntityStore runs each
call on its own pymysql connection and materializes rows through the
type registry. Reads for a subtype only match rows whose type column
names that subtype or one of its descendants. Driver errors are not
caught here; they propagate to the caller unchanged.
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence

from db.database import get_connection
from db.query import SelectQuery, check_identifier
from models.entity import Entity
from services.entity_types import TYPE_COLUMN, TypeRegistry

logger = logging.getLogger(__name__)


def scope_to_type(types: TypeRegistry, type_name: str, query: SelectQuery) -> SelectQuery:
    """Copy of query limited to rows of type_name and its subtypes. Base types are returned as is."""
    type_names = types.type_scope(type_name)
    if type_names is None:
        return query
    return replace(query, conditions=list(query.conditions)).restrict_types(type_names, TYPE_COLUMN)


class EntityStore(Protocol):
    """Store operations the cache layer depends on."""

    def find_by_id(self, type_name: str, identity: Any) -> Optional[Entity]: ...

    def find_by_ids(self, type_name: str, identities: Iterable[Any]) -> List[Entity]:
        """Unordered; shorter than the input when rows are gone."""
        ...

    def select_ids(self, type_name: str, query: SelectQuery) -> List[Any]:
        """Identity-only projection, in query order."""
        ...

    def find_all(self, type_name: str, query: SelectQuery) -> List[Entity]: ...

    def find_by_sql(self, type_name: str, sql: str, params: Sequence[Any] = ()) -> List[Entity]: ...

    def delete_join_rows(self, join_table: str, foreign_key: str, owner_id: Any) -> int: ...


class MySQLEntityStore:
    """EntityStore backed by MariaDB/MySQL."""

    def __init__(self, types: TypeRegistry, connect: Callable = get_connection):
        self.types = types
        self._connect = connect

    def query(self, type_name: str) -> SelectQuery:
        return SelectQuery(table=self.types.table_for(type_name))

    def _fetch_rows(self, sql: str, params: Sequence[Any], label: str) -> List[dict]:
        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                cursor.execute(sql, params)
                rows = cursor.fetchall()
            logger.debug("%s: %d rows", label, len(rows))
            return list(rows)
        finally:
            conn.close()

    def find_by_id(self, type_name: str, identity: Any) -> Optional[Entity]:
        query = self.query(type_name)
        query.filters["id"] = identity
        query.limit = 1
        records = self.find_all(type_name, query)
        return records[0] if records else None

    def find_by_ids(self, type_name: str, identities: Iterable[Any]) -> List[Entity]:
        identities = list(identities)
        if not identities:
            return []
        query = scope_to_type(self.types, type_name, self.query(type_name).restrict_ids(identities))
        sql, params = query.to_sql()
        rows = self._fetch_rows(sql, params, f"{type_name} Load by ids")
        return [self.types.materialize(type_name, row) for row in rows]

    def select_ids(self, type_name: str, query: SelectQuery) -> List[Any]:
        sql, params = scope_to_type(self.types, type_name, query).to_sql(identity_only=True)
        rows = self._fetch_rows(sql, params, f"{type_name} Loading ids")
        return [row["id"] for row in rows]

    def find_all(self, type_name: str, query: SelectQuery) -> List[Entity]:
        sql, params = scope_to_type(self.types, type_name, query).to_sql()
        rows = self._fetch_rows(sql, params, f"{type_name} Load")
        return [self.types.materialize(type_name, row) for row in rows]

    def find_by_sql(self, type_name: str, sql: str, params: Sequence[Any] = ()) -> List[Entity]:
        rows = self._fetch_rows(sql, params, f"{type_name} Load by SQL")
        return [self.types.materialize(type_name, row) for row in rows]

    def delete_join_rows(self, join_table: str, foreign_key: str, owner_id: Any) -> int:
        check_identifier(join_table)
        check_identifier(foreign_key)
        conn = self._connect()
        try:
            with conn.cursor() as cursor:
                cursor.execute(f"DELETE FROM {join_table} WHERE {foreign_key} = %s", (owner_id,))
                deleted = cursor.rowcount
            conn.commit()
            logger.info("Deleted %d rows from %s for %s=%s", deleted, join_table, foreign_key, owner_id)
            return deleted
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
