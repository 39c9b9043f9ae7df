"""
Association Cache - Select Query Construction

Structured SELECT against one entity table. Equality filters and the
join-table clause are kept structured; raw conditions and joins are
passed through verbatim with their parameters.

to_sql(identity_only=True) projects only `<table>.id`, which is how
collections learn their member identities without materializing rows.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Conditions = Optional[Union[str, Sequence[Any]]]


def check_identifier(name: str) -> str:
    """Reject anything that is not a plain SQL identifier."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"'{name}' is not a valid SQL identifier")
    return name


@dataclass
class JoinTableClause:
    """INNER JOIN <table> ON <target>.id = <table>.<target_column> WHERE <table>.<owner_column> = owner_id"""
    table: str
    target_column: str
    owner_column: str
    owner_id: Any

    def __post_init__(self):
        for name in (self.table, self.target_column, self.owner_column):
            check_identifier(name)


@dataclass
class SelectQuery:
    table: str
    filters: Dict[str, Any] = field(default_factory=dict)
    join_table: Optional[JoinTableClause] = None
    conditions: List[Tuple[str, Tuple[Any, ...]]] = field(default_factory=list)
    joins: Optional[str] = None
    order: Optional[str] = None
    limit: Optional[int] = None

    def __post_init__(self):
        check_identifier(self.table)
        for column in self.filters:
            check_identifier(column)

    def where(self, sql: Optional[str], *params: Any) -> "SelectQuery":
        """Append a raw condition; empty conditions are ignored."""
        if sql:
            self.conditions.append((sql, tuple(params)))
        return self

    def add_conditions(self, conditions: Conditions) -> "SelectQuery":
        """Accept either "sql" or ["sql with %s", param, ...]."""
        if not conditions:
            return self
        if isinstance(conditions, str):
            return self.where(conditions)
        sql, *params = conditions
        return self.where(sql, *params)

    def restrict_ids(self, ids: Sequence[Any]) -> "SelectQuery":
        placeholders = ", ".join(["%s"] * len(ids))
        return self.where(f"{self.table}.id IN ({placeholders})", *ids)

    def restrict_types(self, type_names: Sequence[str], column: str) -> "SelectQuery":
        """Single-table inheritance scope: the discriminator column must be one of type_names."""
        check_identifier(column)
        placeholders = ", ".join(["%s"] * len(type_names))
        return self.where(f"{self.table}.{column} IN ({placeholders})", *type_names)

    def order_by(self, order: Optional[str]) -> "SelectQuery":
        """Caller order comes first, later orders are appended."""
        if order:
            self.order = f"{self.order}, {order}" if self.order else order
        return self

    @property
    def requires_join(self) -> bool:
        """Raw joins cannot be safely reduced to an identity projection."""
        return bool(self.joins)

    def to_sql(self, identity_only: bool = False) -> Tuple[str, List[Any]]:
        projection = f"{self.table}.id" if identity_only else f"{self.table}.*"
        sql = f"SELECT {projection} FROM {self.table}"
        params: List[Any] = []
        where_clauses = []

        if self.join_table is not None:
            jt = self.join_table
            sql += f" INNER JOIN {jt.table} ON {self.table}.id = {jt.table}.{jt.target_column}"
            where_clauses.append(f"{jt.table}.{jt.owner_column} = %s")
            params.append(jt.owner_id)

        if self.joins:
            sql += f" {self.joins}"

        for column, value in self.filters.items():
            if value is None:
                where_clauses.append(f"{self.table}.{column} IS NULL")
            else:
                where_clauses.append(f"{self.table}.{column} = %s")
                params.append(value)

        for condition, condition_params in self.conditions:
            where_clauses.append(f"({condition})")
            params.extend(condition_params)

        if where_clauses:
            sql += " WHERE " + " AND ".join(where_clauses)
        if self.order:
            sql += f" ORDER BY {self.order}"
        if self.limit is not None:
            sql += " LIMIT %s"
            params.append(int(self.limit))

        return sql, params
