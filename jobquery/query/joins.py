"""Join graph builder — the LEFT JOINs a query needs to resolve lookup labels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from jobquery.query.catalog import ENTITY_ALIAS, RelationshipShape, catalog_order, get_field


@dataclass(frozen=True, slots=True)
class JoinClause:
    table: str
    alias: str
    foreign_key: str

    @property
    def sql(self) -> str:
        # LEFT, so a NULL foreign key never hides the posting
        return f"LEFT JOIN {self.table} {self.alias} ON {ENTITY_ALIAS}.{self.foreign_key} = {self.alias}.id"


def build_joins(referenced_fields: Iterable[str]) -> list[JoinClause]:
    """Return one LEFT JOIN per distinct many-to-one field, in catalog order.

    One-to-many and many-to-many fields are resolved through subqueries or
    follow-up queries and contribute no join. Referencing the same field more
    than once (filter and display, say) yields a single join.
    """
    joins: dict[str, JoinClause] = {}
    for key in sorted(set(referenced_fields), key=catalog_order):
        spec = get_field(key)
        if spec.shape is not RelationshipShape.MANY_TO_ONE:
            continue
        joins.setdefault(spec.alias, JoinClause(spec.table, spec.alias, spec.foreign_key))
    return list(joins.values())


def render_joins(joins: Iterable[JoinClause]) -> str:
    return "\n".join(join.sql for join in joins)
