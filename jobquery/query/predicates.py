"""Predicate compiler — filter state to a parameterized WHERE fragment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from jobquery.errors import UnknownFieldError
from jobquery.models.filters import CombinePolicy, FilterState
from jobquery.query.catalog import (
    ENTITY_ID,
    RANGE_FIELDS,
    SEARCH_COLUMNS,
    SEARCH_FIELDS,
    FieldSpec,
    RelationshipShape,
    catalog_order,
    get_field,
)

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


@dataclass(frozen=True, slots=True)
class CompiledPredicate:
    """A WHERE fragment (without the keyword) and its positional parameters.

    ``referenced_fields`` lists the many-to-one fields whose aliases the
    fragment uses; the join graph must include them.
    """

    where: str = ""
    params: tuple[Any, ...] = ()
    referenced_fields: tuple[str, ...] = ()

    @property
    def clause(self) -> str:
        return f"WHERE {self.where}" if self.where else ""

    def __bool__(self) -> bool:
        return bool(self.where)


def compile_predicates(
    filter_state: FilterState,
    search_text: str | None = "",
    policy: CombinePolicy = CombinePolicy.AND,
    exclude_field: str | None = None,
) -> CompiledPredicate:
    """Compile filter state and search text into a WHERE fragment.

    Args:
        filter_state: Selected labels per field plus numeric range bounds.
        search_text: Free text matched with LIKE across label columns. Always
            AND'd with the field predicates, whatever the policy.
        policy: Whether predicates on different fields are AND'd or OR'd.
        exclude_field: Field whose own predicate is left out (facet counts).

    Returns:
        CompiledPredicate; an empty fragment matches every posting.

    Raises:
        UnknownFieldError: A filtered (or excluded) field is not in the catalog
            or cannot be filtered on.
    """
    if exclude_field is not None:
        _filterable_field(exclude_field)

    specs = sorted(
        (_filterable_field(key) for key in filter_state.active_fields),
        key=lambda spec: catalog_order(spec.key),
    )

    conditions: list[str] = []
    params: list[Any] = []
    referenced: list[str] = []

    for spec in specs:
        if spec.key == exclude_field:
            continue
        values = filter_state.values_for(spec.key)
        if not values:
            continue
        if spec.shape is RelationshipShape.MANY_TO_ONE:
            conditions.append(_any_of(spec, len(values)))
            params.extend(values)
            referenced.append(spec.key)
        else:
            conditions.append(_has_all(spec, len(values)))
            params.extend(values)
            params.append(len(values))

    range_bounds: dict[str, list[str]] = {}
    for key, bound in filter_state.ranges.items():
        range_spec = RANGE_FIELDS[key]
        range_bounds.setdefault(range_spec.field, []).append(
            f"{range_spec.column} {range_spec.operator} ?"
        )
        params.append(bound)
    for bounds in range_bounds.values():
        # Both bounds of one range always hold together, whatever the policy
        conditions.append(f"({' AND '.join(bounds)})" if len(bounds) > 1 else bounds[0])

    fragments: list[str] = []
    if conditions:
        fragments.append(_combine(conditions, policy))

    term = (search_text or "").strip()
    if term:
        search_sql, search_params = _search(term)
        fragments.append(search_sql)
        params.extend(search_params)
        referenced.extend(key for key in SEARCH_FIELDS if key not in referenced)

    compiled = CompiledPredicate(
        where=" AND ".join(fragments),
        params=tuple(params),
        referenced_fields=tuple(referenced),
    )
    logger.debug(
        "Compiled %d field predicate(s) under %s policy (search=%r, excluded=%s)",
        len(conditions), policy.value, term, exclude_field,
    )
    return compiled


# =============================================================================
# Per-shape fragments
# =============================================================================


def _any_of(spec: FieldSpec, count: int) -> str:
    """Many-to-one: categorical choices for one field are alternatives."""
    alternatives = " OR ".join(f"{spec.label_expression} = ?" for _ in range(count))
    return f"({alternatives})"


def _has_all(spec: FieldSpec, count: int) -> str:
    """One-to-many / many-to-many: the posting must carry every selected label."""
    placeholders = ", ".join("?" for _ in range(count))
    if spec.shape is RelationshipShape.ONE_TO_MANY:
        child = f"{spec.alias}_f"
        return (
            f"{ENTITY_ID} IN ("
            f"SELECT {child}.{spec.foreign_key} FROM {spec.table} {child} "
            f"WHERE {child}.{spec.label_column} IN ({placeholders}) "
            f"GROUP BY {child}.{spec.foreign_key} "
            f"HAVING COUNT(DISTINCT {child}.{spec.label_column}) = ?)"
        )
    junction = f"{spec.alias}_fj"
    lookup = f"{spec.alias}_fl"
    return (
        f"{ENTITY_ID} IN ("
        f"SELECT {junction}.{spec.junction_entity_column} FROM {spec.junction_table} {junction} "
        f"JOIN {spec.table} {lookup} ON {junction}.{spec.foreign_key} = {lookup}.id "
        f"WHERE {lookup}.{spec.label_column} IN ({placeholders}) "
        f"GROUP BY {junction}.{spec.junction_entity_column} "
        f"HAVING COUNT(DISTINCT {lookup}.{spec.label_column}) = ?)"
    )


def _combine(conditions: list[str], policy: CombinePolicy) -> str:
    if policy is CombinePolicy.OR:
        joined = " OR ".join(conditions)
        return f"({joined})" if len(conditions) > 1 else joined
    return " AND ".join(conditions)


def _search(term: str) -> tuple[str, list[str]]:
    pattern = f"%{escape_like(term)}%"
    columns = [*SEARCH_COLUMNS, *(get_field(key).label_expression for key in SEARCH_FIELDS)]
    alternatives = " OR ".join(f"{column} LIKE ? ESCAPE '{LIKE_ESCAPE}'" for column in columns)
    return f"({alternatives})", [pattern] * len(columns)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def _filterable_field(key: str) -> FieldSpec:
    spec = get_field(key)
    if not spec.filterable:
        raise UnknownFieldError(key, "set of filterable fields")
    return spec
