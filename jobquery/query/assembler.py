"""Query assembler — complete SELECT statements for pages, counts and facets."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence

from jobquery.models.filters import CombinePolicy, FilterState
from jobquery.query.catalog import (
    CONVERTED_SALARY_COLUMNS,
    DISPLAY_COLUMNS,
    DISPLAY_FIELDS,
    ENTITY_ALIAS,
    ENTITY_ID,
    ENTITY_TABLE,
    FieldSpec,
    RelationshipShape,
    get_field,
    resolve_sort,
)
from jobquery.query.joins import build_joins, render_joins
from jobquery.query.predicates import LIKE_ESCAPE, CompiledPredicate, compile_predicates, escape_like

logger = logging.getLogger(__name__)

FROM_ENTITY = f"FROM {ENTITY_TABLE} {ENTITY_ALIAS}"


@dataclass(frozen=True, slots=True)
class SqlQuery:
    sql: str
    params: tuple[Any, ...] = ()


# =============================================================================
# Page / count / entity
# =============================================================================


def page_query(
    predicate: CompiledPredicate,
    sort_key: str | None,
    page: int,
    page_size: int,
    converted_salary: bool = False,
) -> SqlQuery:
    """Paginated row retrieval with display columns inlined.

    Pages are 1-indexed; ``offset = (page - 1) * page_size``. Unknown sort
    keys fall back to newest first. Ties are broken on the posting id so
    consecutive pages never overlap.
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")

    sort = resolve_sort(sort_key)
    referenced = [*DISPLAY_FIELDS, *predicate.referenced_fields]
    if sort.field:
        referenced.append(sort.field)

    sql = "\n".join(
        part
        for part in (
            f"SELECT {_projection(converted_salary)}",
            FROM_ENTITY,
            render_joins(build_joins(referenced)),
            predicate.clause,
            f"ORDER BY {sort.clause}, {ENTITY_ID} ASC",
            "LIMIT ? OFFSET ?",
        )
        if part
    )
    offset = (page - 1) * page_size
    query = SqlQuery(sql, (*predicate.params, page_size, offset))
    logger.debug("Page query (page=%d, size=%d, sort=%s): %s", page, page_size, sort.key, sql)
    return query


def count_query(predicate: CompiledPredicate) -> SqlQuery:
    """Total number of postings matching the predicate."""
    sql = "\n".join(
        part
        for part in (
            "SELECT COUNT(*) AS total",
            FROM_ENTITY,
            render_joins(build_joins(predicate.referenced_fields)),
            predicate.clause,
        )
        if part
    )
    return SqlQuery(sql, predicate.params)


def entity_query(entity_id: int, converted_salary: bool = False) -> SqlQuery:
    """One posting by id, with the same projection as a page row."""
    sql = "\n".join(
        (
            f"SELECT {_projection(converted_salary)}",
            FROM_ENTITY,
            render_joins(build_joins(DISPLAY_FIELDS)),
            f"WHERE {ENTITY_ID} = ?",
        )
    )
    return SqlQuery(sql, (entity_id,))


def total_pages(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size) if page_size > 0 else 0


# =============================================================================
# Facets
# =============================================================================


def facet_query(
    field_key: str,
    filter_state: FilterState,
    search_text: str | None = "",
    policy: CombinePolicy = CombinePolicy.AND,
) -> SqlQuery:
    """Distinct labels of one field with posting counts under the other filters.

    The faceted field's own predicate is left out, so every option shows how
    many postings it would match if only that choice were changed.
    """
    predicate = compile_predicates(filter_state, search_text, policy, exclude_field=field_key)
    spec = get_field(field_key)
    label, value_joins, referenced = _label_source(spec, predicate)

    conditions = [f"{label} IS NOT NULL"]
    if predicate.where:
        conditions.append(f"({predicate.where})")

    sql = "\n".join(
        part
        for part in (
            f"SELECT {label} AS label, COUNT(DISTINCT {ENTITY_ID}) AS count",
            FROM_ENTITY,
            render_joins(build_joins(referenced)),
            value_joins,
            "WHERE " + " AND ".join(conditions),
            f"GROUP BY {label}",
            f"ORDER BY count DESC, {label} ASC",
        )
        if part
    )
    logger.debug("Facet query for %s: %s", field_key, sql)
    return SqlQuery(sql, predicate.params)


def suggestion_query(field_key: str, term: str, limit: int) -> SqlQuery:
    """Labels of one field containing ``term`` (case-insensitive), most frequent first."""
    spec = get_field(field_key)
    label, value_joins, referenced = _label_source(spec, CompiledPredicate())
    sql = "\n".join(
        part
        for part in (
            f"SELECT {label} AS value, COUNT(DISTINCT {ENTITY_ID}) AS count",
            FROM_ENTITY,
            render_joins(build_joins(referenced)),
            value_joins,
            f"WHERE LOWER({label}) LIKE ? ESCAPE '{LIKE_ESCAPE}'",
            f"GROUP BY {label}",
            f"ORDER BY count DESC, {label} ASC",
            "LIMIT ?",
        )
        if part
    )
    return SqlQuery(sql, (f"%{escape_like(term.lower())}%", limit))


def _label_source(spec: FieldSpec, predicate: CompiledPredicate) -> tuple[str, str, list[str]]:
    """Label expression, extra joins and join-graph fields for a faceted field."""
    referenced = list(predicate.referenced_fields)
    if spec.shape is RelationshipShape.MANY_TO_ONE:
        referenced.append(spec.key)
        return spec.label_expression, "", referenced

    if spec.shape is RelationshipShape.ONE_TO_MANY:
        join = f"JOIN {spec.table} {spec.alias} ON {ENTITY_ID} = {spec.alias}.{spec.foreign_key}"
        return spec.label_expression, join, referenced

    junction = f"{spec.alias}_j"
    join = (
        f"JOIN {spec.junction_table} {junction} ON {ENTITY_ID} = {junction}.{spec.junction_entity_column}\n"
        f"JOIN {spec.table} {spec.alias} ON {junction}.{spec.foreign_key} = {spec.alias}.id"
    )
    return spec.label_expression, join, referenced


# =============================================================================
# Hydration
# =============================================================================


def attribute_query(field_key: str, entity_ids: Sequence[int]) -> SqlQuery:
    """Labels of a multi-valued attribute for one or more postings.

    Rows come back as ``(entity_id, label)`` in storage order.
    """
    spec = get_field(field_key)
    if not spec.is_multi_valued:
        raise ValueError(f"{field_key!r} is single-valued and is resolved by the join graph")
    if not entity_ids:
        raise ValueError("attribute_query needs at least one entity id")

    if len(entity_ids) == 1:
        match = "= ?"
    else:
        match = "IN (" + ", ".join("?" for _ in entity_ids) + ")"

    if spec.shape is RelationshipShape.ONE_TO_MANY:
        owner = f"{spec.alias}.{spec.foreign_key}"
        sql = (
            f"SELECT {owner} AS entity_id, {spec.label_expression} AS label\n"
            f"FROM {spec.table} {spec.alias}\n"
            f"WHERE {owner} {match}\n"
            f"ORDER BY {owner}, {spec.alias}.rowid"
        )
    else:
        junction = f"{spec.alias}_j"
        owner = f"{junction}.{spec.junction_entity_column}"
        sql = (
            f"SELECT {owner} AS entity_id, {spec.label_expression} AS label\n"
            f"FROM {spec.table} {spec.alias}\n"
            f"JOIN {spec.junction_table} {junction} ON {spec.alias}.id = {junction}.{spec.foreign_key}\n"
            f"WHERE {owner} {match}\n"
            f"ORDER BY {owner}, {junction}.rowid"
        )
    return SqlQuery(sql, tuple(entity_ids))


# =============================================================================
# Projection
# =============================================================================


def _projection(converted_salary: bool) -> str:
    columns = [f"{ENTITY_ID} AS id"]
    columns.extend(f"{get_field(key).label_expression} AS {key}" for key in DISPLAY_FIELDS)
    columns.extend(f"{expression} AS {name}" for expression, name in DISPLAY_COLUMNS)
    if converted_salary:
        columns.extend(f"{expression} AS {name}" for expression, name in CONVERTED_SALARY_COLUMNS)
    return ",\n    ".join(columns)
