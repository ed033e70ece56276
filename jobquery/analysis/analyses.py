"""Predefined filtered analyses — named queries run under the exploratory filter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from jobquery.analysis.statistics import ColumnStatistics, compute_statistics
from jobquery.models.filters import CombinePolicy, FilterState
from jobquery.query.assembler import SqlQuery
from jobquery.query.catalog import RelationshipShape, get_field
from jobquery.query.joins import build_joins, render_joins
from jobquery.query.predicates import compile_predicates
from jobquery.storage.database import DatasetExecutor

logger = logging.getLogger(__name__)

DEFAULT_ANALYSES_PATH = Path(__file__).with_name("analyses.yaml")

JOINS_PLACEHOLDER = "{joins}"
WHERE_PLACEHOLDER = "{where}"
AND_WHERE_PLACEHOLDER = "{and_where}"


class Analysis(BaseModel):
    """One named analytical query with its filter placeholders."""

    name: str
    description: str = ""
    category: str = "general"
    chart_type: str = "bar"
    joins: list[str] = Field(default_factory=list)
    sql: str

    @field_validator("sql")
    @classmethod
    def has_one_filter_placeholder(cls, v: str) -> str:
        placeholders = v.count(WHERE_PLACEHOLDER) + v.count(AND_WHERE_PLACEHOLDER)
        if placeholders != 1:
            raise ValueError(
                f"sql must contain exactly one of {WHERE_PLACEHOLDER} or {AND_WHERE_PLACEHOLDER}"
            )
        if JOINS_PLACEHOLDER not in v:
            raise ValueError(f"sql must contain {JOINS_PLACEHOLDER}")
        return v

    @field_validator("joins")
    @classmethod
    def joins_are_lookup_fields(cls, v: list[str]) -> list[str]:
        for key in v:
            if get_field(key).shape is not RelationshipShape.MANY_TO_ONE:
                raise ValueError(f"{key!r} is not a lookup field and cannot be joined")
        return v


class AnalysisResult(BaseModel):
    name: str
    sql: str
    params: list[Any] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    statistics: dict[str, ColumnStatistics] = Field(default_factory=dict)

    @property
    def row_count(self) -> int:
        return len(self.rows)


# =============================================================================
# Loading
# =============================================================================


def load_analyses(filepath: str | Path = DEFAULT_ANALYSES_PATH) -> list[Analysis]:
    """Load and validate analyses from a YAML file."""
    with open(filepath, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    entries = data.get("analyses", [])
    analyses = [Analysis(**entry) for entry in entries]

    names = [analysis.name for analysis in analyses]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate analysis names in {filepath}: {', '.join(duplicates)}")

    logger.info("Loaded %d analyses from %s", len(analyses), filepath)
    return analyses


# =============================================================================
# Rendering and execution
# =============================================================================


def render_analysis(analysis: Analysis, filter_state: FilterState) -> SqlQuery:
    """Inject the OR-combined filter predicate into an analysis query."""
    predicate = compile_predicates(filter_state, "", CombinePolicy.OR)

    declared = {get_field(key).alias for key in analysis.joins}
    extra = [join for join in build_joins(predicate.referenced_fields) if join.alias not in declared]
    own = build_joins(analysis.joins)

    sql = analysis.sql.replace(JOINS_PLACEHOLDER, render_joins([*own, *extra]))
    where = f"({predicate.where})" if predicate.where else ""
    sql = sql.replace(WHERE_PLACEHOLDER, f"WHERE {where}" if where else "")
    sql = sql.replace(AND_WHERE_PLACEHOLDER, f"AND {where}" if where else "")
    return SqlQuery(sql, predicate.params)


def run_analysis(
    executor: DatasetExecutor,
    analysis: Analysis,
    filter_state: FilterState,
    with_statistics: bool = True,
) -> AnalysisResult:
    """Execute an analysis under the current filters and summarize its numbers."""
    query = render_analysis(analysis, filter_state)
    result = executor.execute(query.sql, query.params)
    rows = result.as_dicts()
    logger.info("Analysis '%s' returned %d rows", analysis.name, len(rows))
    return AnalysisResult(
        name=analysis.name,
        sql=query.sql,
        params=list(query.params),
        columns=result.columns,
        rows=rows,
        statistics=compute_statistics(rows) if with_statistics else {},
    )
