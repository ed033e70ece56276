"""Query service — the in-process interface the UI layer calls."""

from __future__ import annotations

import logging

from jobquery.analysis.analyses import Analysis, AnalysisResult, load_analyses, run_analysis
from jobquery.config import EngineConfig
from jobquery.models.filters import CombinePolicy, FilterState
from jobquery.models.job import EntityView, Facet, JobPage, Metadata, ValueSuggestion
from jobquery.query.assembler import (
    count_query,
    entity_query,
    facet_query,
    page_query,
    suggestion_query,
    total_pages,
)
from jobquery.query.catalog import (
    DEFAULT_SORT_KEY,
    ENTITY_TABLE,
    FILTERABLE_FIELDS,
    get_field,
)
from jobquery.query.hydrator import ResultHydrator
from jobquery.query.predicates import compile_predicates
from jobquery.storage.database import DatasetExecutor
from jobquery.storage.loader import DatasetLoader

logger = logging.getLogger(__name__)


class JobQueryService:
    """Pages, facets and single postings over the loaded dataset.

    Every call awaits the dataset loader first; the load itself happens once.
    """

    def __init__(self, loader: DatasetLoader, config: EngineConfig | None = None) -> None:
        self.loader = loader
        self.config = config or EngineConfig()
        self._analyses: list[Analysis] | None = None

    async def _executor(self) -> DatasetExecutor:
        return await self.loader.load()

    def _hydrator(self, executor: DatasetExecutor) -> ResultHydrator:
        return ResultHydrator(executor, batch=self.config.batch_hydration)

    @staticmethod
    def _has_converted_salary(executor: DatasetExecutor) -> bool:
        return executor.has_column(ENTITY_TABLE, "min_salary_mdl") and executor.has_column(
            ENTITY_TABLE, "max_salary_mdl"
        )

    # -- Browsing ---------------------------------------------------------------

    async def get_page(
        self,
        page: int = 1,
        page_size: int | None = None,
        filter_state: FilterState | None = None,
        search_text: str = "",
        sort_key: str = DEFAULT_SORT_KEY,
        policy: CombinePolicy = CombinePolicy.AND,
    ) -> JobPage:
        """One page of hydrated postings plus the totals for the whole match set.

        Pages past the end come back empty with the totals still filled in.
        """
        executor = await self._executor()
        size = page_size or self.config.page_size
        state = filter_state or FilterState()
        predicate = compile_predicates(state, search_text, policy)

        counted = count_query(predicate)
        total = int(executor.execute(counted.sql, counted.params).scalar(0))

        query = page_query(predicate, sort_key, page, size, self._has_converted_salary(executor))
        rows = executor.query_objects(query.sql, query.params)
        entities = await self._hydrator(executor).hydrate_many(rows)

        logger.info(
            "Page %d (size %d): %d of %d postings, %d active filter(s), search=%r",
            page, size, len(entities), total, state.active_filter_count(), search_text,
        )
        return JobPage(
            entities=entities,
            total_count=total,
            total_pages=total_pages(total, size),
            page=page,
            page_size=size,
        )

    async def get_entity_by_id(self, entity_id: int) -> EntityView | None:
        executor = await self._executor()
        query = entity_query(entity_id, self._has_converted_salary(executor))
        rows = executor.query_objects(query.sql, query.params)
        if not rows:
            logger.info("Posting %s not found", entity_id)
            return None
        return await self._hydrator(executor).hydrate(rows[0])

    # -- Facets -----------------------------------------------------------------

    async def get_facets(
        self,
        field_key: str,
        filter_state: FilterState | None = None,
        search_text: str = "",
        policy: CombinePolicy = CombinePolicy.AND,
    ) -> list[Facet]:
        """Options for one field, counted under every other active filter."""
        executor = await self._executor()
        query = facet_query(field_key, filter_state or FilterState(), search_text, policy)
        result = executor.execute(query.sql, query.params)
        return [Facet(label=str(label), count=int(count)) for label, count in result.rows]

    async def get_metadata(self) -> Metadata:
        """Unfiltered facets for every filterable field and the posting total."""
        executor = await self._executor()
        facets = {key: await self.get_facets(key) for key in FILTERABLE_FIELDS}
        total = executor.execute(f"SELECT COUNT(*) FROM {ENTITY_TABLE}").scalar(0)
        return Metadata(total_jobs=int(total), facets=facets)

    async def suggest_values(
        self,
        term: str,
        filter_state: FilterState | None = None,
        fields: tuple[str, ...] = FILTERABLE_FIELDS,
        limit_per_field: int = 5,
        limit: int = 10,
    ) -> list[ValueSuggestion]:
        """Lookup labels containing ``term``, best matches first.

        Exact matches rank before prefix matches, then higher counts. Labels
        already selected in ``filter_state`` are left out.
        """
        needle = term.strip().lower()
        if not needle:
            return []
        executor = await self._executor()
        state = filter_state or FilterState()

        suggestions: list[ValueSuggestion] = []
        for key in fields:
            spec = get_field(key)
            query = suggestion_query(key, needle, limit_per_field)
            for value, count in executor.execute(query.sql, query.params).rows:
                if value in state.values_for(key):
                    continue
                suggestions.append(
                    ValueSuggestion(value=str(value), count=int(count), field=key, field_label=spec.label)
                )

        suggestions.sort(
            key=lambda s: (
                s.value.lower() != needle,
                not s.value.lower().startswith(needle),
                -s.count,
            )
        )
        return suggestions[:limit]

    # -- Analyses ---------------------------------------------------------------

    @property
    def analyses(self) -> list[Analysis]:
        if self._analyses is None:
            self._analyses = load_analyses(self.config.analyses_file)
        return self._analyses

    def get_analysis(self, name: str) -> Analysis:
        for analysis in self.analyses:
            if analysis.name == name:
                return analysis
        raise KeyError(f"No analysis named {name!r}")

    async def run_analysis(
        self,
        analysis: Analysis | str,
        filter_state: FilterState | None = None,
    ) -> AnalysisResult:
        """Run a predefined analysis with the filters OR'd together."""
        executor = await self._executor()
        if isinstance(analysis, str):
            analysis = self.get_analysis(analysis)
        return run_analysis(executor, analysis, filter_state or FilterState())
