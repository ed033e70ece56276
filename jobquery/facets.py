"""Facet refresher — recompute facet counts without applying stale results."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol

from jobquery.models.filters import CombinePolicy, FilterState
from jobquery.models.job import Facet

logger = logging.getLogger(__name__)


class FacetSource(Protocol):
    async def get_facets(
        self,
        field_key: str,
        filter_state: FilterState | None = None,
        search_text: str = "",
        policy: CombinePolicy = CombinePolicy.AND,
    ) -> list[Facet]: ...


class FacetRefresher:
    """Holds the facet lists shown for the current filter state.

    Each request is tagged with the filter generation it was issued against.
    When the filters change while a request is in flight, its result is
    dropped instead of overwriting counts computed for the newer state.
    Nothing is aborted; superseded work simply goes unused.
    """

    def __init__(
        self,
        source: FacetSource,
        filter_state: FilterState | None = None,
        search_text: str = "",
        policy: CombinePolicy = CombinePolicy.AND,
    ) -> None:
        self.source = source
        self.filter_state = filter_state or FilterState()
        self.search_text = search_text
        self.policy = policy
        self.generation = 0
        self.facets: dict[str, list[Facet]] = {}

    def notify_filter_change(self, filter_state: FilterState, search_text: str | None = None) -> int:
        """Record a new filter state; in-flight results for older states become stale."""
        self.filter_state = filter_state
        if search_text is not None:
            self.search_text = search_text
        self.generation += 1
        return self.generation

    async def refresh(self, field_key: str) -> list[Facet] | None:
        """Recompute one field's facets; ``None`` if the result went stale."""
        issued = self.generation
        facets = await self.source.get_facets(
            field_key, self.filter_state, self.search_text, self.policy
        )
        if issued != self.generation:
            logger.debug(
                "Discarding stale facets for %s (generation %d, now %d)",
                field_key, issued, self.generation,
            )
            return None
        self.facets[field_key] = facets
        return facets

    async def refresh_all(self, fields: Iterable[str]) -> dict[str, list[Facet] | None]:
        keys = list(fields)
        results = await asyncio.gather(*(self.refresh(key) for key in keys))
        return dict(zip(keys, results))
