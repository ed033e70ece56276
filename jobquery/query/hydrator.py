"""Result hydrator — flat joined rows to nested EntityView objects."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Mapping, Sequence

from jobquery.models.job import (
    Employment,
    EntityView,
    Location,
    ParsedView,
    RawFields,
    Requirements,
    Salary,
    Source,
)
from jobquery.query.assembler import attribute_query
from jobquery.query.catalog import HYDRATED_FIELDS
from jobquery.storage.database import DatasetExecutor

logger = logging.getLogger(__name__)


class ResultHydrator:
    """Attaches multi-valued attributes to flat rows.

    By default every entity costs one follow-up query per attribute (N+1),
    which is cheap against the in-process engine. With ``batch=True`` each
    attribute is fetched once for the whole page with ``IN (...)`` and grouped
    here instead.
    """

    def __init__(
        self,
        executor: DatasetExecutor,
        attributes: Sequence[str] = HYDRATED_FIELDS,
        batch: bool = False,
    ) -> None:
        self.executor = executor
        self.attributes = tuple(attributes)
        self.batch = batch

    async def hydrate(self, row: Mapping[str, Any]) -> EntityView:
        """Build the nested view of one flat row, querying each attribute."""
        entity_id = int(row["id"])
        attached: dict[str, list[str]] = {}
        for field_key in self.attributes:
            query = attribute_query(field_key, [entity_id])
            result = self.executor.execute(query.sql, query.params)
            attached[field_key] = [label for _, label in result.rows if label is not None]
        return build_entity_view(row, attached)

    async def hydrate_many(self, rows: Sequence[Mapping[str, Any]]) -> list[EntityView]:
        if not rows:
            return []
        if not self.batch:
            return [await self.hydrate(row) for row in rows]

        entity_ids = [int(row["id"]) for row in rows]
        by_entity: dict[int, dict[str, list[str]]] = defaultdict(dict)
        for field_key in self.attributes:
            query = attribute_query(field_key, entity_ids)
            grouped: dict[int, list[str]] = defaultdict(list)
            for entity_id, label in self.executor.execute(query.sql, query.params).rows:
                if label is not None:
                    grouped[int(entity_id)].append(label)
            for entity_id in entity_ids:
                by_entity[entity_id][field_key] = grouped.get(entity_id, [])

        logger.debug(
            "Batch-hydrated %d entities with %d queries", len(rows), len(self.attributes)
        )
        return [build_entity_view(row, by_entity[int(row["id"])]) for row in rows]


def build_entity_view(row: Mapping[str, Any], attached: Mapping[str, list[str]]) -> EntityView:
    """Assemble an EntityView from a flat row and its multi-valued attributes."""

    def labels(key: str) -> list[str]:
        return list(attached.get(key, []))

    return EntityView(
        id=int(row["id"]),
        title=row.get("title"),
        job_function=row.get("job_function"),
        specialization=row.get("specialization"),
        seniority_level=row.get("seniority_level"),
        company=row.get("company"),
        company_size=row.get("company_size"),
        location=Location(
            city=row.get("city"),
            region=row.get("region"),
            country=row.get("country"),
            remote_work=row.get("remote_work"),
        ),
        salary=Salary(
            min=row.get("min_salary"),
            max=row.get("max_salary"),
            currency=row.get("salary_currency"),
            period=row.get("salary_period"),
            # Only ever a conversion that exists in the dataset
            min_mdl=row.get("min_salary_mdl"),
            max_mdl=row.get("max_salary_mdl"),
        ),
        employment=Employment(
            type=row.get("employment_type"),
            contract=row.get("contract_type"),
            schedule=row.get("work_schedule"),
        ),
        requirements=Requirements(
            education=row.get("education_level"),
            experience_years=row.get("experience_years"),
            languages=labels("languages"),
            hard_skills=labels("hard_skills"),
            soft_skills=labels("soft_skills"),
            certifications=labels("certifications"),
        ),
        benefits=labels("benefits"),
        posting_date=row.get("posting_date"),
        source=Source(site=row.get("site"), url=row.get("job_url")),
        parsed_view=ParsedView(
            responsibilities=labels("responsibilities"),
            work_environment=labels("work_environment"),
            professional_development=labels("professional_development"),
        ),
        raw=RawFields(
            original_title=row.get("original_title"),
            original_company=row.get("original_company"),
            original_description=row.get("original_description"),
        ),
        industry=row.get("industry"),
        department=row.get("department"),
        job_family=row.get("job_family"),
        shift_details=row.get("shift_details"),
        travel_requirements=row.get("travel_required"),
    )
