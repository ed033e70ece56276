"""Schema catalog — declarative mapping of filterable fields to their relational shape.

Every other query component dispatches on these entries instead of branching
on field names. Table and column names interpolated into SQL come from here
and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from jobquery.errors import UnknownFieldError

ENTITY_TABLE = "job_details"
ENTITY_ALIAS = "jd"
ENTITY_ID = f"{ENTITY_ALIAS}.id"


class RelationshipShape(str, Enum):
    MANY_TO_ONE = "many_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Relational shape of one attribute slot of a job posting.

    ``foreign_key`` means, per shape:
      - many-to-one: the column on ``job_details`` pointing at ``table.id``
      - one-to-many: the column on ``table`` pointing at ``job_details.id``
      - many-to-many: the column on ``junction_table`` pointing at ``table.id``
    """

    key: str
    shape: RelationshipShape
    table: str
    label_column: str
    foreign_key: str
    alias: str
    label: str
    junction_table: str | None = None
    junction_entity_column: str | None = None
    filterable: bool = True

    @property
    def is_multi_valued(self) -> bool:
        return self.shape is not RelationshipShape.MANY_TO_ONE

    @property
    def label_expression(self) -> str:
        """Qualified label column under the field's catalog alias."""
        return f"{self.alias}.{self.label_column}"


def _many_to_one(key: str, table: str, foreign_key: str, alias: str, label: str,
                 label_column: str = "name", filterable: bool = True) -> FieldSpec:
    return FieldSpec(
        key=key,
        shape=RelationshipShape.MANY_TO_ONE,
        table=table,
        label_column=label_column,
        foreign_key=foreign_key,
        alias=alias,
        label=label,
        filterable=filterable,
    )


def _one_to_many(key: str, table: str, label_column: str, label: str,
                 filterable: bool = True) -> FieldSpec:
    return FieldSpec(
        key=key,
        shape=RelationshipShape.ONE_TO_MANY,
        table=table,
        label_column=label_column,
        foreign_key="job_detail_id",
        alias=f"{key}_o2m",
        label=label,
        filterable=filterable,
    )


def _many_to_many(key: str, table: str, label: str, label_column: str = "name") -> FieldSpec:
    return FieldSpec(
        key=key,
        shape=RelationshipShape.MANY_TO_MANY,
        table=table,
        label_column=label_column,
        foreign_key=f"{table}_id",
        alias=f"{key}_m2m",
        label=label,
        junction_table=f"{ENTITY_TABLE}_{table}",
        junction_entity_column="job_details_id",
    )


# =============================================================================
# Field catalog
# =============================================================================

_FIELDS: tuple[FieldSpec, ...] = (
    # Job details
    _many_to_one("title", "titles", "title_id", "t", "Job Title"),
    _many_to_one("job_function", "job_functions", "job_function_id", "jf", "Job Function"),
    _many_to_one("specialization", "specializations", "specialization_id", "sp", "Specialization"),
    _many_to_one("seniority_level", "seniority_levels", "seniority_level_id", "sl", "Seniority Level"),
    _many_to_one("industry", "industries", "industry_id", "ind", "Industry"),
    _many_to_one("department", "departments", "department_id", "d", "Department"),
    _many_to_one("job_family", "job_families", "job_family_id", "jf2", "Job Family"),
    # Company
    _many_to_one("company", "companies", "company_name_id", "c", "Company"),
    _many_to_one("company_size", "company_sizes", "company_size_id", "cs", "Company Size"),
    # Location
    _many_to_one("city", "cities", "city_id", "ci", "City"),
    _many_to_one("region", "regions", "region_id", "reg", "Region"),
    _many_to_one("country", "countries", "country_id", "cou", "Country"),
    # Work arrangement
    _many_to_one("remote_work", "remote_work_options", "remote_work_id", "rw", "Remote Work"),
    _many_to_one("employment_type", "employment_types", "employment_type_id", "et", "Employment Type"),
    _many_to_one("contract_type", "contract_types", "contract_type_id", "ct", "Contract Type"),
    _many_to_one("work_schedule", "work_schedules", "work_schedule_id", "ws", "Work Schedule"),
    _many_to_one("shift_details", "shift_details", "shift_details_id", "sd", "Shift Details"),
    _many_to_one("travel_required", "travel_requirements", "travel_required_id", "tr", "Travel Required"),
    # Requirements
    _many_to_one("education_level", "education_levels", "required_education_id", "el", "Education Level"),
    # Salary labels (display only)
    _many_to_one("salary_currency", "currencies", "salary_currency_id", "curr", "Currency",
                 label_column="code", filterable=False),
    _many_to_one("salary_period", "salary_periods", "salary_period_id", "sper", "Salary Period",
                 filterable=False),
    # One-to-many
    _one_to_many("languages", "job_languages", "language", "Languages"),
    _one_to_many("responsibilities", "responsibilities", "description", "Responsibilities",
                 filterable=False),
    # Many-to-many
    _many_to_many("hard_skills", "hard_skills", "Hard Skills"),
    _many_to_many("soft_skills", "soft_skills", "Soft Skills"),
    _many_to_many("certifications", "certifications", "Certifications"),
    _many_to_many("licenses_required", "licenses", "Licenses"),
    _many_to_many("benefits", "benefits", "Benefits", "description"),
    _many_to_many("work_environment", "work_environment", "Work Environment", "description"),
    _many_to_many("professional_development", "professional_development",
                  "Professional Development", "description"),
    _many_to_many("work_life_balance", "work_life_balance", "Work-Life Balance", "description"),
    _many_to_many("physical_requirements", "physical_requirements",
                  "Physical Requirements", "description"),
    _many_to_many("work_conditions", "work_conditions", "Work Conditions", "description"),
    _many_to_many("special_requirements", "special_requirements",
                  "Special Requirements", "description"),
)

CATALOG: Mapping[str, FieldSpec] = MappingProxyType({spec.key: spec for spec in _FIELDS})

FILTERABLE_FIELDS: tuple[str, ...] = tuple(spec.key for spec in _FIELDS if spec.filterable)

_CATALOG_ORDER = {spec.key: position for position, spec in enumerate(_FIELDS)}


def get_field(key: str) -> FieldSpec:
    """Return the catalog entry for ``key`` or raise UnknownFieldError."""
    try:
        return CATALOG[key]
    except KeyError:
        raise UnknownFieldError(key) from None


def catalog_order(key: str) -> int:
    """Position of a field in the catalog, used for deterministic ordering."""
    return _CATALOG_ORDER[get_field(key).key]


# =============================================================================
# Numeric ranges
# =============================================================================


@dataclass(frozen=True, slots=True)
class RangeSpec:
    """One bound of a numeric range; bounds sharing ``field`` form a single predicate."""

    key: str
    field: str
    column: str
    operator: str


RANGE_FIELDS: Mapping[str, RangeSpec] = MappingProxyType({
    "salary_min": RangeSpec("salary_min", "salary", f"{ENTITY_ALIAS}.min_salary", ">="),
    "salary_max": RangeSpec("salary_max", "salary", f"{ENTITY_ALIAS}.max_salary", "<="),
    "experience_min": RangeSpec("experience_min", "experience", f"{ENTITY_ALIAS}.experience_years", ">="),
    "experience_max": RangeSpec("experience_max", "experience", f"{ENTITY_ALIAS}.experience_years", "<="),
})


# =============================================================================
# Free-text search
# =============================================================================

# Raw columns on job_details, then lookup labels resolved through the join graph
SEARCH_COLUMNS: tuple[str, ...] = (f"{ENTITY_ALIAS}.job_title",)
SEARCH_FIELDS: tuple[str, ...] = ("title", "company", "job_function", "specialization")


# =============================================================================
# Sorting
# =============================================================================


@dataclass(frozen=True, slots=True)
class SortSpec:
    key: str
    column: str
    direction: str
    field: str | None = None

    @property
    def clause(self) -> str:
        return f"{self.column} {self.direction}"


def _sort_on_field(key: str, field: str, direction: str) -> SortSpec:
    return SortSpec(key, CATALOG[field].label_expression, direction, field)


DEFAULT_SORT_KEY = "date_desc"

SORT_KEYS: Mapping[str, SortSpec] = MappingProxyType({
    "date_desc": SortSpec("date_desc", f"{ENTITY_ALIAS}.posting_date", "DESC"),
    "date_asc": SortSpec("date_asc", f"{ENTITY_ALIAS}.posting_date", "ASC"),
    "salary_desc": SortSpec("salary_desc", f"{ENTITY_ALIAS}.min_salary", "DESC"),
    "salary_asc": SortSpec("salary_asc", f"{ENTITY_ALIAS}.min_salary", "ASC"),
    "title_asc": _sort_on_field("title_asc", "title", "ASC"),
    "title_desc": _sort_on_field("title_desc", "title", "DESC"),
    "company_asc": _sort_on_field("company_asc", "company", "ASC"),
    "company_desc": _sort_on_field("company_desc", "company", "DESC"),
})


def resolve_sort(sort_key: str | None) -> SortSpec:
    """Map a requested sort key onto the closed enum, falling back to newest first."""
    return SORT_KEYS.get(sort_key or DEFAULT_SORT_KEY, SORT_KEYS[DEFAULT_SORT_KEY])


# =============================================================================
# Display projection
# =============================================================================

# Lookup labels inlined into every flat row, in projection order
DISPLAY_FIELDS: tuple[str, ...] = (
    "title",
    "job_function",
    "specialization",
    "seniority_level",
    "company",
    "company_size",
    "city",
    "region",
    "country",
    "remote_work",
    "salary_currency",
    "salary_period",
    "employment_type",
    "contract_type",
    "work_schedule",
    "education_level",
    "industry",
    "department",
    "job_family",
    "shift_details",
    "travel_required",
)

# (expression, output column) pairs read straight off job_details
DISPLAY_COLUMNS: tuple[tuple[str, str], ...] = (
    (f"{ENTITY_ALIAS}.min_salary", "min_salary"),
    (f"{ENTITY_ALIAS}.max_salary", "max_salary"),
    (f"{ENTITY_ALIAS}.experience_years", "experience_years"),
    (f"{ENTITY_ALIAS}.posting_date", "posting_date"),
    (f"{ENTITY_ALIAS}.site", "site"),
    (f"{ENTITY_ALIAS}.job_url", "job_url"),
    (f"{ENTITY_ALIAS}.job_title", "original_title"),
    (f"{ENTITY_ALIAS}.company_name", "original_company"),
    (f"{ENTITY_ALIAS}.job_description", "original_description"),
)

# Converted salary columns, projected only when the dataset carries them
CONVERTED_SALARY_COLUMNS: tuple[tuple[str, str], ...] = (
    (f"{ENTITY_ALIAS}.min_salary_mdl", "min_salary_mdl"),
    (f"{ENTITY_ALIAS}.max_salary_mdl", "max_salary_mdl"),
)

# Multi-valued attributes attached by the hydrator
HYDRATED_FIELDS: tuple[str, ...] = (
    "hard_skills",
    "soft_skills",
    "certifications",
    "benefits",
    "responsibilities",
    "languages",
    "work_environment",
    "professional_development",
)
