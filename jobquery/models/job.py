"""Pydantic models for hydrated job postings and query results."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Location(BaseModel):
    city: str | None = None
    region: str | None = None
    country: str | None = None
    remote_work: str | None = None


class Salary(BaseModel):
    """Salary bounds as stored, plus converted bounds when the dataset has them.

    ``min_mdl``/``max_mdl`` stay ``None`` unless a conversion was computed
    upstream; ``currency`` is always the original currency label.
    """

    min: float | None = None
    max: float | None = None
    currency: str | None = None
    period: str | None = None
    min_mdl: float | None = None
    max_mdl: float | None = None

    @property
    def has_conversion(self) -> bool:
        return self.min_mdl is not None


class Employment(BaseModel):
    type: str | None = None
    contract: str | None = None
    schedule: str | None = None


class Requirements(BaseModel):
    education: str | None = None
    experience_years: float | None = None
    languages: list[str] = Field(default_factory=list)
    hard_skills: list[str] = Field(default_factory=list)
    soft_skills: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)


class Source(BaseModel):
    site: str | None = None
    url: str | None = None


class ParsedView(BaseModel):
    responsibilities: list[str] = Field(default_factory=list)
    work_environment: list[str] = Field(default_factory=list)
    professional_development: list[str] = Field(default_factory=list)


class RawFields(BaseModel):
    original_title: str | None = None
    original_company: str | None = None
    original_description: str | None = None


class EntityView(BaseModel):
    """A job posting with lookup labels inlined and multi-valued attributes attached."""

    id: int
    title: str | None = None
    job_function: str | None = None
    specialization: str | None = None
    seniority_level: str | None = None
    company: str | None = None
    company_size: str | None = None
    location: Location = Field(default_factory=Location)
    salary: Salary = Field(default_factory=Salary)
    employment: Employment = Field(default_factory=Employment)
    requirements: Requirements = Field(default_factory=Requirements)
    benefits: list[str] = Field(default_factory=list)
    posting_date: str | None = None
    source: Source = Field(default_factory=Source)
    parsed_view: ParsedView = Field(default_factory=ParsedView)
    raw: RawFields = Field(default_factory=RawFields)
    industry: str | None = None
    department: str | None = None
    job_family: str | None = None
    shift_details: str | None = None
    travel_requirements: str | None = None


class Facet(BaseModel):
    """One candidate value of a field and how many postings would match it."""

    label: str
    count: int


class JobPage(BaseModel):
    entities: list[EntityView] = Field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    page: int = 1
    page_size: int = 20


class Metadata(BaseModel):
    """Unfiltered facet lists for every filterable field."""

    total_jobs: int = 0
    facets: dict[str, list[Facet]] = Field(default_factory=dict)


class ValueSuggestion(BaseModel):
    """A lookup label matching a typed search term, with its field."""

    value: str
    count: int
    field: str
    field_label: str
