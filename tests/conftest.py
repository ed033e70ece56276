"""Shared fixtures: a small job postings dataset with the production schema."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator

import pytest

from jobquery.storage.database import DatasetExecutor
from jobquery.storage.loader import DatasetLoader, FileDatasetProvider
from jobquery.service import JobQueryService

LOOKUP_TABLES = {
    # table: label column
    "titles": "name",
    "job_functions": "name",
    "specializations": "name",
    "seniority_levels": "name",
    "industries": "name",
    "departments": "name",
    "job_families": "name",
    "companies": "name",
    "company_sizes": "name",
    "cities": "name",
    "regions": "name",
    "countries": "name",
    "remote_work_options": "name",
    "employment_types": "name",
    "contract_types": "name",
    "work_schedules": "name",
    "shift_details": "name",
    "travel_requirements": "name",
    "education_levels": "name",
    "currencies": "code",
    "salary_periods": "name",
    "hard_skills": "name",
    "soft_skills": "name",
    "certifications": "name",
    "licenses": "name",
    "benefits": "description",
    "work_environment": "description",
    "professional_development": "description",
    "work_life_balance": "description",
    "physical_requirements": "description",
    "work_conditions": "description",
    "special_requirements": "description",
}

JUNCTION_TABLES = (
    "hard_skills",
    "soft_skills",
    "certifications",
    "licenses",
    "benefits",
    "work_environment",
    "professional_development",
    "work_life_balance",
    "physical_requirements",
    "work_conditions",
    "special_requirements",
)

JOB_DETAILS_SQL = """
CREATE TABLE job_details (
    id                    INTEGER PRIMARY KEY,
    title_id              INTEGER REFERENCES titles(id),
    job_function_id       INTEGER REFERENCES job_functions(id),
    specialization_id     INTEGER REFERENCES specializations(id),
    seniority_level_id    INTEGER REFERENCES seniority_levels(id),
    industry_id           INTEGER REFERENCES industries(id),
    department_id         INTEGER REFERENCES departments(id),
    job_family_id         INTEGER REFERENCES job_families(id),
    company_name_id       INTEGER REFERENCES companies(id),
    company_size_id       INTEGER REFERENCES company_sizes(id),
    city_id               INTEGER REFERENCES cities(id),
    region_id             INTEGER REFERENCES regions(id),
    country_id            INTEGER REFERENCES countries(id),
    remote_work_id        INTEGER REFERENCES remote_work_options(id),
    employment_type_id    INTEGER REFERENCES employment_types(id),
    contract_type_id      INTEGER REFERENCES contract_types(id),
    work_schedule_id      INTEGER REFERENCES work_schedules(id),
    shift_details_id      INTEGER REFERENCES shift_details(id),
    travel_required_id    INTEGER REFERENCES travel_requirements(id),
    required_education_id INTEGER REFERENCES education_levels(id),
    salary_currency_id    INTEGER REFERENCES currencies(id),
    salary_period_id      INTEGER REFERENCES salary_periods(id),
    min_salary            REAL,
    max_salary            REAL,
    experience_years      INTEGER,
    posting_date          TEXT,
    site                  TEXT,
    job_url               TEXT,
    job_title             TEXT,
    company_name          TEXT,
    job_description       TEXT
);

CREATE TABLE job_languages (
    id            INTEGER PRIMARY KEY,
    job_detail_id INTEGER NOT NULL REFERENCES job_details(id),
    language      TEXT
);

CREATE TABLE responsibilities (
    id            INTEGER PRIMARY KEY,
    job_detail_id INTEGER NOT NULL REFERENCES job_details(id),
    description   TEXT
);
"""

# id, title, company, city, seniority, remote, min, max, experience, date, currency
POSTINGS = [
    (1, "Python Developer", "Acme", "Chisinau", "Senior", "Remote", 20000, 30000, 5, "2024-03-01", "MDL"),
    (2, "Data Engineer", "Acme", "Balti", "Senior", "Hybrid", 25000, 40000, 3, "2024-03-05", "EUR"),
    (3, "Backend Developer", "Globex", "Chisinau", "Middle", "Office", 15000, 22000, 2, "2024-02-20", "MDL"),
    (4, "QA Engineer", "Initech", "Balti", "Junior", "Remote", 10000, 15000, 1, "2024-03-10", "MDL"),
    (5, "Accountant", None, None, None, None, None, None, None, "2024-01-15", None),
    (6, "Project Manager", "Globex", "Chisinau", "Senior", "Hybrid", 30000, 45000, 8, "2024-03-05", "MDL"),
]

JOB_FUNCTIONS = {1: "IT", 2: "IT", 3: "IT", 4: "IT", 5: "Finance", 6: "Management"}
SPECIALIZATIONS = {1: "Backend", 2: "Data", 3: "Backend"}

# (table, job id, label), in storage order
MANY_TO_MANY = [
    ("hard_skills", 1, "Python"),
    ("hard_skills", 1, "Docker"),
    ("hard_skills", 2, "Python"),
    ("hard_skills", 2, "SQL"),
    ("hard_skills", 3, "SQL"),
    ("hard_skills", 3, "Python"),
    ("hard_skills", 4, "SQL"),
    ("soft_skills", 1, "Communication"),
    ("soft_skills", 6, "Communication"),
    ("certifications", 2, "AWS Certified"),
    ("benefits", 1, "Health insurance"),
    ("benefits", 2, "Health insurance"),
    ("benefits", 2, "Flexible hours"),
    ("benefits", 6, "Flexible hours"),
    ("work_environment", 3, "Open office"),
    ("professional_development", 1, "Training budget"),
]

LANGUAGES = [
    (1, "Romanian"),
    (1, "English"),
    (2, "English"),
    (3, "Romanian"),
    (3, "English"),
    (3, "Russian"),
    (6, "Romanian"),
]

RESPONSIBILITIES = [
    (1, "Write maintainable services"),
    (1, "Review pull requests"),
    (3, "Design REST APIs"),
]


def build_dataset(db_path: Path, converted_salaries: dict[int, tuple[float, float]] | None = None) -> Path:
    """Create the dataset file; optionally with converted MDL salary columns."""
    conn = sqlite3.connect(db_path)
    try:
        for table, label_column in LOOKUP_TABLES.items():
            conn.execute(f"CREATE TABLE {table} (id INTEGER PRIMARY KEY, {label_column} TEXT UNIQUE)")
        for table in JUNCTION_TABLES:
            conn.execute(
                f"CREATE TABLE job_details_{table} ("
                f"job_details_id INTEGER NOT NULL, {table}_id INTEGER NOT NULL)"
            )
        conn.executescript(JOB_DETAILS_SQL)
        if converted_salaries is not None:
            conn.execute("ALTER TABLE job_details ADD COLUMN min_salary_mdl REAL")
            conn.execute("ALTER TABLE job_details ADD COLUMN max_salary_mdl REAL")

        def lookup(table: str, label: str | None) -> int | None:
            if label is None:
                return None
            column = LOOKUP_TABLES[table]
            row = conn.execute(f"SELECT id FROM {table} WHERE {column} = ?", (label,)).fetchone()
            if row:
                return row[0]
            return conn.execute(f"INSERT INTO {table} ({column}) VALUES (?)", (label,)).lastrowid

        for (job_id, title, company, city, seniority, remote, low, high,
             experience, posted, currency) in POSTINGS:
            conn.execute(
                """
                INSERT INTO job_details (
                    id, title_id, job_function_id, specialization_id, seniority_level_id,
                    company_name_id, city_id, remote_work_id, salary_currency_id,
                    salary_period_id, country_id, min_salary, max_salary, experience_years,
                    posting_date, site, job_url, job_title, company_name, job_description
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job_id,
                    lookup("titles", title),
                    lookup("job_functions", JOB_FUNCTIONS.get(job_id)),
                    lookup("specializations", SPECIALIZATIONS.get(job_id)),
                    lookup("seniority_levels", seniority),
                    lookup("companies", company),
                    lookup("cities", city),
                    lookup("remote_work_options", remote),
                    lookup("currencies", currency),
                    lookup("salary_periods", "Monthly" if low is not None else None),
                    lookup("countries", "Moldova" if city is not None else None),
                    low,
                    high,
                    experience,
                    posted,
                    "rabota.md",
                    f"https://rabota.md/jobs/{job_id}",
                    title,
                    company,
                    f"{title} wanted",
                ),
            )

        for table, job_id, label in MANY_TO_MANY:
            conn.execute(
                f"INSERT INTO job_details_{table} (job_details_id, {table}_id) VALUES (?, ?)",
                (job_id, lookup(table, label)),
            )
        conn.executemany(
            "INSERT INTO job_languages (job_detail_id, language) VALUES (?, ?)", LANGUAGES
        )
        conn.executemany(
            "INSERT INTO responsibilities (job_detail_id, description) VALUES (?, ?)", RESPONSIBILITIES
        )
        for job_id, (low_mdl, high_mdl) in (converted_salaries or {}).items():
            conn.execute(
                "UPDATE job_details SET min_salary_mdl = ?, max_salary_mdl = ? WHERE id = ?",
                (low_mdl, high_mdl, job_id),
            )
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture
def dataset_path(tmp_path: Path) -> Path:
    return build_dataset(tmp_path / "data.db")


@pytest.fixture
def executor(dataset_path: Path) -> Iterator[DatasetExecutor]:
    executor = DatasetExecutor.from_bytes(dataset_path.read_bytes())
    yield executor
    executor.close()


@pytest.fixture
def service(dataset_path: Path) -> Iterator[JobQueryService]:
    loader = DatasetLoader(FileDatasetProvider(dataset_path))
    yield JobQueryService(loader)
    loader.close()
