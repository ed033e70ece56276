"""Job Query Engine — CLI entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv


def setup_logging(log_level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging to stderr and, optionally, a log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def parse_filters(items: list[str]) -> dict[str, list[str] | float]:
    """Turn repeated ``field=value`` arguments into a filter mapping."""
    from jobquery.models.filters import RANGE_KEYS

    labels: dict[str, list[str]] = {}
    ranges: dict[str, float] = {}
    for item in items:
        field, sep, value = item.partition("=")
        if not sep or not field:
            raise argparse.ArgumentTypeError(f"Filters must look like field=value, got {item!r}")
        if field in RANGE_KEYS:
            ranges[field] = float(value)
        else:
            labels.setdefault(field, []).append(value)
    return {**labels, **ranges}


def main() -> None:
    """Main CLI entrypoint for the Job Query Engine."""
    parser = argparse.ArgumentParser(
        description="Query a job postings dataset: pages, facet counts, postings and analyses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py page --filter city=Chisinau --filter hard_skills=Python --sort salary_desc
  python main.py page --search developer --page 2 --page-size 50
  python main.py facets city --filter seniority_level=Senior
  python main.py entity 42
  python main.py analysis "Work Flexibility Options" --filter remote_work=Remote
  python main.py metadata
        """,
    )
    parser.add_argument(
        "command",
        choices=["page", "facets", "entity", "analysis", "metadata"],
        help="What to query",
    )
    parser.add_argument(
        "target",
        nargs="?",
        help="Field key for 'facets', posting id for 'entity', analysis name for 'analysis'",
    )
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Filter value; repeat for several values or fields. Ranges: salary_min=15000",
    )
    parser.add_argument("--search", default="", help="Free-text search across titles and companies")
    parser.add_argument(
        "--policy",
        choices=["and", "or"],
        default="and",
        help="Combine different fields with AND (browsing) or OR (exploration). Default: and",
    )
    parser.add_argument("--page", type=int, default=1, help="1-indexed page number. Default: 1")
    parser.add_argument("--page-size", type=int, default=None, help="Postings per page")
    parser.add_argument("--sort", default="date_desc", help="Sort key. Default: date_desc")
    parser.add_argument("--dataset-file", default=None, help="Local dataset file (overrides env)")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override (DEBUG, INFO, WARNING, ERROR)",
    )

    args = parser.parse_args()

    # Load environment variables
    load_dotenv()

    log_level = args.log_level or os.getenv("LOG_LEVEL", "WARNING")
    setup_logging(log_level, os.getenv("LOG_FILE"))
    logger = logging.getLogger("jobquery")

    from jobquery.config import EngineConfig
    from jobquery.errors import JobQueryError
    from jobquery.models.filters import CombinePolicy, FilterState
    from jobquery.service import JobQueryService
    from jobquery.storage.loader import DatasetLoader

    config = EngineConfig.from_env()
    if args.dataset_file:
        config = config.model_copy(update={"dataset_file": args.dataset_file})

    try:
        filter_state = FilterState.from_mapping(parse_filters(args.filter))
        service = JobQueryService(DatasetLoader(config.build_provider()), config)
    except (ValueError, argparse.ArgumentTypeError) as e:
        parser.error(str(e))

    policy = CombinePolicy(args.policy)

    async def run() -> object:
        if args.command == "page":
            return await service.get_page(
                args.page, args.page_size, filter_state, args.search, args.sort, policy
            )
        if args.command == "facets":
            if not args.target:
                parser.error("facets needs a field key")
            return await service.get_facets(args.target, filter_state, args.search, policy)
        if args.command == "entity":
            if not args.target:
                parser.error("entity needs a posting id")
            return await service.get_entity_by_id(int(args.target))
        if args.command == "analysis":
            if not args.target:
                return [analysis.name for analysis in service.analyses]
            return await service.run_analysis(args.target, filter_state)
        return await service.get_metadata()

    start_time = time.time()
    try:
        result = asyncio.run(run())
    except (JobQueryError, KeyError) as e:
        logger.error("Query failed after %.2f seconds: %s", time.time() - start_time, e)
        sys.exit(1)

    logger.info("Query complete in %.2f seconds", time.time() - start_time)
    output = _to_jsonable(result, config.default_currency)
    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))


def _to_jsonable(result: object, default_currency: str = "MDL") -> object:
    """Dump models for printing; postings get a display-ready salary string."""
    from jobquery.models.job import EntityView, JobPage
    from jobquery.report.formatting import format_salary

    if isinstance(result, EntityView):
        data = result.model_dump(mode="json")
        data["salary_display"] = format_salary(result.salary, default_currency=default_currency)
        return data
    if isinstance(result, JobPage):
        data = result.model_dump(mode="json")
        data["entities"] = [_to_jsonable(entity, default_currency) for entity in result.entities]
        return data
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_to_jsonable(item, default_currency) for item in result]
    return result


if __name__ == "__main__":
    main()
