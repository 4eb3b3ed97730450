"""Run the airbnb-duck pipeline."""

import argparse
import dataclasses
from pathlib import Path

from airbnb_duck.base import CastPolicy
from airbnb_duck.defs import build_registry
from airbnb_duck.defs.config import PipelineConfig
from airbnb_duck.exceptions import PipelineError
from airbnb_duck.resolver import DependencyResolver

EXIT_MODEL_FAILURE = 1
EXIT_QUALITY_FAILURE = 2


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the airbnb-duck pipeline")
    parser.add_argument("--dry-run", action="store_true", help="Show plan without running")
    parser.add_argument(
        "--db",
        default=None,
        help="DuckDB file path (default: AIRBNB_DUCK_DB_PATH or data/output/airbnb.duckdb)",
    )
    parser.add_argument(
        "--raw-dir",
        default=None,
        help="Directory with raw CSV extracts (default: AIRBNB_DUCK_RAW_DIR or data/raw)",
    )
    parser.add_argument(
        "--cast-policy",
        choices=[p.value for p in CastPolicy],
        default=None,
        help="How staging treats unconvertible values (default: lenient)",
    )
    parser.add_argument("--report", default=None, help="Write the run report as JSON to this path")
    args = parser.parse_args(argv)

    try:
        config = PipelineConfig.from_env()
    except PipelineError as e:
        print(f"Configuration error: {e}")
        return EXIT_MODEL_FAILURE

    # CLI args override environment
    overrides = {}
    if args.db:
        overrides["duckdb_path"] = Path(args.db)
    if args.raw_dir:
        overrides["raw_dir"] = Path(args.raw_dir)
    if args.cast_policy:
        overrides["cast_policy"] = CastPolicy(args.cast_policy)
    if args.report:
        overrides["report_path"] = Path(args.report)
    config = dataclasses.replace(config, **overrides)
    try:
        config.validate()
    except PipelineError as e:
        print(f"Configuration error: {e}")
        return EXIT_MODEL_FAILURE

    registry = build_registry()
    resolver = DependencyResolver(registry)
    try:
        tiers = resolver.tiers()
    except PipelineError as e:
        print(f"Invalid model graph: {e}")
        return EXIT_MODEL_FAILURE

    print("Pipeline: airbnb")
    print(f"Raw tables: {list(registry.raw_tables)}")
    print(f"Models: {len(registry)}")
    for i, tier in enumerate(tiers, 1):
        labels = [f"{name} ({registry.get(name).layer.value})" for name in tier]
        print(f"  {i}. {', '.join(labels)}")
    print(f"Database: {config.duckdb_path} (schema {config.schema})")
    print()

    if args.dry_run:
        print("Dry run - not executing")
        return 0

    from airbnb_duck.pipeline import run_pipeline

    result = run_pipeline(config, registry=registry)

    print("Models:")
    for run in result.models:
        line = f"  {run.name:<28} {run.status.value:<8} {run.rows_out:>8,} rows"
        if run.rows_dropped:
            line += f" ({run.rows_dropped:,} dropped)"
        if run.error:
            line += f" - {run.error}"
        print(line)
    print()

    print("Validation:")
    for row in result.validation_report():
        print(f"  {row['rule_name']:<40} {row['status']:<8} {row['violating_row_count']:,}")
    print()

    if config.report_path:
        print(f"Report written to: {config.report_path}")

    if not result.success:
        return EXIT_MODEL_FAILURE
    if not result.quality_passed:
        return EXIT_QUALITY_FAILURE
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
