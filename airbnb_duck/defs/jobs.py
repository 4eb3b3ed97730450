"""Job and schedule definitions for the airbnb-duck pipeline.

The whole model graph runs inside one op: the executor already orders the
models, skips dependents of failures and materializes to DuckDB, so Dagster
only supplies scheduling, run history and logs.
"""

import os

import dagster as dg

from airbnb_duck.validation import ValidationStatus

from .config import DEFAULT_SCHEDULE
from .resources import AirbnbPipelineResource


@dg.op
def run_airbnb_pipeline(
    context: dg.OpExecutionContext, airbnb: AirbnbPipelineResource
) -> dg.Output[dict]:
    """Op: Run every model, then every validation rule.

    Fails the run when a model fails. Validation failures are logged as
    warnings and reported in the output metadata.
    """
    result = airbnb.run()

    for run in result.models:
        message = f"[{run.name}] {run.status.value}: {run.rows_out:,} rows in {run.duration_ms:.1f}ms"
        if run.error:
            context.log.error(f"{message} | {run.error}")
        else:
            context.log.info(message)

    failed_rules = [v for v in result.validations if v.status == ValidationStatus.FAILED]
    for v in failed_rules:
        context.log.warning(
            f"Validation rule {v.rule_name} failed on {v.table}: "
            f"{v.violating_row_count:,} violating rows"
        )

    row_counts = {run.name: run.rows_out for run in result.models}
    if not result.success:
        raise dg.Failure(
            description=f"Models failed: {', '.join(result.failed_models)}",
            metadata={
                "failed_models": dg.MetadataValue.json(result.failed_models),
                "skipped_models": dg.MetadataValue.json(result.skipped_models),
                "row_counts": dg.MetadataValue.json(row_counts),
            },
        )

    return dg.Output(
        result.to_dict(),
        metadata={
            "model_count": dg.MetadataValue.int(len(result.models)),
            "row_counts": dg.MetadataValue.json(row_counts),
            "validation_report": dg.MetadataValue.json(result.validation_report()),
            "failed_rules": dg.MetadataValue.int(len(failed_rules)),
            "quality_passed": dg.MetadataValue.bool(result.quality_passed),
        },
    )


@dg.job(
    description="""
    Complete airbnb-duck pipeline: raw CSV -> staging -> dimensional -> aggregation.

    1. Staging: cast raw listings, reviews and full moon dates to typed tables
    2. Dimensional: categorize listings, enrich reviews
    3. Aggregation: neighbourhood metrics
    4. Validation: standing data quality rules
    """,
)
def airbnb_pipeline():
    run_airbnb_pipeline()


daily_airbnb_pipeline = dg.ScheduleDefinition(
    name="daily_airbnb_pipeline",
    job=airbnb_pipeline,
    cron_schedule=os.environ.get("AIRBNB_DUCK_SCHEDULE", DEFAULT_SCHEDULE),
)
