"""Integration tests for the executor and run_pipeline.

These run the full model graph against in-memory raw tables and a DuckDB file
in a temporary directory.
"""

import dataclasses
import json

import duckdb
import pandera.polars as pa
import polars as pl
import pytest
from polars.testing import assert_frame_equal

from airbnb_duck import __main__ as cli
from airbnb_duck.base import CastPolicy, Layer, Model
from airbnb_duck.defs import build_registry
from airbnb_duck.exceptions import (
    ConfigurationError,
    CycleError,
    MaterializationError,
    UnknownReferenceError,
)
from airbnb_duck.executor import ModelStatus, TransformationExecutor
from airbnb_duck.materializer import DuckDBMaterializer
from airbnb_duck.pipeline import run_pipeline
from airbnb_duck.registry import ModelRegistry
from airbnb_duck.sources import InMemoryRawTableProvider
from airbnb_duck.validation import expression_rule

MODEL_TABLES = [
    "stg_listings",
    "stg_reviews",
    "stg_full_moon_dates",
    "dim_listings",
    "fact_reviews",
    "agg_neighbourhood_metrics",
]

LISTINGS_HEADER = (
    "id,name,host_id,host_name,neighbourhood_group,neighbourhood,latitude,longitude,"
    "room_type,price,minimum_nights,number_of_reviews,last_review,reviews_per_month,"
    "calculated_host_listings_count,availability_365\n"
)


class FailingMaterializer(DuckDBMaterializer):
    """Materializer whose writes fail for the named tables."""

    def __init__(self, fail_on: set[str]):
        super().__init__()
        self.fail_on = fail_on

    def materialize(self, name: str, df: pl.DataFrame) -> int:
        if name in self.fail_on:
            raise MaterializationError(name, "disk full")
        return super().materialize(name, df)


def read_all(config) -> dict[str, pl.DataFrame]:
    with DuckDBMaterializer(config.duckdb_path, config.schema) as store:
        return {name: store.read(name) for name in MODEL_TABLES}


# -----------------------------------------------------------------------------
# End to end
# -----------------------------------------------------------------------------


class TestRunPipeline:
    """Tests for a complete pipeline run."""

    def test_all_models_succeed(self, pipeline_config, provider) -> None:
        result = run_pipeline(pipeline_config, provider=provider)

        assert result.success
        assert result.failed_models == []
        assert [r.name for r in result.models] == MODEL_TABLES
        assert result.quality_passed

    def test_row_counts(self, pipeline_config, provider) -> None:
        result = run_pipeline(pipeline_config, provider=provider)
        rows = {r.name: r.rows_out for r in result.models}

        assert rows["stg_listings"] == 4
        assert rows["stg_reviews"] == 4
        assert rows["fact_reviews"] == rows["stg_reviews"]
        assert rows["agg_neighbourhood_metrics"] == 2

    def test_quality_counters_reported(self, pipeline_config, provider) -> None:
        result = run_pipeline(pipeline_config, provider=provider)

        listings = result.model("stg_listings")
        assert listings.rows_dropped == 1
        assert listings.coercion_failures == {"price_per_night": 1}
        assert result.model("stg_reviews").rows_dropped == 2

    def test_rerun_is_idempotent(self, pipeline_config, provider) -> None:
        run_pipeline(pipeline_config, provider=provider)
        first = read_all(pipeline_config)
        run_pipeline(pipeline_config, provider=provider)
        second = read_all(pipeline_config)

        for name in MODEL_TABLES:
            assert_frame_equal(first[name], second[name])

    def test_tables_land_in_configured_schema(self, pipeline_config, provider) -> None:
        config = dataclasses.replace(pipeline_config, schema="analytics")
        run_pipeline(config, provider=provider)

        with DuckDBMaterializer(config.duckdb_path, "analytics") as store:
            assert store.tables() == sorted(MODEL_TABLES)

    def test_neighbourhood_keys_grouped_exactly(
        self, pipeline_config, listing_row, review_row, raw_tables
    ) -> None:
        raw_tables["listings"] = [
            listing_row(id="1", neighbourhood="SoHo"),
            listing_row(id="2", neighbourhood="SoHo "),
        ]
        raw_tables["reviews"] = [review_row(listing_id="1")]
        result = run_pipeline(pipeline_config, provider=InMemoryRawTableProvider(raw_tables))
        assert result.success

        with DuckDBMaterializer(pipeline_config.duckdb_path) as store:
            metrics = store.read("agg_neighbourhood_metrics")
        assert sorted(metrics["neighbourhood"].to_list()) == ["SoHo", "SoHo "]

    def test_report_written(self, pipeline_config, provider, tmp_path) -> None:
        config = dataclasses.replace(pipeline_config, report_path=tmp_path / "report.json")
        result = run_pipeline(config, provider=provider)

        report = json.loads((tmp_path / "report.json").read_text())
        assert report == json.loads(json.dumps(result.to_dict()))
        assert {"rule_name", "table", "status", "passed", "violating_row_count"} == set(
            report["validations"][0]
        )


# -----------------------------------------------------------------------------
# Failure handling
# -----------------------------------------------------------------------------


class TestFailures:
    """Tests for failure isolation."""

    def test_strict_failure_skips_dependents(self, pipeline_config, provider) -> None:
        config = dataclasses.replace(pipeline_config, cast_policy=CastPolicy.STRICT)
        result = run_pipeline(config, provider=provider)
        status = {r.name: r.status for r in result.models}

        # Listings hold "abc" as a price; reviews also hold a bad date
        assert status["stg_listings"] == ModelStatus.FAILED
        assert status["stg_reviews"] == ModelStatus.FAILED
        assert status["stg_full_moon_dates"] == ModelStatus.SUCCESS
        assert status["dim_listings"] == ModelStatus.SKIPPED
        assert status["fact_reviews"] == ModelStatus.SKIPPED
        assert status["agg_neighbourhood_metrics"] == ModelStatus.SKIPPED
        assert not result.success

    def test_failed_models_rules_skipped(self, pipeline_config, provider) -> None:
        config = dataclasses.replace(pipeline_config, cast_policy=CastPolicy.STRICT)
        result = run_pipeline(config, provider=provider)

        assert {v["status"] for v in result.validation_report()} == {"skipped"}
        assert result.quality_passed

    def test_materialization_failure_isolated(self, pipeline_config, provider) -> None:
        store = FailingMaterializer({"dim_listings"})
        try:
            result = run_pipeline(pipeline_config, provider=provider, materializer=store)
            status = {r.name: r.status for r in result.models}

            assert status["dim_listings"] == ModelStatus.FAILED
            assert "disk full" in result.model("dim_listings").error
            assert status["agg_neighbourhood_metrics"] == ModelStatus.SKIPPED
            # Independent branch still runs
            assert status["fact_reviews"] == ModelStatus.SUCCESS
            assert store.exists("fact_reviews")
            assert not store.exists("dim_listings")
        finally:
            store.close()

    def test_prior_tables_kept_when_model_fails(self, pipeline_config, provider) -> None:
        run_pipeline(pipeline_config, provider=provider)
        before = read_all(pipeline_config)

        config = dataclasses.replace(pipeline_config, cast_policy=CastPolicy.STRICT)
        run_pipeline(config, provider=provider)
        after = read_all(pipeline_config)

        assert_frame_equal(before["dim_listings"], after["dim_listings"])

    def test_missing_raw_table_fails_model(self, pipeline_config, raw_tables) -> None:
        del raw_tables["reviews"]
        provider = InMemoryRawTableProvider(raw_tables)
        result = run_pipeline(pipeline_config, provider=provider)

        assert result.failed_models == ["stg_reviews"]
        assert result.skipped_models == ["fact_reviews"]
        assert result.model("agg_neighbourhood_metrics").status == ModelStatus.SUCCESS

    def test_unreadable_raw_file_fails_model(self, pipeline_config) -> None:
        raw_dir = pipeline_config.raw_dir
        raw_dir.mkdir(parents=True)
        (raw_dir / "listings.csv").write_bytes(
            LISTINGS_HEADER.encode()
            + b"1,caf\xe9 flat,100,Anna,Mitte,Mitte,52.52,13.40,Private room,$60.00,1,2,,,1,90\n"
        )
        (raw_dir / "reviews.csv").write_text(
            "listing_id,id,date,reviewer_id,reviewer_name,comments\n"
            "1,10,2024-01-01,7,Ben,Nice\n"
        )
        result = run_pipeline(pipeline_config)
        status = {r.name: r.status for r in result.models}

        assert status["stg_listings"] == ModelStatus.FAILED
        assert "raw.listings" in result.model("stg_listings").error
        assert status["stg_reviews"] == ModelStatus.SUCCESS
        assert status["stg_full_moon_dates"] == ModelStatus.SUCCESS
        assert status["dim_listings"] == ModelStatus.SKIPPED
        assert status["fact_reviews"] == ModelStatus.SKIPPED
        assert not result.success

    def test_driver_error_while_loading_inputs_fails_model(self, materializer) -> None:
        class BrokenProvider:
            def get_raw_table(self, name: str) -> pl.DataFrame:
                raise duckdb.IOException(f"cannot open {name}")

        passthrough = Model(
            name="stg_copy",
            upstream=("listings",),
            layer=Layer.STAGING,
            fn=lambda context, listings: listings,
        )
        registry = ModelRegistry(raw_tables=["listings"], models=[passthrough])
        runs = TransformationExecutor(registry, BrokenProvider(), materializer).execute()

        assert runs[0].status == ModelStatus.FAILED
        assert "cannot open listings" in runs[0].error

    def test_schema_failure_blocks_materialization(self, materializer, provider) -> None:
        class StrictListingIds(pa.DataFrameModel):
            listing_id: int = pa.Field(gt=100)

        bad = Model(
            name="high_ids",
            upstream=("listings",),
            layer=Layer.STAGING,
            fn=lambda context, listings: pl.DataFrame({"listing_id": [1, 2]}),
            schema=StrictListingIds,
        )
        registry = ModelRegistry(raw_tables=["listings"], models=[bad])
        runs = TransformationExecutor(registry, provider, materializer).execute()

        assert runs[0].status == ModelStatus.FAILED
        assert "StrictListingIds" in runs[0].error
        assert not materializer.exists("high_ids")

    def test_transform_error_wrapped(self, materializer, provider) -> None:
        broken = Model(
            name="broken",
            upstream=("listings",),
            layer=Layer.STAGING,
            fn=lambda context, listings: listings.select(pl.col("no_such_column")),
        )
        registry = ModelRegistry(raw_tables=["listings"], models=[broken])
        runs = TransformationExecutor(registry, provider, materializer).execute()

        assert runs[0].status == ModelStatus.FAILED
        assert "Transform failed" in runs[0].error

    def test_cycle_aborts_before_execution(self, pipeline_config, provider) -> None:
        registry = ModelRegistry(
            models=[
                Model("a", ("b",), Layer.STAGING, lambda context, b: b),
                Model("b", ("a",), Layer.STAGING, lambda context, a: a),
            ]
        )
        with pytest.raises(CycleError):
            run_pipeline(pipeline_config, provider=provider, registry=registry)
        assert not pipeline_config.duckdb_path.exists()

    def test_invalid_config_rejected_before_running(self, pipeline_config, provider) -> None:
        config = dataclasses.replace(pipeline_config, schema="bad-schema; DROP")
        with pytest.raises(ConfigurationError, match="schema"):
            run_pipeline(config, provider=provider)
        assert not pipeline_config.duckdb_path.exists()

    def test_unknown_reference_aborts(self, pipeline_config, provider) -> None:
        registry = build_registry()
        typo = Model("typo", ("dim_listing",), Layer.AGGREGATION, lambda context, **_: pl.DataFrame())
        registry.register(typo)
        with pytest.raises(UnknownReferenceError):
            run_pipeline(pipeline_config, provider=provider, registry=registry)


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


class TestPipelineValidation:
    """Tests for post-run validation."""

    def test_quality_failure_does_not_fail_models(
        self, pipeline_config, raw_tables, listing_row
    ) -> None:
        raw_tables["listings"].append(listing_row(id="9", price="0"))
        result = run_pipeline(pipeline_config, provider=InMemoryRawTableProvider(raw_tables))

        assert result.success
        assert not result.quality_passed
        report = {row["rule_name"]: row for row in result.validation_report()}
        assert report["dim_listings_positive_price"]["violating_row_count"] == 1

        # The table stays materialized with the violating row
        with DuckDBMaterializer(pipeline_config.duckdb_path) as store:
            assert 9 in store.read("dim_listings")["listing_id"].to_list()

    def test_custom_rules(self, pipeline_config, provider) -> None:
        rules = [expression_rule("reviews_before_2024", "fact_reviews", "review_year < 2024")]
        result = run_pipeline(pipeline_config, provider=provider, rules=rules)
        assert [v["rule_name"] for v in result.validation_report()] == ["reviews_before_2024"]
        assert result.quality_passed


# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------


class TestCli:
    """Tests for python -m airbnb_duck."""

    def test_dry_run(self, capsys, monkeypatch) -> None:
        monkeypatch.delenv("AIRBNB_DUCK_CAST_POLICY", raising=False)
        assert cli.main(["--dry-run", "--db", ":memory:"]) == 0

        out = capsys.readouterr().out
        assert "stg_listings (staging)" in out
        assert "Dry run - not executing" in out

    def test_run_from_csv(self, tmp_path, capsys, monkeypatch) -> None:
        monkeypatch.delenv("AIRBNB_DUCK_CAST_POLICY", raising=False)
        monkeypatch.delenv("AIRBNB_DUCK_SEEDED_TABLES", raising=False)
        raw_dir = tmp_path / "raw"
        raw_dir.mkdir()
        (raw_dir / "listings.csv").write_text(
            "id,name,host_id,host_name,neighbourhood_group,neighbourhood,latitude,longitude,"
            "room_type,price,minimum_nights,number_of_reviews,last_review,reviews_per_month,"
            "calculated_host_listings_count,availability_365\n"
            '1,Flat,100,Anna,Mitte,Mitte,52.52,13.40,Entire home/apt,"$1,200.00",2,3,,,1,200\n'
        )
        (raw_dir / "reviews.csv").write_text(
            "listing_id,id,date,reviewer_id,reviewer_name,comments\n1,10,2024-01-01,7,Ben,Nice\n"
        )
        report = tmp_path / "report.json"

        code = cli.main(
            ["--raw-dir", str(raw_dir), "--db", str(tmp_path / "a.duckdb"), "--report", str(report)]
        )

        assert code == 0
        assert report.exists()
        assert "agg_neighbourhood_metrics" in capsys.readouterr().out

    def test_quality_failure_exit_code(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("AIRBNB_DUCK_CAST_POLICY", raising=False)
        monkeypatch.delenv("AIRBNB_DUCK_SEEDED_TABLES", raising=False)
        raw_dir = tmp_path / "raw"
        raw_dir.mkdir()
        (raw_dir / "listings.csv").write_text(
            "id,name,host_id,host_name,neighbourhood_group,neighbourhood,latitude,longitude,"
            "room_type,price,minimum_nights,number_of_reviews,last_review,reviews_per_month,"
            "calculated_host_listings_count,availability_365\n"
            "1,Flat,100,Anna,Mitte,Mitte,52.52,13.40,Entire home/apt,0,2,3,,,1,200\n"
        )
        (raw_dir / "reviews.csv").write_text(
            "listing_id,id,date,reviewer_id,reviewer_name,comments\n1,10,2024-01-01,7,Ben,Nice\n"
        )

        assert cli.main(["--raw-dir", str(raw_dir), "--db", str(tmp_path / "a.duckdb")]) == 2

    def test_model_failure_exit_code(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("AIRBNB_DUCK_SEEDED_TABLES", raising=False)
        empty_dir = tmp_path / "raw"
        empty_dir.mkdir()
        assert cli.main(["--raw-dir", str(empty_dir), "--db", str(tmp_path / "a.duckdb")]) == 1
