"""Validation rules over materialized tables.

Rules are inverted assertions: each one selects the rows that VIOLATE it, and
a rule fails when it matches at least one row. A failing rule never rolls back
materialization; it is reported as a pipeline-level quality failure.

Usage:
    rule = expression_rule("positive_price", "dim_listings", "price_per_night <= 0")
    result = ValidationRunner(materializer).validate(rule)
    if not result.passed:
        print(result.rows)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

import dagster as dg
import polars as pl

from airbnb_duck.materializer import DuckDBMaterializer
from airbnb_duck.processors import quote

logger = dg.get_dagster_logger(__name__)


@dataclass(frozen=True)
class ValidationRule:
    """A predicate over one materialized table that selects violating rows.

    Attributes:
        name: Unique rule name used in reports
        table: Logical table name
        predicate: SQL boolean expression; "{table}" expands to the qualified table
        description: What a violation means
    """

    name: str
    table: str
    predicate: str
    description: str = ""

    def violations_sql(self, qualified_table: str) -> str:
        predicate = self.predicate.replace("{table}", qualified_table)
        return f"SELECT * FROM {qualified_table} WHERE {predicate}"


class ValidationStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ValidationResult:
    """Outcome of one rule.

    `rows` holds the violating rows for failed rules and is empty otherwise.
    """

    rule_name: str
    table: str
    status: ValidationStatus
    violating_row_count: int = 0
    rows: pl.DataFrame | None = None
    description: str = ""

    @property
    def passed(self) -> bool:
        return self.status == ValidationStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_name": self.rule_name,
            "table": self.table,
            "status": self.status.value,
            "passed": self.passed,
            "violating_row_count": self.violating_row_count,
        }


# -----------------------------------------------------------------------------
# Rule factories
# -----------------------------------------------------------------------------


def expression_rule(name: str, table: str, predicate: str, description: str = "") -> ValidationRule:
    """Rule from a raw SQL predicate that matches violating rows."""
    return ValidationRule(name=name, table=table, predicate=predicate, description=description)


def not_null_rule(table: str, column: str) -> ValidationRule:
    return ValidationRule(
        name=f"{table}_{column}_not_null",
        table=table,
        predicate=f"{quote(column)} IS NULL",
        description=f"{column} must be present in every {table} row",
    )


def unique_rule(table: str, column: str) -> ValidationRule:
    col = quote(column)
    return ValidationRule(
        name=f"{table}_{column}_unique",
        table=table,
        predicate=(
            f"{col} IN (SELECT {col} FROM {{table}} "
            f"GROUP BY {col} HAVING COUNT(*) > 1)"
        ),
        description=f"{column} must not repeat in {table}",
    )


def accepted_values_rule(table: str, column: str, values: Iterable[str]) -> ValidationRule:
    accepted = ", ".join("'" + v.replace("'", "''") + "'" for v in values)
    return ValidationRule(
        name=f"{table}_{column}_accepted_values",
        table=table,
        predicate=f"{quote(column)} IS NULL OR {quote(column)} NOT IN ({accepted})",
        description=f"{column} must be one of: {accepted}",
    )


# -----------------------------------------------------------------------------
# Runner
# -----------------------------------------------------------------------------


class ValidationRunner:
    """Execute validation rules against the materializer's tables."""

    def __init__(self, materializer: DuckDBMaterializer):
        self.materializer = materializer

    def validate(self, rule: ValidationRule) -> ValidationResult:
        """Run one rule. Tables that were never materialized are skipped."""
        if not self.materializer.exists(rule.table):
            logger.warning(f"Skipping rule {rule.name}: table {rule.table} not materialized")
            return ValidationResult(
                rule_name=rule.name,
                table=rule.table,
                status=ValidationStatus.SKIPPED,
                description=rule.description,
            )

        rows = self.materializer.query(
            rule.violations_sql(self.materializer.qualified(rule.table))
        )
        status = ValidationStatus.PASSED if rows.is_empty() else ValidationStatus.FAILED
        if status == ValidationStatus.FAILED:
            logger.warning(f"Rule {rule.name} failed: {len(rows):,} violating rows in {rule.table}")

        return ValidationResult(
            rule_name=rule.name,
            table=rule.table,
            status=status,
            violating_row_count=len(rows),
            rows=rows,
            description=rule.description,
        )

    def run(
        self, rules: Iterable[ValidationRule], skip_tables: Iterable[str] = ()
    ) -> list[ValidationResult]:
        """Run every rule, skipping rules on tables whose model did not succeed this run."""
        skipped = set(skip_tables)
        results = []
        for rule in rules:
            if rule.table in skipped:
                results.append(
                    ValidationResult(
                        rule_name=rule.name,
                        table=rule.table,
                        status=ValidationStatus.SKIPPED,
                        description=rule.description,
                    )
                )
            else:
                results.append(self.validate(rule))
        return results
