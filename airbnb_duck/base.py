"""Base model classes.

A model is a named transformation step: it declares its upstream references
as data and provides a function from upstream frames to one output frame.

    @model(layer=Layer.DIMENSIONAL, upstream=["stg_listings"])
    def dim_listings(context: ModelContext, stg_listings: pl.DataFrame) -> pl.DataFrame:
        ...

Upstream frames are passed as keyword arguments named after the reference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

import dagster as dg

if TYPE_CHECKING:
    import pandera.polars as pa
    import polars as pl


class Layer(str, Enum):
    """Conformance stage a model belongs to."""

    STAGING = "staging"
    DIMENSIONAL = "dimensional"
    AGGREGATION = "aggregation"


class CastPolicy(str, Enum):
    """How staging models treat values that can't be converted.

    LENIENT nulls the value and keeps the row; STRICT fails the model.
    """

    LENIENT = "lenient"
    STRICT = "strict"


@dataclass(frozen=True)
class Model:
    """A registered transformation step.

    Attributes:
        name: Unique model name, also the materialized table name
        upstream: Ordered upstream references (models or raw tables)
        layer: Conformance stage
        fn: Transform function, called as fn(context, **upstream_frames)
        cast_policy: Per-model override of the pipeline cast policy
        schema: Optional Pandera schema checked before materialization
        description: Human readable summary
        materialization: Always "table" (full replace on every run)
    """

    name: str
    upstream: tuple[str, ...]
    layer: Layer
    fn: Callable[..., "pl.DataFrame"]
    cast_policy: CastPolicy | None = None
    schema: type["pa.DataFrameModel"] | None = None
    description: str = ""
    materialization: str = "table"

    def __call__(self, context: "ModelContext", **inputs: "pl.DataFrame") -> "pl.DataFrame":
        return self.fn(context, **inputs)


def model(
    *,
    layer: Layer,
    upstream: list[str] | tuple[str, ...] = (),
    name: str | None = None,
    cast_policy: CastPolicy | None = None,
    schema: type["pa.DataFrameModel"] | None = None,
) -> Callable[[Callable[..., "pl.DataFrame"]], Model]:
    """Turn a transform function into a Model.

    The model name defaults to the function name and the description to the
    first line of its docstring.
    """

    def decorator(fn: Callable[..., "pl.DataFrame"]) -> Model:
        doc = (fn.__doc__ or "").strip().splitlines()
        return Model(
            name=name or fn.__name__,
            upstream=tuple(upstream),
            layer=layer,
            fn=fn,
            cast_policy=cast_policy,
            schema=schema,
            description=doc[0] if doc else "",
        )

    return decorator


@dataclass
class ModelContext:
    """Per-execution context handed to a model's transform function.

    Collects the data quality counters the pipeline reports back to its caller.
    """

    model_name: str
    cast_policy: CastPolicy = CastPolicy.LENIENT
    rows_dropped: int = 0
    coercion_failures: dict[str, int] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    log: logging.Logger = field(default_factory=lambda: dg.get_dagster_logger("airbnb_duck"))

    def record_dropped(self, count: int) -> None:
        """Count rows removed because a required field was null."""
        self.rows_dropped += count

    def record_coercion_failures(self, column: str, count: int) -> None:
        """Count values nulled under the lenient cast policy."""
        if count:
            self.coercion_failures[column] = self.coercion_failures.get(column, 0) + count

    def add_metadata(self, **metadata: Any) -> None:
        self.metadata.update(metadata)
