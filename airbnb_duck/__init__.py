"""Layered DuckDB transformation pipeline for Airbnb listings and reviews."""

from airbnb_duck.base import CastPolicy, Layer, Model, ModelContext, model
from airbnb_duck.executor import ModelRun, ModelStatus, TransformationExecutor
from airbnb_duck.materializer import DuckDBMaterializer
from airbnb_duck.pipeline import PipelineResult, run_pipeline
from airbnb_duck.registry import ModelRegistry
from airbnb_duck.resolver import DependencyResolver
from airbnb_duck.sources import CsvRawTableProvider, InMemoryRawTableProvider
from airbnb_duck.validation import ValidationResult, ValidationRule, ValidationRunner

__all__ = [
    # Core
    "Model",
    "ModelContext",
    "model",
    "Layer",
    "CastPolicy",
    "ModelRegistry",
    "DependencyResolver",
    # Execution
    "TransformationExecutor",
    "ModelRun",
    "ModelStatus",
    "run_pipeline",
    "PipelineResult",
    # Storage and sources
    "DuckDBMaterializer",
    "CsvRawTableProvider",
    "InMemoryRawTableProvider",
    # Validation
    "ValidationRule",
    "ValidationRunner",
    "ValidationResult",
]
