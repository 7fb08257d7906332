"""sensible_mcmc public API."""
from .data import Dataset
from .diagnostics import DiagnosticReport, diagnose
from .errors import (
    ConvergenceWarning,
    InsufficientDataError,
    KeyMismatchError,
    SamplerWarning,
    SamplingError,
    SchemaError,
    SensibleMCMCError,
    ValidationError,
)
from .model import ModelSpec
from .params import DataField
from .run import Chain, RunResult
from .runner import RunConfig, run
from .simulation import coverage_study
from .summary import ComparisonReport, summarize
from . import models

__all__ = [
    "Dataset",
    "DataField",
    "ModelSpec",
    "Chain",
    "RunResult",
    "RunConfig",
    "run",
    "diagnose",
    "DiagnosticReport",
    "summarize",
    "ComparisonReport",
    "coverage_study",
    "models",
    "SensibleMCMCError",
    "SchemaError",
    "ValidationError",
    "SamplingError",
    "InsufficientDataError",
    "KeyMismatchError",
    "ConvergenceWarning",
    "SamplerWarning",
]
