"""Batch jobs: import, cleanup and diagnostics."""

from student_home.pipeline.cleanup import CleanupReport, CleanupService
from student_home.pipeline.diagnostics import DiagnosticReport, run_diagnostics
from student_home.pipeline.discovery import (
    DEFAULT_SEED,
    SeedFile,
    discover_worklist,
    load_seed,
)
from student_home.pipeline.importer import ImportPipeline, ImportStats

__all__ = [
    "DEFAULT_SEED",
    "CleanupReport",
    "CleanupService",
    "DiagnosticReport",
    "ImportPipeline",
    "ImportStats",
    "SeedFile",
    "discover_worklist",
    "load_seed",
    "run_diagnostics",
]
