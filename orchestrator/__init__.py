"""
Orchestration package for the Kibela archive import pipeline.

Sequences archive entries through translation, dependency resolution,
materialization and the transaction log, then reports the outcome.
"""

from .migration_orchestrator import MigrationOrchestrator
from .migration_report import MigrationReport

__all__ = [
    'MigrationOrchestrator',
    'MigrationReport'
]
