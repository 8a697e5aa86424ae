# services/__init__.py
from __future__ import annotations

from .importer import ImportCancelled, ImportOrchestrator, ImportResult
from .placeholders import PlaceholderLedger
from .scheduling import ImportJob, ImportScheduler
from .scrobble import Failed, Matched, NeedsFallback, ScrobbleReconciler
from .stubs import StubCatalog, StubSynthesizer

__all__ = [
    "ImportCancelled",
    "ImportOrchestrator",
    "ImportResult",
    "PlaceholderLedger",
    "ImportJob",
    "ImportScheduler",
    "ScrobbleReconciler",
    "Matched",
    "NeedsFallback",
    "Failed",
    "StubCatalog",
    "StubSynthesizer",
]
