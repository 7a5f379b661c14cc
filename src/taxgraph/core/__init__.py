# src/taxgraph/core/__init__.py
"""Core infrastructure: Canonical hashing, Configuration, DAG, Logging."""

from taxgraph.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    stable_hash,
    state_hash,
)
from taxgraph.core.config import EngineSettings, LoggingSettings, load_settings
from taxgraph.core.dag import (
    CycleError,
    DependencyGraph,
    DuplicateNodeError,
    GraphValidationError,
    NodeCatalog,
    UnknownDependencyError,
)
from taxgraph.core.logging import configure_logging, get_logger

__all__ = [
    "CANONICAL_VERSION",
    "CycleError",
    "DependencyGraph",
    "DuplicateNodeError",
    "EngineSettings",
    "GraphValidationError",
    "LoggingSettings",
    "NodeCatalog",
    "UnknownDependencyError",
    "canonical_json",
    "configure_logging",
    "get_logger",
    "load_settings",
    "stable_hash",
    "state_hash",
]
