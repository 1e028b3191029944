"""
Analyzer registry

Runs independent analyzers concurrently against one market snapshot
and collects their signals for downstream weighted voting.
"""

from .analyzer_registry import AnalyzerDefinition, AnalyzerRegistry, CollectionReport
from .definitions import (
    LevelSignalAnalyzer,
    VolumeProfileSignalAnalyzer,
    build_core_definitions,
    create_default_registry,
)

__all__ = [
    "AnalyzerDefinition",
    "AnalyzerRegistry",
    "CollectionReport",
    "LevelSignalAnalyzer",
    "VolumeProfileSignalAnalyzer",
    "build_core_definitions",
    "create_default_registry",
]
