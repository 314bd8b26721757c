#!/usr/bin/env python3

"""
Prokaryotic Gene Finding Pipeline

Predicts protein-coding genes on assembled contigs: every open reading frame
is scored by a gene model and a translation initiation site model, and the
highest-scoring set of compatible genes is chosen by dynamic programming over
a directed acyclic graph of candidates.

Modules:
- core: Data structures, exceptions, configuration and processing stages
- utils: Performance monitoring
- tests: Unit test suite
"""

__version__ = "1.0.0"
__author__ = "Gene Finding Pipeline Team"

# Import main components for easy access
from .core.data_structures import Contig, Candidate, GraphNode, GeneSet, ContigResult
from .core.exceptions import (
    PipelineError, ConfigurationError, ParseError, InputError, OracleError,
    ExternalToolError, ValidationError, MemoryError
)
from .core.config import PipelineConfig, load_config
from .core.scoring import ScoreOracle
from .core.pipeline import GeneFindingPipeline

__all__ = [
    # Main pipeline
    'GeneFindingPipeline', 'ScoreOracle',
    # Data structures
    'Contig', 'Candidate', 'GraphNode', 'GeneSet', 'ContigResult',
    # Exceptions
    'PipelineError', 'ConfigurationError', 'ParseError', 'InputError', 'OracleError',
    'ExternalToolError', 'ValidationError', 'MemoryError',
    # Configuration
    'PipelineConfig', 'load_config'
]
