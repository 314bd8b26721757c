#!/usr/bin/env python3

"""
Core module for the gene finding pipeline.

Contains data structures, exception types, configuration management and
the processing stages.
"""

from .data_structures import Contig, Candidate, GraphNode, GeneSet, ContigResult
from .exceptions import (
    PipelineError, ConfigurationError, ParseError, InputError, OracleError,
    ExternalToolError, ValidationError, MemoryError
)
from .config import PipelineConfig, load_config

__all__ = [
    'Contig', 'Candidate', 'GraphNode', 'GeneSet', 'ContigResult',
    'PipelineError', 'ConfigurationError', 'ParseError', 'InputError', 'OracleError',
    'ExternalToolError', 'ValidationError', 'MemoryError',
    'PipelineConfig', 'load_config'
]
