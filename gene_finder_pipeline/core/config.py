#!/usr/bin/env python3

"""
Configuration management for the gene finding pipeline.

Centralized configuration with support for file-based configuration
and environment variable overrides.
"""

import os
import json
import shutil
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

import yaml

from .exceptions import ConfigurationError

SUPPORTED_TRANSLATION_TABLES = (11, 4)
START_RESOLUTION_MODES = ("combined", "tis")
ORACLE_ERROR_POLICIES = ("abort", "skip")


def _parse_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 'yes')


@dataclass
class PipelineConfig:
    """Centralized configuration for the gene finding pipeline."""

    # Biological parameters
    translation_table: int = 11
    min_length: int = 90  # nt, including the stop codon
    max_overlap: int = 60  # nt

    # Graph search
    max_connections: int = 50
    min_node_score: float = 0.0
    start_resolution: str = "combined"

    # Scoring oracle
    gene_batch_size: int = 128
    tis_batch_size: int = 1024
    gene_model_path: Optional[str] = None
    tis_model_path: Optional[str] = None
    device: Optional[str] = None
    on_oracle_error: str = "abort"
    tis_upstream: int = 16
    tis_downstream: int = 16

    # Score combination
    weight_gene_prob: float = 0.9746869839852076
    weight_tis_prob: float = 0.25380288790532707
    weight_atg: float = 0.84249804151264
    weight_gtg: float = 0.7083689705744909
    weight_ttg: float = 0.7512400826652517
    score_threshold: float = 0.47256101519707244

    # Overlap penalties per overlapping nucleotide
    unidirectional_penalty: float = 3.895921717182765
    convergent_penalty: float = 4.603432608883688
    divergent_penalty: float = 3.3830814940689975

    # Homology filter
    enable_homology_filter: bool = False
    reference_fasta_path: Optional[str] = None
    mmseqs_binary: str = "mmseqs"
    homology_min_bitscore: float = 20.0
    homology_min_unsupported_coding: float = 0.5
    homology_sensitivity: float = 5.7

    # Runtime settings
    temp_dir: str = "/tmp"
    clear_cache: bool = False
    parallel_workers: int = 1
    memory_limit_mb: int = 4096
    enable_memory_monitoring: bool = True
    verbose: bool = True
    debug_mode: bool = False

    @classmethod
    def from_file(cls, config_path: str) -> 'PipelineConfig':
        """Load configuration from file (JSON or YAML)."""
        return cls.from_dict(_read_config_file(config_path))

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'PipelineConfig':
        """Create configuration from dictionary."""
        # Filter out unknown keys
        known_keys = set(cls.__dataclass_fields__.keys())
        filtered_dict = {k: v for k, v in config_dict.items() if k in known_keys}

        try:
            return cls(**filtered_dict)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration parameters: {e}")

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        """Load configuration from environment variables."""
        config = cls()

        # Map environment variables to config fields
        env_mappings = {
            'GENEFINDER_TRANSLATION_TABLE': ('translation_table', int),
            'GENEFINDER_MIN_LENGTH': ('min_length', int),
            'GENEFINDER_MAX_OVERLAP': ('max_overlap', int),
            'GENEFINDER_MAX_CONNECTIONS': ('max_connections', int),
            'GENEFINDER_GENE_BATCH_SIZE': ('gene_batch_size', int),
            'GENEFINDER_TIS_BATCH_SIZE': ('tis_batch_size', int),
            'GENEFINDER_GENE_MODEL': ('gene_model_path', str),
            'GENEFINDER_TIS_MODEL': ('tis_model_path', str),
            'GENEFINDER_DEVICE': ('device', str),
            'GENEFINDER_REFERENCE_FASTA': ('reference_fasta_path', str),
            'GENEFINDER_MMSEQS': ('mmseqs_binary', str),
            'GENEFINDER_HOMOLOGY_FILTER': ('enable_homology_filter', _parse_bool),
            'GENEFINDER_TEMP_DIR': ('temp_dir', str),
            'GENEFINDER_PARALLEL_WORKERS': ('parallel_workers', int),
            'GENEFINDER_MEMORY_LIMIT_MB': ('memory_limit_mb', int),
            'GENEFINDER_DEBUG_MODE': ('debug_mode', _parse_bool),
        }

        for env_var, (field_name, converter) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value:
                try:
                    setattr(config, field_name, converter(env_value))
                except (ValueError, TypeError) as e:
                    raise ConfigurationError(f"Invalid environment variable {env_var}: {e}")

        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def save_to_file(self, config_path: str) -> None:
        """Save configuration to file."""
        config_dict = self.to_dict()

        try:
            with open(config_path, 'w') as f:
                if config_path.lower().endswith('.yaml') or config_path.lower().endswith('.yml'):
                    yaml.safe_dump(config_dict, f, default_flow_style=False)
                else:
                    json.dump(config_dict, f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Error saving configuration: {e}")

    @property
    def start_codon_weights(self) -> Dict[str, float]:
        return {"ATG": self.weight_atg, "GTG": self.weight_gtg, "TTG": self.weight_ttg}

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.translation_table not in SUPPORTED_TRANSLATION_TABLES:
            raise ConfigurationError(
                f"Only translation tables {', '.join(map(str, SUPPORTED_TRANSLATION_TABLES))} "
                f"are supported, got {self.translation_table}"
            )

        if self.min_length < 6:
            raise ConfigurationError("min_length must be >= 6 (start and stop codon)")

        if self.max_overlap < 0:
            raise ConfigurationError("max_overlap must be >= 0")

        if self.max_connections < 1:
            raise ConfigurationError("max_connections must be >= 1")

        if self.gene_batch_size < 1:
            raise ConfigurationError("gene_batch_size must be >= 1")

        if self.tis_batch_size < 1:
            raise ConfigurationError("tis_batch_size must be >= 1")

        if self.tis_upstream < 0 or self.tis_downstream < 0:
            raise ConfigurationError("TIS window sizes must be >= 0")

        if self.start_resolution not in START_RESOLUTION_MODES:
            raise ConfigurationError(
                f"start_resolution must be one of {START_RESOLUTION_MODES}, got {self.start_resolution!r}"
            )

        if self.on_oracle_error not in ORACLE_ERROR_POLICIES:
            raise ConfigurationError(
                f"on_oracle_error must be one of {ORACLE_ERROR_POLICIES}, got {self.on_oracle_error!r}"
            )

        for name in ('unidirectional_penalty', 'convergent_penalty', 'divergent_penalty'):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")

        if self.memory_limit_mb < 100:
            raise ConfigurationError("memory_limit_mb must be >= 100")

        if self.parallel_workers < 1:
            raise ConfigurationError("parallel_workers must be >= 1")

    def check_paths(self) -> None:
        """Check that every path the enabled stages need is present."""
        for label, path in (('gene model', self.gene_model_path),
                            ('TIS model', self.tis_model_path)):
            if path and not os.path.exists(path):
                raise ConfigurationError(f"{label} not found: {path}")

        if not os.path.isdir(self.temp_dir):
            raise ConfigurationError(f"Temp directory not found: {self.temp_dir}")

        if self.enable_homology_filter:
            if not self.reference_fasta_path:
                raise ConfigurationError("Homology filter enabled but no reference_fasta_path given")
            if not os.path.exists(self.reference_fasta_path):
                raise ConfigurationError(f"Reference FASTA not found: {self.reference_fasta_path}")
            if shutil.which(self.mmseqs_binary) is None:
                raise ConfigurationError(f"MMseqs2 executable not found: {self.mmseqs_binary}")

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()


def _read_config_file(config_path: str) -> Dict[str, Any]:
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            if config_path.lower().endswith('.yaml') or config_path.lower().endswith('.yml'):
                config_data = yaml.safe_load(f)
            else:
                config_data = json.load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML configuration file format: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid configuration file format: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration: {e}")

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")
    return config_data


def load_config(config_path: Optional[str] = None,
                use_env: bool = True) -> PipelineConfig:
    """
    Load configuration with priority: file > environment > defaults.

    Args:
        config_path: Path to configuration file (optional)
        use_env: Whether to load environment variables

    Returns:
        PipelineConfig: Loaded configuration
    """
    # Start with defaults
    config = PipelineConfig()

    # Override with environment variables if requested
    if use_env:
        env_config = PipelineConfig.from_env()
        for field_name in PipelineConfig.__dataclass_fields__.keys():
            env_value = getattr(env_config, field_name)
            if env_value != getattr(config, field_name):
                setattr(config, field_name, env_value)

    # Override with values the file actually sets
    if config_path:
        file_data = _read_config_file(config_path)
        for field_name in PipelineConfig.__dataclass_fields__.keys():
            if field_name in file_data:
                setattr(config, field_name, file_data[field_name])

    config.validate()
    return config
