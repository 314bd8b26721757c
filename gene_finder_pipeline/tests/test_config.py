#!/usr/bin/env python3

"""
Unit tests for configuration management.

Tests the configuration loading, validation, and environment
variable handling functionality.
"""

import unittest
import tempfile
import os
import json
import sys
from unittest.mock import patch

import yaml

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from gene_finder_pipeline.core.config import PipelineConfig, load_config
from gene_finder_pipeline.core.exceptions import ConfigurationError


class TestPipelineConfig(unittest.TestCase):
    """Test PipelineConfig class."""

    def test_default_config(self):
        """Test default configuration values."""
        config = PipelineConfig()

        self.assertEqual(config.translation_table, 11)
        self.assertEqual(config.min_length, 90)
        self.assertEqual(config.max_overlap, 60)
        self.assertEqual(config.max_connections, 50)
        self.assertEqual(config.gene_batch_size, 128)
        self.assertEqual(config.tis_batch_size, 1024)
        self.assertEqual(config.start_resolution, "combined")
        self.assertEqual(config.on_oracle_error, "abort")
        self.assertEqual(config.temp_dir, "/tmp")
        self.assertFalse(config.enable_homology_filter)
        self.assertFalse(config.clear_cache)
        self.assertEqual(config.parallel_workers, 1)
        self.assertEqual(config.memory_limit_mb, 4096)
        self.assertFalse(config.debug_mode)

    def test_config_validation(self):
        """Test configuration validation."""
        invalid = [
            {'translation_table': 1},
            {'min_length': 3},
            {'max_overlap': -1},
            {'max_connections': 0},
            {'gene_batch_size': 0},
            {'tis_batch_size': 0},
            {'start_resolution': 'greedy'},
            {'on_oracle_error': 'retry'},
            {'convergent_penalty': -0.5},
            {'memory_limit_mb': 50},
            {'parallel_workers': 0},
        ]
        for kwargs in invalid:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ConfigurationError):
                    PipelineConfig(**kwargs)

    def test_table_4_accepted(self):
        config = PipelineConfig(translation_table=4)
        self.assertEqual(config.translation_table, 4)

    def test_start_codon_weights(self):
        config = PipelineConfig(weight_atg=1.0, weight_gtg=0.5, weight_ttg=0.25)
        self.assertEqual(config.start_codon_weights, {"ATG": 1.0, "GTG": 0.5, "TTG": 0.25})

    def test_from_dict(self):
        """Test creating configuration from dictionary."""
        config_dict = {
            'min_length': 120,
            'max_overlap': 30,
            'unknown_key': 'ignored'
        }

        config = PipelineConfig.from_dict(config_dict)
        self.assertEqual(config.min_length, 120)
        self.assertEqual(config.max_overlap, 30)
        self.assertFalse(hasattr(config, 'unknown_key'))

    def test_from_dict_invalid_value(self):
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_dict({'translation_table': 2})

    def test_to_dict(self):
        config = PipelineConfig(min_length=150)
        config_dict = config.to_dict()

        self.assertEqual(config_dict['min_length'], 150)
        self.assertIn('max_connections', config_dict)

    def test_json_file_roundtrip(self):
        """Test saving and loading JSON configuration."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'config.json')
            PipelineConfig(max_connections=20, start_resolution='tis').save_to_file(path)

            with open(path) as f:
                self.assertEqual(json.load(f)['max_connections'], 20)

            loaded = PipelineConfig.from_file(path)
            self.assertEqual(loaded.max_connections, 20)
            self.assertEqual(loaded.start_resolution, 'tis')

    def test_yaml_file(self):
        """Test loading YAML configuration."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'config.yaml')
            with open(path, 'w') as f:
                yaml.safe_dump({'translation_table': 4, 'min_length': 99}, f)

            config = PipelineConfig.from_file(path)
            self.assertEqual(config.translation_table, 4)
            self.assertEqual(config.min_length, 99)

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_file('/nonexistent/config.json')

    def test_invalid_json(self):
        with tempfile.NamedTemporaryFile('w', suffix='.json', delete=False) as f:
            f.write('{"min_length": ')
            path = f.name
        try:
            with self.assertRaises(ConfigurationError):
                PipelineConfig.from_file(path)
        finally:
            os.unlink(path)

    @patch.dict(os.environ, {
        'GENEFINDER_MIN_LENGTH': '120',
        'GENEFINDER_TRANSLATION_TABLE': '4',
        'GENEFINDER_HOMOLOGY_FILTER': 'true',
        'GENEFINDER_DEBUG_MODE': 'yes',
    })
    def test_from_env(self):
        """Test loading configuration from environment variables."""
        config = PipelineConfig.from_env()

        self.assertEqual(config.min_length, 120)
        self.assertEqual(config.translation_table, 4)
        self.assertTrue(config.enable_homology_filter)
        self.assertTrue(config.debug_mode)

    @patch.dict(os.environ, {'GENEFINDER_MAX_OVERLAP': 'sixty'})
    def test_invalid_env_value(self):
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_env()

    @patch.dict(os.environ, {'GENEFINDER_TRANSLATION_TABLE': '5'})
    def test_unsupported_env_table(self):
        with self.assertRaises(ConfigurationError):
            PipelineConfig.from_env()


class TestLoadConfig(unittest.TestCase):
    """Test load_config priority handling."""

    def test_defaults(self):
        config = load_config(use_env=False)
        self.assertEqual(config.max_overlap, 60)

    @patch.dict(os.environ, {'GENEFINDER_MAX_OVERLAP': '30', 'GENEFINDER_MIN_LENGTH': '120'})
    def test_file_overrides_env(self):
        """File values win over environment values; other env values survive."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'config.json')
            with open(path, 'w') as f:
                json.dump({'min_length': 150}, f)

            config = load_config(config_path=path, use_env=True)

        self.assertEqual(config.min_length, 150)
        self.assertEqual(config.max_overlap, 30)

    @patch.dict(os.environ, {'GENEFINDER_MAX_OVERLAP': '30'})
    def test_env_ignored(self):
        config = load_config(use_env=False)
        self.assertEqual(config.max_overlap, 60)


class TestCheckPaths(unittest.TestCase):
    """Test pre-flight path checks."""

    def test_defaults_pass(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            PipelineConfig(temp_dir=tmpdir).check_paths()

    def test_missing_model(self):
        config = PipelineConfig(gene_model_path='/nonexistent/gene.pt')
        with self.assertRaises(ConfigurationError):
            config.check_paths()

    def test_missing_temp_dir(self):
        config = PipelineConfig(temp_dir='/nonexistent/tmp')
        with self.assertRaises(ConfigurationError):
            config.check_paths()

    def test_homology_without_reference(self):
        config = PipelineConfig(enable_homology_filter=True)
        with self.assertRaises(ConfigurationError):
            config.check_paths()

    def test_homology_missing_binary(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            reference = os.path.join(tmpdir, 'reference.faa')
            with open(reference, 'w') as f:
                f.write(">p1\nMAAA\n")
            config = PipelineConfig(
                enable_homology_filter=True,
                reference_fasta_path=reference,
                mmseqs_binary='definitely-not-an-mmseqs-binary',
                temp_dir=tmpdir,
            )
            with self.assertRaises(ConfigurationError):
                config.check_paths()


if __name__ == '__main__':
    unittest.main()
