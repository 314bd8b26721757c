#!/usr/bin/env python3

"""
Command-line interface for the gene finding pipeline.

Reads a nucleotide FASTA, predicts genes on every contig and writes a GFF3
annotation.
"""

import argparse
import sys
import os
import logging
from typing import List, Optional

from gene_finder_pipeline.core.config import load_config
from gene_finder_pipeline.core.exceptions import PipelineError


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Prokaryotic gene finder: six-frame ORFs scored by neural models, "
                    "best compatible gene set chosen by dynamic programming",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic usage
  python pipeline_cli.py -i genome.fna -o genes.gff --gene-model gene.pt --tis-model tis.pt

  # Mycoplasma genome with homology filtering
  python pipeline_cli.py -i genome.fna.gz -o genes.gff --table 4 --gene-model gene.pt --tis-model tis.pt --mmseqs --reference reference_genes.faa
        """
    )

    # Required arguments
    parser.add_argument(
        '-i', '--in',
        dest='input',
        required=True,
        help='Path to input FASTA, optionally gzip compressed'
    )
    parser.add_argument(
        '-o', '--out',
        dest='output',
        required=True,
        help='Path to output GFF3 annotation'
    )

    # Gene calling parameters (defaults come from the configuration)
    parser.add_argument(
        '--temp',
        help='Directory for the MMseqs2 index cache and search scratch files (default: /tmp)'
    )
    parser.add_argument(
        '--max-overlap',
        type=int,
        help='Maximum allowable overlap between genes in nucleotides (default: 60)'
    )
    parser.add_argument(
        '--min-length',
        type=int,
        help='Minimum allowable gene length in nucleotides (default: 90)'
    )
    parser.add_argument(
        '--table',
        type=int,
        choices=[11, 4],
        help='NCBI translation table, 11 or 4 (default: 11)'
    )
    parser.add_argument(
        '--max-connections',
        type=int,
        help='Maximum number of forward connections in the gene graph (default: 50)'
    )
    parser.add_argument(
        '--gene-batch-size',
        type=int,
        help='Batch size for the gene model (default: 128)'
    )
    parser.add_argument(
        '--TIS-batch-size',
        dest='tis_batch_size',
        type=int,
        help='Batch size for the TIS model (default: 1024)'
    )

    # Models and reference
    parser.add_argument(
        '--gene-model',
        help='TorchScript gene model'
    )
    parser.add_argument(
        '--tis-model',
        help='TorchScript translation initiation site model'
    )
    parser.add_argument(
        '--device',
        help='Torch device for scoring, e.g. cpu or cuda (default: auto)'
    )
    parser.add_argument(
        '--reference',
        help='Reference protein FASTA for the MMseqs2 homology filter'
    )
    parser.add_argument(
        '--protein-out',
        help='Optional protein FASTA of the predicted genes'
    )

    # Switches
    parser.add_argument(
        '--mmseqs',
        dest='mmseqs',
        action='store_true',
        default=None,
        help='Filter predicted genes with an MMseqs2 search against --reference'
    )
    parser.add_argument(
        '--no-mmseqs',
        dest='mmseqs',
        action='store_false',
        default=None,
        help='Do not use MMseqs2 (default)'
    )
    parser.add_argument(
        '--clear-cache',
        action='store_true',
        default=None,
        help='Rebuild the cached MMseqs2 index'
    )
    parser.add_argument(
        '--verbose',
        dest='verbose',
        action='store_true',
        default=None,
        help='Log progress messages (default)'
    )
    parser.add_argument(
        '--quiet',
        dest='verbose',
        action='store_false',
        default=None,
        help='Only log warnings and errors'
    )

    # Runtime options
    parser.add_argument(
        '--threads',
        type=int,
        help='Number of contigs processed in parallel (default: 1)'
    )
    parser.add_argument(
        '--config',
        help='Configuration file (JSON or YAML)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--memory-limit',
        type=int,
        help='Memory limit in MB (default: 4096)'
    )

    return parser


# argparse destination -> configuration field
CLI_OVERRIDES = {
    'temp': 'temp_dir',
    'max_overlap': 'max_overlap',
    'min_length': 'min_length',
    'table': 'translation_table',
    'max_connections': 'max_connections',
    'gene_batch_size': 'gene_batch_size',
    'tis_batch_size': 'tis_batch_size',
    'gene_model': 'gene_model_path',
    'tis_model': 'tis_model_path',
    'device': 'device',
    'reference': 'reference_fasta_path',
    'mmseqs': 'enable_homology_filter',
    'clear_cache': 'clear_cache',
    'verbose': 'verbose',
    'threads': 'parallel_workers',
    'memory_limit': 'memory_limit_mb',
}


def apply_overrides(config, args) -> None:
    """Copy every command line value that was given onto the configuration."""
    for arg_name, field_name in CLI_OVERRIDES.items():
        value = getattr(args, arg_name)
        if value is not None:
            setattr(config, field_name, value)

    if args.log_level == 'DEBUG':
        config.debug_mode = True

    # Re-validate after CLI overrides.
    config.validate()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = args.log_level
    if args.verbose is False and log_level in ('DEBUG', 'INFO'):
        log_level = 'WARNING'
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    try:
        if not os.path.exists(args.input):
            raise FileNotFoundError(f"Input FASTA not found: {args.input}")

        # Load configuration
        config = load_config(config_path=args.config, use_env=True)
        apply_overrides(config, args)

        logger.info("Starting gene finding pipeline...")
        logger.info(f"Input: {args.input}")
        logger.info(f"Output: {args.output}")
        logger.info(f"Translation table: {config.translation_table}")
        logger.info(f"Min length: {config.min_length}, max overlap: {config.max_overlap}")

        # Initialize and run the pipeline
        from gene_finder_pipeline import GeneFindingPipeline

        pipeline = GeneFindingPipeline(config)
        success = pipeline.run(
            input_path=args.input,
            output_path=args.output,
            protein_output_path=args.protein_out
        )

        if success:
            logger.info("Pipeline completed successfully!")
            return 0
        else:
            logger.error("Pipeline failed!")
            return 1

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1
    except PipelineError as e:
        logger.error(f"Pipeline error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        logger.debug("Full traceback:", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
