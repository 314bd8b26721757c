#!/usr/bin/env python3

"""
Main pipeline class for prokaryotic gene finding.

Runs every contig through enumeration, batched scoring, graph construction
and path selection, then writes the GFF3 annotation.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence

from .config import PipelineConfig
from .codon_tables import get_codon_table
from .data_structures import Contig, ContigResult, GeneSet
from .exceptions import ConfigurationError, InputError, OracleError, PipelineError, ValidationError
from ..utils.performance_monitor import ContigMetrics, PerformanceMonitor

# Import processing classes
from .parsers import FastaReader
from .orf_enumerator import OrfEnumerator
from .scoring import ScoreOracle, ScoringService
from .graph import CandidateGraphBuilder
from .optimizer import PathOptimizer, audit_overlaps
from .homology import HomologyFilter
from .generators import OutputGenerator


class GeneFindingPipeline:
    """Main pipeline class that coordinates all processing phases.

    Args:
        config: Validated pipeline configuration.
        oracle: Scoring backend. When omitted, a ``TorchScoreOracle`` is
            loaded from ``config.gene_model_path`` and ``config.tis_model_path``.
    """

    def __init__(self, config: PipelineConfig, oracle: Optional[ScoreOracle] = None):
        self.config = config
        self.oracle = oracle
        self.monitor = PerformanceMonitor(
            memory_limit_mb=config.memory_limit_mb,
            enabled=config.enable_memory_monitoring,
        )
        self.results: List[ContigResult] = []

        # Stateless stages shared by all contig workers
        self.codon_table = get_codon_table(config.translation_table)
        self.enumerator = OrfEnumerator(self.codon_table, config.min_length)
        self.graph_builder = CandidateGraphBuilder.from_config(config)
        self.optimizer = PathOptimizer()
        self.generator = OutputGenerator(self.codon_table)

        # Set up by prepare()
        self.scorer: Optional[ScoringService] = None
        self.homology_filter: Optional[HomologyFilter] = None
        self._prepare_lock = threading.Lock()

    def run(self, input_path: str, output_path: str,
            protein_output_path: Optional[str] = None) -> bool:
        """
        Run the complete gene finding pipeline.

        Args:
            input_path: Nucleotide FASTA (plain or gzip)
            output_path: GFF3 file to write
            protein_output_path: Optional FASTA of translated gene calls

        Returns:
            True if pipeline completed successfully
        """
        file_handler = None
        try:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = self._setup_pipeline_logging(output_path)

            logging.info("Starting gene finding pipeline")
            logging.info(f"Configuration: {self.config}")
            logging.info(f"Input: {input_path}")
            logging.info(f"Output: {output_path}")

            # Phase 1: Pre-flight checks and model loading
            with self.monitor.phase_context("preparation"):
                self.prepare()

            # Phase 2: Read contigs
            contigs = self._read_input(input_path)

            # Phase 3: Predict genes; completed contigs are written even if a later one fails
            try:
                self._predict_genes(contigs)
            finally:
                if self.results:
                    self._generate_outputs(output_path, protein_output_path)

            self._log_summary()
            logging.info("Pipeline completed successfully")
            self.monitor.log_performance_report()

            return True

        except Exception as e:
            logging.error(f"Pipeline failed: {e}")
            logging.debug("Full traceback:", exc_info=True)
            return False

        finally:
            if file_handler is not None:
                logging.getLogger().removeHandler(file_handler)
                file_handler.close()

    def _setup_pipeline_logging(self, output_path: str) -> logging.Handler:
        """Set up pipeline-specific logging next to the output file."""
        log_file = Path(output_path).parent / 'gene_finder.log'

        # Add file handler to root logger
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        ))

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)

        if self.config.debug_mode:
            root_logger.setLevel(logging.DEBUG)
        elif not self.config.verbose:
            root_logger.setLevel(logging.WARNING)

        return file_handler

    def prepare(self) -> None:
        """
        Check paths, load the scoring backend and build the homology index.

        Runs once; later calls return immediately. Any failure here happens
        before a single contig is processed.

        Raises:
            ConfigurationError: missing model, reference or executable.
            ExternalToolError: MMseqs2 failed while building the index.
        """
        with self._prepare_lock:
            if self.scorer is not None:
                return

            self.config.check_paths()

            oracle = self.oracle if self.oracle is not None else self._load_oracle()
            scorer = ScoringService.from_config(oracle, self.codon_table, self.config)

            if self.config.enable_homology_filter:
                self.homology_filter = HomologyFilter.from_config(self.config, self.codon_table)
                self.homology_filter.index.ensure()

            self.scorer = scorer

    def _load_oracle(self) -> ScoreOracle:
        if not self.config.gene_model_path or not self.config.tis_model_path:
            raise ConfigurationError(
                "No scoring backend given: set gene_model_path and tis_model_path"
            )
        from .oracles import TorchScoreOracle

        return TorchScoreOracle(
            self.config.gene_model_path,
            self.config.tis_model_path,
            device=self.config.device,
        )

    def _read_input(self, input_path: str) -> List[Contig]:
        with self.monitor.phase_context("input_parsing") as metrics:
            contigs = FastaReader(input_path).read()
            metrics.operations_count = len(contigs)
        return contigs

    def _predict_genes(self, contigs: Sequence[Contig]) -> None:
        with self.monitor.phase_context("gene_prediction"):
            logging.info(f"Predicting genes on {len(contigs)} contigs "
                         f"with {self.config.parallel_workers} worker(s)...")
            self.predict(contigs)

    def predict(self, contigs: Sequence[Contig]) -> List[ContigResult]:
        """
        Predict genes on every contig, in parallel across contigs.

        Results are stored on ``self.results`` in input order as they are
        collected. On a fatal error, contigs that have not started are
        cancelled, running ones are allowed to finish, and the first error
        is re-raised; ``self.results`` then holds the completed contigs.
        """
        self.prepare()
        self.results = []
        first_error: Optional[PipelineError] = None

        with ThreadPoolExecutor(max_workers=self.config.parallel_workers) as executor:
            futures = [executor.submit(self.predict_contig, contig) for contig in contigs]

            for future in futures:
                if future.cancelled():
                    continue
                try:
                    self.results.append(future.result())
                except PipelineError as e:
                    if first_error is None:
                        first_error = e
                        for pending in futures:
                            pending.cancel()

        if first_error is not None:
            raise first_error
        return self.results

    def predict_contig(self, contig: Contig) -> ContigResult:
        """
        Run one contig through the gene finding stages.

        Empty or malformed sequences give an empty gene set. An oracle
        failure is re-raised or reported per ``on_oracle_error``.

        Raises:
            OracleError: scoring failed and ``on_oracle_error`` is ``"abort"``.
            ExternalToolError: the homology search failed.
            ValidationError: the selected genes overlap by more than allowed.
        """
        self.prepare()
        name = contig.name
        metrics = ContigMetrics(name, sequence_length=contig.length)

        try:
            self._check_contig(contig)
        except InputError as e:
            logging.warning(str(e))
            metrics.status = 'empty_input' if contig.length == 0 else 'invalid_input'
            self.monitor.record_contig(metrics.finish())
            return ContigResult(contig, GeneSet(contig_name=name), status=metrics.status,
                                message=str(e))

        candidates = list(self.enumerator.enumerate(contig))
        metrics.candidates = len(candidates)

        try:
            scored = self.scorer.score(contig, candidates, metrics)
        except OracleError as e:
            if self.config.on_oracle_error == 'abort':
                logging.error(f"{name}: {e}")
                raise
            logging.error(f"{name}: {e}; skipping contig")
            metrics.status = 'oracle_failed'
            self.monitor.record_contig(metrics.finish())
            return ContigResult(contig, GeneSet(contig_name=name), len(candidates),
                                status=metrics.status, message=str(e))

        graph = self.graph_builder.build(scored)
        metrics.nodes = len(graph)
        metrics.edges = graph.edge_count

        gene_set = self.optimizer.optimize(graph, name)
        self._check_overlaps(gene_set)

        if self.homology_filter is not None:
            gene_set = self.homology_filter.apply(contig, gene_set)
        metrics.genes = len(gene_set)

        self.monitor.record_contig(metrics.finish())
        self.monitor.check_memory_limit()

        logging.info(f"{name}: {metrics.candidates} candidates, {metrics.nodes} nodes, "
                     f"{metrics.edges} edges, {metrics.genes} genes selected")
        return ContigResult(contig, gene_set, candidate_count=len(candidates))

    @staticmethod
    def _check_contig(contig: Contig) -> None:
        if contig.length == 0:
            raise InputError("empty sequence, no genes predicted", contig.name)
        if not contig.is_valid():
            raise InputError("sequence contains non-nucleotide characters", contig.name)

    def _check_overlaps(self, gene_set: GeneSet) -> None:
        violations = audit_overlaps(gene_set, self.config.max_overlap)
        if not violations:
            return
        for gene, neighbour, overlap in violations:
            logging.error(f"{gene_set.contig_name}: genes {gene.left}-{gene.right} and "
                          f"{neighbour.left}-{neighbour.right} overlap by {overlap} nt")
        raise ValidationError(
            f"{len(violations)} adjacent gene pair(s) overlap by more than "
            f"{self.config.max_overlap} nt",
            gene_set.contig_name,
        )

    def _generate_outputs(self, output_path: str, protein_output_path: Optional[str]) -> None:
        """Generate output files."""
        with self.monitor.phase_context("output_generation") as metrics:
            logging.info("Generating output files...")
            self.generator.write_gff3(self.results, output_path)
            if protein_output_path:
                self.generator.write_proteins(self.results, protein_output_path)
            metrics.operations_count = sum(len(r.gene_set) for r in self.results)

    def _log_summary(self) -> None:
        genes = sum(len(r.gene_set) for r in self.results)
        candidates = sum(r.candidate_count for r in self.results)
        logging.info(f"Predicted {genes} genes from {candidates} candidates "
                     f"on {len(self.results)} contigs")

        for result in self.results:
            if result.status != 'ok':
                logging.warning(f"{result.contig.name}: {result.status} ({result.message})")
