#!/usr/bin/env python3

"""
Performance monitoring for the gene finding pipeline.

Two levels are tracked. Pipeline phases (preparation, input parsing, gene
prediction, output) get wall time, peak resident memory and an operation
count. Every contig that goes through gene prediction also reports its
stage counters: candidates enumerated, graph nodes and edges, oracle calls
and genes selected. The memory limit is checked after each contig.
"""

import time
import logging
import threading
import psutil
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from contextlib import contextmanager

from ..core.exceptions import MemoryError as PipelineMemoryError

# ContigMetrics fields summed into the run totals
CONTIG_COUNTERS = ('sequence_length', 'candidates', 'nodes', 'edges', 'oracle_calls', 'genes')


@dataclass
class PhaseMetrics:
    """Wall time and memory of one pipeline phase."""
    phase_name: str
    start_time: float
    end_time: Optional[float] = None
    peak_memory_mb: float = 0.0
    current_memory_mb: float = 0.0
    operations_count: int = 0

    @property
    def elapsed_time(self) -> float:
        if self.end_time is None:
            return time.time() - self.start_time
        return self.end_time - self.start_time

    @property
    def operations_per_second(self) -> float:
        elapsed = self.elapsed_time
        if elapsed > 0 and self.operations_count > 0:
            return self.operations_count / elapsed
        return 0.0


@dataclass
class ContigMetrics:
    """Stage counters of one contig run, filled in as the stages complete."""
    contig_name: str
    sequence_length: int = 0
    candidates: int = 0
    nodes: int = 0
    edges: int = 0
    oracle_calls: int = 0
    genes: int = 0
    status: str = 'ok'
    start_time: float = field(default_factory=time.time)
    elapsed_time: float = 0.0

    def finish(self) -> 'ContigMetrics':
        self.elapsed_time = time.time() - self.start_time
        return self


class PerformanceMonitor:
    """Phase timing, per-contig counters and memory limit enforcement.

    Phases are opened from the coordinating thread; contig workers call
    ``record_contig`` and ``check_memory_limit`` concurrently.
    """

    def __init__(self, memory_limit_mb: int = 4096, enabled: bool = True):
        self.memory_limit_mb = memory_limit_mb
        self.enabled = enabled
        self.start_time = time.time()
        self.phase_metrics: Dict[str, PhaseMetrics] = {}
        self.contig_metrics: List[ContigMetrics] = []
        self.current_phase: Optional[str] = None
        self._lock = threading.Lock()

        try:
            self.process = psutil.Process()
        except psutil.Error as e:
            self.process = None
            logging.warning(f"psutil process handle unavailable, memory monitoring disabled: {e}")

    def get_memory_usage(self) -> float:
        """Resident memory of this process in MB; also updates the open phase."""
        if not self.process:
            return 0.0

        try:
            memory_mb = self.process.memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            logging.warning(f"Error getting memory usage: {e}")
            return 0.0

        with self._lock:
            metrics = self.phase_metrics.get(self.current_phase) if self.current_phase else None
            if metrics is not None:
                metrics.current_memory_mb = memory_mb
                metrics.peak_memory_mb = max(metrics.peak_memory_mb, memory_mb)

        return memory_mb

    def check_memory_limit(self) -> bool:
        """
        Raise when resident memory is above the limit.

        Raises:
            MemoryError: monitoring is enabled and the limit is exceeded.
        """
        if not self.enabled:
            return True

        current_memory = self.get_memory_usage()
        if current_memory > self.memory_limit_mb:
            error_msg = "Memory usage exceeded limit"
            logging.warning(f"{error_msg}: {current_memory:.1f}MB > {self.memory_limit_mb}MB")
            raise PipelineMemoryError(error_msg, current_memory, self.memory_limit_mb)

        return True

    def start_phase(self, phase_name: str) -> None:
        if self.current_phase:
            self.end_phase()

        memory_mb = self.get_memory_usage()
        with self._lock:
            self.current_phase = phase_name
            self.phase_metrics[phase_name] = PhaseMetrics(
                phase_name=phase_name,
                start_time=time.time(),
                current_memory_mb=memory_mb,
                peak_memory_mb=memory_mb,
            )

        logging.info(f"Started phase: {phase_name}")

    def end_phase(self) -> Optional[PhaseMetrics]:
        if not self.current_phase:
            return None

        self.get_memory_usage()
        with self._lock:
            metrics = self.phase_metrics[self.current_phase]
            metrics.end_time = time.time()
            self.current_phase = None

        logging.info(f"Completed phase {metrics.phase_name} in {metrics.elapsed_time:.2f}s "
                     f"(peak memory: {metrics.peak_memory_mb:.1f}MB)")
        return metrics

    @contextmanager
    def phase_context(self, phase_name: str):
        """Open a phase for the duration of the block; it is closed on error too."""
        self.start_phase(phase_name)
        try:
            yield self.phase_metrics[phase_name]
        finally:
            self.end_phase()

    def record_operations(self, count: int) -> None:
        """Add to the operation count of the open phase, if any."""
        with self._lock:
            self._add_operations(count)

    def record_contig(self, metrics: ContigMetrics) -> None:
        """Store the counters of a finished contig; its candidates count as phase operations."""
        with self._lock:
            self.contig_metrics.append(metrics)
            self._add_operations(metrics.candidates)

        logging.debug(f"{metrics.contig_name}: {metrics.candidates} candidates, "
                      f"{metrics.nodes} nodes, {metrics.edges} edges, "
                      f"{metrics.oracle_calls} oracle calls, {metrics.genes} genes "
                      f"in {metrics.elapsed_time:.2f}s [{metrics.status}]")

    def _add_operations(self, count: int) -> None:
        if self.current_phase and self.current_phase in self.phase_metrics:
            self.phase_metrics[self.current_phase].operations_count += count

    def get_contig_totals(self) -> Dict[str, Any]:
        """Sum of the stage counters over all recorded contigs."""
        with self._lock:
            contigs = list(self.contig_metrics)

        totals: Dict[str, Any] = {name: sum(getattr(m, name) for m in contigs)
                                  for name in CONTIG_COUNTERS}
        totals['contigs'] = len(contigs)
        totals['failed'] = sum(1 for m in contigs if m.status != 'ok')

        slowest = max(contigs, key=lambda m: m.elapsed_time, default=None)
        totals['slowest_contig'] = slowest.contig_name if slowest else None
        totals['slowest_time'] = slowest.elapsed_time if slowest else 0.0
        return totals

    def get_total_elapsed_time(self) -> float:
        return time.time() - self.start_time

    def get_peak_memory(self) -> float:
        if not self.phase_metrics:
            return self.get_memory_usage()
        return max(metrics.peak_memory_mb for metrics in self.phase_metrics.values())

    def get_performance_summary(self) -> Dict[str, Any]:
        summary = {
            "total_elapsed_time": self.get_total_elapsed_time(),
            "peak_memory_mb": self.get_peak_memory(),
            "memory_limit_mb": self.memory_limit_mb,
            "contigs": self.get_contig_totals(),
            "phases": {},
        }

        for phase_name, metrics in self.phase_metrics.items():
            summary["phases"][phase_name] = {
                "elapsed_time": metrics.elapsed_time,
                "operations_count": metrics.operations_count,
                "operations_per_second": metrics.operations_per_second,
                "peak_memory_mb": metrics.peak_memory_mb,
            }

        return summary

    def log_performance_report(self) -> None:
        summary = self.get_performance_summary()
        totals = summary['contigs']

        logging.info("=" * 50)
        logging.info("PERFORMANCE REPORT")
        logging.info("=" * 50)
        logging.info(f"Total time: {summary['total_elapsed_time']:.2f} seconds")
        logging.info(f"Peak memory: {summary['peak_memory_mb']:.1f} MB "
                     f"(limit {summary['memory_limit_mb']} MB)")

        if totals['contigs']:
            logging.info(f"Contigs: {totals['contigs']} ({totals['failed']} not scored), "
                         f"{totals['sequence_length']:,} nt")
            logging.info(f"Candidates: {totals['candidates']:,}, graph nodes: {totals['nodes']:,}, "
                         f"edges: {totals['edges']:,}")
            logging.info(f"Oracle calls: {totals['oracle_calls']:,}, genes selected: {totals['genes']:,}")
            logging.info(f"Slowest contig: {totals['slowest_contig']} "
                         f"({totals['slowest_time']:.2f}s)")

        if summary['phases']:
            logging.info("Phase breakdown:")
            for phase_name, phase_data in summary['phases'].items():
                logging.info(f"  {phase_name}: {phase_data['elapsed_time']:.2f}s "
                             f"({phase_data['operations_count']} ops, "
                             f"{phase_data['operations_per_second']:.1f} ops/s, "
                             f"{phase_data['peak_memory_mb']:.1f}MB)")
