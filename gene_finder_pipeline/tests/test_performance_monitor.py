#!/usr/bin/env python3

"""
Unit tests for performance monitoring.
"""

import os
import sys
import time
import unittest
from unittest.mock import patch

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from gene_finder_pipeline.core.exceptions import MemoryError as PipelineMemoryError
from gene_finder_pipeline.utils.performance_monitor import ContigMetrics, PerformanceMonitor


class TestPerformanceMonitor(unittest.TestCase):
    """Test PerformanceMonitor."""

    def test_phase_context(self):
        monitor = PerformanceMonitor()
        with monitor.phase_context("scoring") as metrics:
            monitor.record_operations(5)
            monitor.record_operations(7)

        self.assertEqual(metrics.operations_count, 12)
        self.assertIsNotNone(metrics.end_time)
        self.assertIsNone(monitor.current_phase)
        self.assertGreaterEqual(metrics.elapsed_time, 0.0)

    def test_phase_closed_on_error(self):
        monitor = PerformanceMonitor()
        with self.assertRaises(RuntimeError):
            with monitor.phase_context("graph_building"):
                raise RuntimeError("boom")
        self.assertIsNone(monitor.current_phase)
        self.assertIsNotNone(monitor.phase_metrics["graph_building"].end_time)

    def test_operations_outside_phase_ignored(self):
        monitor = PerformanceMonitor()
        monitor.record_operations(3)
        self.assertEqual(monitor.phase_metrics, {})

    def test_memory_limit_exceeded(self):
        monitor = PerformanceMonitor(memory_limit_mb=4096)
        with patch.object(monitor, 'get_memory_usage', return_value=5000.0):
            with self.assertRaises(PipelineMemoryError) as ctx:
                monitor.check_memory_limit()
        self.assertEqual(ctx.exception.limit, 4096)
        self.assertEqual(ctx.exception.current_usage, 5000.0)

    def test_memory_limit_ok(self):
        monitor = PerformanceMonitor(memory_limit_mb=4096)
        with patch.object(monitor, 'get_memory_usage', return_value=100.0):
            self.assertTrue(monitor.check_memory_limit())

    def test_monitoring_disabled(self):
        monitor = PerformanceMonitor(memory_limit_mb=100, enabled=False)
        with patch.object(monitor, 'get_memory_usage', return_value=5000.0):
            self.assertTrue(monitor.check_memory_limit())

    def test_summary(self):
        monitor = PerformanceMonitor()
        with monitor.phase_context("input_parsing"):
            monitor.record_operations(2)

        summary = monitor.get_performance_summary()
        self.assertIn("input_parsing", summary["phases"])
        self.assertEqual(summary["phases"]["input_parsing"]["operations_count"], 2)
        self.assertEqual(summary["memory_limit_mb"], 4096)
        self.assertGreaterEqual(summary["peak_memory_mb"], 0.0)

        with self.assertLogs(level='INFO') as logs:
            monitor.log_performance_report()
        self.assertTrue(any("PERFORMANCE REPORT" in line for line in logs.output))
        self.assertFalse(any("Candidates:" in line for line in logs.output))


class TestContigMetrics(unittest.TestCase):
    """Test per-contig stage counters."""

    def test_finish_sets_elapsed_time(self):
        metrics = ContigMetrics("c1", sequence_length=300, start_time=time.time() - 2.0)
        self.assertIs(metrics.finish(), metrics)
        self.assertGreaterEqual(metrics.elapsed_time, 2.0)

    def test_record_contig_totals(self):
        monitor = PerformanceMonitor()
        with monitor.phase_context("gene_prediction") as phase:
            monitor.record_contig(ContigMetrics("c1", sequence_length=300, candidates=4, nodes=3,
                                                edges=2, oracle_calls=2, genes=1, elapsed_time=0.5))
            monitor.record_contig(ContigMetrics("c2", sequence_length=100, candidates=6, nodes=5,
                                                edges=7, oracle_calls=3, genes=2, elapsed_time=1.5))
            monitor.record_contig(ContigMetrics("bad", sequence_length=7, status='invalid_input'))

        self.assertEqual(phase.operations_count, 10)
        totals = monitor.get_contig_totals()
        self.assertEqual(totals['contigs'], 3)
        self.assertEqual(totals['failed'], 1)
        self.assertEqual(totals['sequence_length'], 407)
        self.assertEqual((totals['candidates'], totals['nodes'], totals['edges']), (10, 8, 9))
        self.assertEqual((totals['oracle_calls'], totals['genes']), (5, 3))
        self.assertEqual(totals['slowest_contig'], "c2")
        self.assertEqual(monitor.get_performance_summary()["contigs"], totals)

        with self.assertLogs(level='INFO') as logs:
            monitor.log_performance_report()
        self.assertTrue(any("Oracle calls: 5, genes selected: 3" in line for line in logs.output))

    def test_no_contigs(self):
        totals = PerformanceMonitor().get_contig_totals()
        self.assertEqual(totals['contigs'], 0)
        self.assertIsNone(totals['slowest_contig'])


if __name__ == '__main__':
    unittest.main()
