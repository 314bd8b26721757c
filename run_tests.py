#!/usr/bin/env python3

"""
Test runner for the gene finding pipeline.

Runs the unit tests in gene_finder_pipeline/tests, either all of them, the
modules covering one or more pipeline stages, or named test classes.
"""

import unittest
import sys
import os
import argparse
import time
from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence

# Add current directory to path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

ROOT = os.path.dirname(os.path.abspath(__file__))
TEST_DIR = os.path.join(ROOT, "gene_finder_pipeline", "tests")

# Test modules grouped by the pipeline stage they exercise
STAGES: Dict[str, List[str]] = {
    "input": ["test_parsers", "test_data_structures"],
    "enumeration": ["test_codon_tables", "test_orf_enumerator"],
    "scoring": ["test_scoring", "test_oracles"],
    "selection": ["test_graph", "test_optimizer"],
    "homology": ["test_homology"],
    "output": ["test_generators"],
    "pipeline": ["test_gene_finding_pipeline", "test_config", "test_cli",
                 "test_performance_monitor"],
}


def iter_cases(suite: unittest.TestSuite) -> Iterator[unittest.TestCase]:
    for item in suite:
        if isinstance(item, unittest.TestSuite):
            yield from iter_cases(item)
        else:
            yield item


def build_suite(stages: Optional[Sequence[str]] = None) -> unittest.TestSuite:
    """Load every test module, or only those of the given stages."""
    loader = unittest.TestLoader()
    if not stages:
        return loader.discover(TEST_DIR, pattern="test_*.py", top_level_dir=ROOT)

    suite = unittest.TestSuite()
    for stage in stages:
        for module in STAGES[stage]:
            suite.addTests(loader.loadTestsFromName(f"gene_finder_pipeline.tests.{module}"))
    return suite


def print_inventory(suite: unittest.TestSuite) -> None:
    per_module = Counter(type(case).__module__.rsplit(".", 1)[-1] for case in iter_cases(suite))
    for module, count in sorted(per_module.items()):
        print(f"  {module:<32} {count:>4}")


def run_suite(suite: unittest.TestSuite, verbosity: int = 2, fail_fast: bool = False) -> bool:
    """
    Run a test suite and print a summary.

    Args:
        suite: Tests to run
        verbosity: Test output verbosity (0-2)
        fail_fast: Stop on first failure

    Returns:
        True if all tests passed, False otherwise
    """
    print("=" * 70)
    print("Gene Finding Pipeline - Test Suite")
    print("=" * 70)

    test_count = suite.countTestCases()
    print(f"Discovered {test_count} tests")
    if test_count == 0:
        print("No tests found!")
        return False
    print_inventory(suite)
    print("-" * 70)

    runner = unittest.TextTestRunner(verbosity=verbosity, failfast=fail_fast, buffer=True)

    start_time = time.time()
    result = runner.run(suite)
    elapsed = time.time() - start_time

    print("-" * 70)
    print(f"Tests completed in {elapsed:.2f} seconds")
    print(f"Tests run: {result.testsRun}, failures: {len(result.failures)}, "
          f"errors: {len(result.errors)}, skipped: {len(result.skipped)}")

    if result.wasSuccessful():
        print("\nAll tests passed!")
        return True

    print(f"\n{len(result.failures) + len(result.errors)} test(s) failed")
    return False


def load_named(test_names: List[str]) -> Optional[unittest.TestSuite]:
    """Load test modules or classes, e.g. test_graph.TestCandidateGraphBuilder."""
    suite = unittest.TestSuite()
    loader = unittest.TestLoader()

    for test_name in test_names:
        if not test_name.startswith("gene_finder_pipeline."):
            test_name = f"gene_finder_pipeline.tests.{test_name}"
        try:
            suite.addTests(loader.loadTestsFromName(test_name))
        except (ImportError, AttributeError) as e:
            print(f"Could not load test {test_name}: {e}")
            return None
    return suite


def main():
    """Main test runner entry point."""
    parser = argparse.ArgumentParser(description="Run gene finding pipeline tests")
    parser.add_argument("-v", "--verbosity", type=int, choices=[0, 1, 2], default=2,
                        help="Test output verbosity")
    parser.add_argument("-f", "--fail-fast", action="store_true",
                        help="Stop on first failure")
    parser.add_argument("-s", "--stage", action="append", choices=sorted(STAGES),
                        help="Only run the tests of this pipeline stage (repeatable)")
    parser.add_argument("-t", "--tests", nargs="+",
                        help="Specific test modules or classes to run")

    args = parser.parse_args()

    suite = load_named(args.tests) if args.tests else build_suite(args.stage)
    success = suite is not None and run_suite(suite, args.verbosity, args.fail_fast)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
