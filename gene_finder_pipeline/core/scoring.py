"""Batched scoring of candidate ORFs through a ScoreOracle.

The oracle is any backend that turns an ordered batch of inputs into one
score per input, in order. This module owns everything around that call:
building model inputs, packing maximal batches, checking responses and
combining the coding and TIS probabilities into one additive node score.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .codon_tables import CodonTable, reverse_complement
from .data_structures import Candidate, Contig
from .exceptions import OracleError

if TYPE_CHECKING:
    from ..utils.performance_monitor import ContigMetrics


@runtime_checkable
class ScoreOracle(Protocol):
    """Synchronous, order-preserving scoring backend."""

    def score_genes(self, proteins: Sequence[str]) -> Sequence[float]:
        """Coding probability for each translated candidate."""
        ...

    def score_tis(self, windows: Sequence[str]) -> Sequence[float]:
        """Translation-initiation-site probability for each nucleotide window."""
        ...


class ScoringService:
    """Score candidates of one contig with maximal oracle batches.

    Args:
        oracle: Scoring backend.
        codon_table: Translation table used to build protein inputs.
        gene_batch_size: Max proteins per ``score_genes`` call.
        tis_batch_size: Max windows per ``score_tis`` call.
        start_weights: Additive bonus per start codon.
        weight_gene: Weight of the coding probability.
        weight_tis: Weight of the TIS probability.
        score_threshold: Subtracted before scaling by length, so weak
            candidates get a negative score.
        tis_upstream / tis_downstream: Window size around the start codon.
        start_resolution: ``"combined"`` keeps every start for the optimizer,
            ``"tis"`` keeps only the best TIS start per stop codon.
    """

    def __init__(
        self,
        oracle: ScoreOracle,
        codon_table: CodonTable,
        gene_batch_size: int = 128,
        tis_batch_size: int = 1024,
        start_weights: Optional[Dict[str, float]] = None,
        weight_gene: float = 1.0,
        weight_tis: float = 0.0,
        score_threshold: float = 0.5,
        tis_upstream: int = 16,
        tis_downstream: int = 16,
        start_resolution: str = "combined",
    ):
        self.oracle = oracle
        self.codon_table = codon_table
        self.gene_batch_size = gene_batch_size
        self.tis_batch_size = tis_batch_size
        self.start_weights = start_weights or {}
        self.weight_gene = weight_gene
        self.weight_tis = weight_tis
        self.score_threshold = score_threshold
        self.tis_upstream = tis_upstream
        self.tis_downstream = tis_downstream
        self.start_resolution = start_resolution
        self.oracle_calls = 0
        self._calls_lock = threading.Lock()

    @classmethod
    def from_config(cls, oracle: ScoreOracle, codon_table: CodonTable, config) -> 'ScoringService':
        return cls(
            oracle,
            codon_table,
            gene_batch_size=config.gene_batch_size,
            tis_batch_size=config.tis_batch_size,
            start_weights=config.start_codon_weights,
            weight_gene=config.weight_gene_prob,
            weight_tis=config.weight_tis_prob,
            score_threshold=config.score_threshold,
            tis_upstream=config.tis_upstream,
            tis_downstream=config.tis_downstream,
            start_resolution=config.start_resolution,
        )

    def score(self, contig: Contig, candidates: Sequence[Candidate],
              metrics: Optional['ContigMetrics'] = None) -> List[Candidate]:
        """Return scored copies of ``candidates``.

        Oracle calls are added to ``self.oracle_calls`` and, when given, to
        ``metrics.oracle_calls``.

        Raises:
            OracleError: backend failure or malformed response. No score is
                ever substituted for a missing one.
        """
        candidates = list(candidates)
        if not candidates:
            return []

        rc_seq = reverse_complement(contig.sequence)

        windows = [self.tis_window(contig.sequence, rc_seq, c) for c in candidates]
        tis_scores, tis_calls = self._run_batches("TIS", windows, self.tis_batch_size,
                                                  self.oracle.score_tis, sort_by_length=False)

        if self.start_resolution == "tis":
            keep = best_tis_per_stop(candidates, tis_scores)
            candidates = [candidates[i] for i in keep]
            tis_scores = [tis_scores[i] for i in keep]

        proteins = [self.protein(contig, c) for c in candidates]
        gene_scores, gene_calls = self._run_batches("gene", proteins, self.gene_batch_size,
                                                    self.oracle.score_genes, sort_by_length=True)

        calls = tis_calls + gene_calls
        with self._calls_lock:
            self.oracle_calls += calls
        if metrics is not None:
            metrics.oracle_calls += calls

        scored = [
            dataclasses.replace(
                c,
                coding_score=coding,
                tis_score=tis,
                combined_score=self.combine(c, coding, tis),
            )
            for c, coding, tis in zip(candidates, gene_scores, tis_scores)
        ]
        logging.debug(f"{contig.name}: scored {len(scored)} candidates in {calls} oracle calls")
        return scored

    def combine(self, candidate: Candidate, coding: float, tis: float) -> float:
        """Weighted probability sum minus the threshold, scaled by length."""
        start_weight = self.start_weights.get(candidate.start_codon, 0.0)
        per_base = (self.weight_gene * coding + self.weight_tis * tis
                    + start_weight - self.score_threshold)
        return per_base * candidate.length

    def protein(self, contig: Contig, candidate: Candidate) -> str:
        return self.codon_table.translate(contig.coding_sequence(candidate))

    def tis_window(self, seq: str, rc_seq: str, candidate: Candidate) -> str:
        """Nucleotides flanking the start codon on the coding strand, N-padded."""
        if candidate.strand == '+':
            strand_seq, pos = seq, candidate.start
        else:
            strand_seq, pos = rc_seq, len(seq) - candidate.start - 3

        up_from = pos - self.tis_upstream
        upstream = strand_seq[max(0, up_from):pos]
        upstream = "N" * (self.tis_upstream - len(upstream)) + upstream

        downstream = strand_seq[pos + 3:pos + 3 + self.tis_downstream]
        downstream = downstream + "N" * (self.tis_downstream - len(downstream))
        return upstream + downstream

    def _run_batches(self, kind: str, items: List[str], batch_size: int,
                     call: Callable[[List[str]], Sequence[float]],
                     sort_by_length: bool) -> Tuple[List[float], int]:
        """Call the oracle on full batches (only the last may be short).

        Returns the scores and the number of calls made.

        Items may be reordered by length inside the schedule; results are
        scattered back so output order always matches input order.
        """
        n = len(items)
        if sort_by_length:
            order = sorted(range(n), key=lambda i: len(items[i]))
        else:
            order = list(range(n))

        results: List[float] = [0.0] * n
        calls = 0
        for offset in range(0, n, batch_size):
            batch_idx = order[offset:offset + batch_size]
            batch = [items[i] for i in batch_idx]
            calls += 1
            try:
                response = call(batch)
            except OracleError:
                raise
            except Exception as e:
                raise OracleError(f"backend raised {type(e).__name__}: {e}", kind, len(batch)) from e

            scores = _check_response(response, kind, len(batch))
            for orig_idx, value in zip(batch_idx, scores):
                results[orig_idx] = value

        return results, calls


def _check_response(response, kind: str, expected: int) -> List[float]:
    if response is None:
        raise OracleError("backend returned no scores", kind, expected)
    try:
        scores = [float(v) for v in response]
    except (TypeError, ValueError) as e:
        raise OracleError(f"non-numeric scores: {e}", kind, expected) from e
    if len(scores) != expected:
        raise OracleError(f"expected {expected} scores, got {len(scores)}", kind, expected)
    if not all(math.isfinite(v) for v in scores):
        raise OracleError("non-finite score in response", kind, expected)
    return scores


def best_tis_per_stop(candidates: Sequence[Candidate], tis_scores: Sequence[float]) -> List[int]:
    """Indices of the highest-TIS start for every stop codon (ties go to the longer ORF)."""
    best: Dict[tuple, int] = {}
    for i, candidate in enumerate(candidates):
        key = candidate.stop_key
        current = best.get(key)
        if current is None:
            best[key] = i
            continue
        rank = (tis_scores[i], candidate.length)
        if rank > (tis_scores[current], candidates[current].length):
            best[key] = i
    return sorted(best.values())
