"""Coordinate-ordered DAG of compatible candidate genes.

Nodes live in an index-addressed arena sorted by extent end, so every edge
points from a lower to a higher index and the arena order is a topological
order. Fan-out is bounded by ``max_connections``.
"""

from __future__ import annotations

import heapq
import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple

from .data_structures import Candidate, GraphNode


def coordinate_key(candidate: Candidate) -> Tuple[int, int, str, int]:
    return candidate.right, candidate.left, candidate.strand, candidate.start


@dataclass
class CandidateGraph:
    """Arena of graph nodes for one contig."""
    nodes: List[GraphNode] = field(default_factory=list)
    max_overlap: int = 0
    max_connections: int = 0

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return sum(node.out_degree for node in self.nodes)

    @property
    def max_out_degree(self) -> int:
        return max((node.out_degree for node in self.nodes), default=0)

    def iter_edges(self) -> Iterator[Tuple[int, int, float]]:
        for i, node in enumerate(self.nodes):
            for j, weight in zip(node.successors, node.successor_weights):
                yield i, j, weight


class CandidateGraphBuilder:
    """Build the candidate DAG.

    A later candidate is an eligible successor of an anchor when it overlaps
    the anchor by at most ``max_overlap`` nucleotides (equality allowed) and
    does not end at the same stop codon. Only the first layer of eligible
    successors is searched. The layer ends at the first base after the end
    of a successor that does not touch the anchor: anything starting there
    overlaps neither gene, so the anchor reaches it through that successor
    at no penalty and with a higher score. From that layer the
    ``max_connections`` best-scoring candidates are linked.
    """

    def __init__(self, max_overlap: int = 60, max_connections: int = 50,
                 min_node_score: float = 0.0, unidirectional_penalty: float = 0.0,
                 convergent_penalty: float = 0.0, divergent_penalty: float = 0.0):
        self.max_overlap = max_overlap
        self.max_connections = max_connections
        self.min_node_score = min_node_score
        self.unidirectional_penalty = unidirectional_penalty
        self.convergent_penalty = convergent_penalty
        self.divergent_penalty = divergent_penalty

    @classmethod
    def from_config(cls, config) -> 'CandidateGraphBuilder':
        return cls(
            max_overlap=config.max_overlap,
            max_connections=config.max_connections,
            min_node_score=config.min_node_score,
            unidirectional_penalty=config.unidirectional_penalty,
            convergent_penalty=config.convergent_penalty,
            divergent_penalty=config.divergent_penalty,
        )

    def build(self, candidates: Sequence[Candidate]) -> CandidateGraph:
        """Sort scored candidates and link each to its best compatible successors."""
        unscored = sum(1 for c in candidates if not c.is_scored)
        if unscored:
            raise ValueError(f"{unscored} candidates have no combined score")

        ordered = sorted(
            (c for c in candidates if c.combined_score > self.min_node_score),
            key=coordinate_key,
        )
        graph = CandidateGraph(
            nodes=[GraphNode(candidate=c) for c in ordered],
            max_overlap=self.max_overlap,
            max_connections=self.max_connections,
        )

        by_left = sorted(range(len(ordered)), key=lambda i: (ordered[i].left, i))
        lefts = [ordered[i].left for i in by_left]

        for i in range(len(ordered)):
            self._link(i, ordered, graph.nodes[i], by_left, lefts)

        logging.debug(f"Built DAG with {len(graph)} nodes and {graph.edge_count} edges "
                      f"({len(candidates) - len(ordered)} candidates below score cutoff)")
        return graph

    def _link(self, i: int, ordered: List[Candidate], node: GraphNode,
              by_left: List[int], lefts: List[int]) -> None:
        anchor = ordered[i]
        layer: List[int] = []
        horizon = None

        for k in range(bisect_left(lefts, anchor.right - self.max_overlap), len(by_left)):
            j = by_left[k]
            candidate = ordered[j]
            if horizon is not None and candidate.left >= horizon:
                break
            if j <= i or candidate.stop_key == anchor.stop_key:
                continue
            layer.append(j)
            if candidate.left >= anchor.right:
                horizon = candidate.right if horizon is None else min(horizon, candidate.right)

        best = heapq.nlargest(
            self.max_connections,
            layer,
            key=lambda j: (ordered[j].combined_score, ordered[j].length, -ordered[j].left, -j),
        )
        for j in sorted(best):
            node.add_successor(j, -self.overlap_penalty(anchor, ordered[j]))

    def overlap_penalty(self, upstream: Candidate, downstream: Candidate) -> float:
        """Penalty for the shared bases of two coordinate-ordered genes."""
        overlap = upstream.overlap_with(downstream)
        if overlap == 0:
            return 0.0
        if upstream.strand == downstream.strand:
            per_base = self.unidirectional_penalty
        elif upstream.strand == '+':
            # 3' ends face each other
            per_base = self.convergent_penalty
        else:
            per_base = self.divergent_penalty
        return overlap * per_base
