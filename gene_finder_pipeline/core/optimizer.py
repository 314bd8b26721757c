#!/usr/bin/env python3

"""
Maximum-score path selection over the candidate DAG.

A weighted-interval-scheduling dynamic program: nodes are visited in arena
order, each keeps the best cumulative score of any path ending at it plus a
back-pointer, and the best terminus is traced back into a GeneSet.
"""

import logging
from typing import Dict, List, Tuple

from intervaltree import IntervalTree

from .data_structures import Candidate, GeneSet
from .graph import CandidateGraph


def _tie_key(candidate: Candidate) -> Tuple[int, int]:
    # larger length first, then earliest start
    return candidate.length, -candidate.left


class PathOptimizer:
    """Select the maximum-score set of mutually compatible candidates."""

    def optimize(self, graph: CandidateGraph, contig_name: str = "") -> GeneSet:
        """
        Run the dynamic program and recover the best gene set.

        Args:
            graph: Candidate DAG; node DP state is overwritten.
            contig_name: Name recorded on the returned GeneSet.

        Returns:
            GeneSet in coordinate order; empty when the graph is empty or no
            path has a positive score.
        """
        nodes = graph.nodes
        if not nodes:
            return GeneSet(contig_name=contig_name)

        for node in nodes:
            node.best_score = node.candidate.combined_score
            node.predecessor = -1

        # incoming[j] = best (value, predecessor) offered so far
        incoming: Dict[int, Tuple[float, int]] = {}

        for i, node in enumerate(nodes):
            offer = incoming.get(i)
            if offer is not None and offer[0] > 0.0:
                node.best_score += offer[0]
                node.predecessor = offer[1]

            for j, weight in zip(node.successors, node.successor_weights):
                value = node.best_score + weight
                current = incoming.get(j)
                if current is None or self._better(value, i, current[0], current[1], graph):
                    incoming[j] = (value, i)

        terminus = 0
        for i in range(1, len(nodes)):
            if self._better(nodes[i].best_score, i, nodes[terminus].best_score, terminus, graph):
                terminus = i

        best_total = nodes[terminus].best_score
        if best_total <= 0.0:
            logging.debug(f"{contig_name}: no path with positive score")
            return GeneSet(contig_name=contig_name)

        # predecessors always have a lower index, so the walk terminates
        path: List[Candidate] = []
        index = terminus
        while index != -1:
            path.append(nodes[index].candidate)
            index = nodes[index].predecessor
        path.reverse()

        return GeneSet(contig_name=contig_name, genes=path, total_score=best_total)

    @staticmethod
    def _better(value: float, index: int, other_value: float, other_index: int,
                graph: CandidateGraph) -> bool:
        """Deterministic ordering: higher score, then longer candidate, then earlier start."""
        if value != other_value:
            return value > other_value
        mine = _tie_key(graph.nodes[index].candidate)
        theirs = _tie_key(graph.nodes[other_index].candidate)
        if mine != theirs:
            return mine > theirs
        return index < other_index


def audit_overlaps(gene_set: GeneSet, max_overlap: int) -> List[Tuple[Candidate, Candidate, int]]:
    """
    Find coordinate-adjacent genes sharing more than ``max_overlap`` bases.

    Every overlapping pair is looked up through an interval tree; pairs that
    are adjacent in coordinate order are reported with their overlap.
    """
    tree = IntervalTree()
    ordered = sorted(gene_set.genes, key=lambda g: (g.right, g.left))
    for position, gene in enumerate(ordered):
        tree.addi(gene.left, gene.right, position)

    violations = []
    for position, gene in enumerate(ordered):
        for interval in tree.overlap(gene.left, gene.right):
            if interval.data != position + 1:
                continue
            neighbour = ordered[interval.data]
            overlap = gene.overlap_with(neighbour)
            if overlap > max_overlap:
                violations.append((gene, neighbour, overlap))

    return violations
