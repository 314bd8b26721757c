#!/usr/bin/env python3

"""
Core data structures for the gene finding pipeline.

Defines contigs, candidate ORFs, graph nodes, selected gene sets and
per-contig results. Coordinates are 0-based on the forward strand.
"""

import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .codon_tables import reverse_complement

_IUPAC_NUCLEOTIDES = re.compile(r'^[ACGTUNRYSWKMBDHV]*$')
STRANDS = ('+', '-')


@dataclass(frozen=True)
class Contig:
    """One assembled sequence; read-only for the duration of its pipeline run.

    The sequence is stored upper-case.
    """
    header: str
    sequence: str

    def __post_init__(self):
        object.__setattr__(self, 'sequence', self.sequence.upper())

    @property
    def name(self) -> str:
        """Header up to the first space, without the leading '>'."""
        return self.header.split(' ')[0].replace('>', '')

    @property
    def length(self) -> int:
        return len(self.sequence)

    def is_valid(self) -> bool:
        """Check that the sequence only holds IUPAC nucleotide codes."""
        return bool(_IUPAC_NUCLEOTIDES.match(self.sequence))

    def extract(self, candidate: 'Candidate') -> str:
        """Forward-strand nucleotides covered by a candidate (stop codon included)."""
        return self.sequence[candidate.left:candidate.right]

    def coding_sequence(self, candidate: 'Candidate') -> str:
        """Candidate nucleotides read 5' to 3' on its own strand."""
        nucleotides = self.extract(candidate)
        if candidate.strand == '-':
            return reverse_complement(nucleotides)
        return nucleotides


@dataclass(frozen=True)
class Candidate:
    """
    A candidate ORF, optionally scored.

    Forward genes have start < stop, reverse genes start > stop. Both
    coordinates point at the leftmost forward-strand base of the codon, so
    the covered extent is [left, right) with the stop codon included.
    """
    start: int
    stop: int
    strand: str
    frame: int
    length: int
    start_codon: str = "ATG"
    coding_score: Optional[float] = None
    tis_score: Optional[float] = None
    combined_score: Optional[float] = None
    homology_score: Optional[float] = None

    def __post_init__(self):
        """Validate candidate data after initialization."""
        if self.strand not in STRANDS:
            raise ValueError(f"Invalid strand: {self.strand}")
        if self.frame not in (0, 1, 2):
            raise ValueError(f"Invalid frame: {self.frame}")
        if min(self.start, self.stop) < 0:
            raise ValueError(f"Negative coordinates: {self.start}-{self.stop}")
        if self.strand == '+' and self.start >= self.stop:
            raise ValueError(f"Forward candidate must have start < stop: {self.start}-{self.stop}")
        if self.strand == '-' and self.start <= self.stop:
            raise ValueError(f"Reverse candidate must have start > stop: {self.start}-{self.stop}")
        if (abs(self.stop - self.start)) % 3 != 0:
            raise ValueError(f"Start and stop are not in frame: {self.start}-{self.stop}")
        if self.length != abs(self.stop - self.start) + 3:
            raise ValueError(f"Length {self.length} does not match coordinates {self.start}-{self.stop}")

    @property
    def left(self) -> int:
        return self.start if self.strand == '+' else self.stop

    @property
    def right(self) -> int:
        """Exclusive right end, stop codon included."""
        return self.stop + 3 if self.strand == '+' else self.start + 3

    @property
    def stop_key(self) -> Tuple[str, int]:
        """Candidates sharing this key share a stop codon and are mutually exclusive."""
        return self.strand, self.stop

    @property
    def is_scored(self) -> bool:
        return self.combined_score is not None

    def overlap_with(self, other: 'Candidate') -> int:
        """Number of nucleotides shared with another candidate."""
        return max(0, min(self.right, other.right) - max(self.left, other.left))


@dataclass
class GraphNode:
    """A candidate in the DAG arena plus its dynamic programming state."""
    candidate: Candidate
    best_score: float = 0.0
    predecessor: int = -1
    successors: List[int] = field(default_factory=list)
    successor_weights: List[float] = field(default_factory=list)

    @property
    def out_degree(self) -> int:
        return len(self.successors)

    def add_successor(self, index: int, weight: float = 0.0) -> None:
        self.successors.append(index)
        self.successor_weights.append(weight)


@dataclass
class GeneSet:
    """Selected genes of one contig in coordinate order."""
    contig_name: str
    genes: List[Candidate] = field(default_factory=list)
    total_score: float = 0.0

    def __len__(self) -> int:
        return len(self.genes)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.genes)

    @property
    def is_empty(self) -> bool:
        return not self.genes

    def adjacent_overlaps(self) -> List[int]:
        """Overlap in nucleotides between each pair of coordinate-adjacent genes."""
        ordered = sorted(self.genes, key=lambda g: (g.right, g.left))
        return [a.overlap_with(b) for a, b in zip(ordered, ordered[1:])]


@dataclass
class ContigResult:
    """Outcome of one contig's pipeline run."""
    contig: Contig
    gene_set: GeneSet
    candidate_count: int = 0
    status: str = "ok"  # 'ok', 'empty_input', 'invalid_input' or 'oracle_failed'
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status != "oracle_failed"
