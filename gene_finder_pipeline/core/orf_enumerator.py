"""Six-frame ORF enumeration.

Every start codon between the previous in-frame stop and the next stop opens
a candidate, so nested starts sharing one stop are all reported; choosing
among them is left to scoring and path selection. O(N) per reading frame.
"""

from __future__ import annotations

import logging
from typing import Iterator

from .codon_tables import CodonTable, reverse_complement
from .data_structures import Candidate, Contig


class OrfEnumerator:
    """Enumerate candidate ORFs on both strands of a contig.

    Args:
        codon_table: Active translation table.
        min_length: Minimum ORF length in nucleotides, stop codon included.
    """

    def __init__(self, codon_table: CodonTable, min_length: int = 90):
        self.codon_table = codon_table
        self.min_length = min_length

    def enumerate(self, contig: Contig) -> Iterator[Candidate]:
        """Lazily yield candidates: forward frames 0-2, then reverse frames 0-2."""
        seq = contig.sequence
        if len(seq) < self.min_length:
            return

        for frame in range(3):
            yield from self._scan_frame(seq, frame, '+')

        rc_seq = reverse_complement(seq)
        for frame in range(3):
            yield from self._scan_frame(rc_seq, frame, '-')

    def _scan_frame(self, seq: str, frame: int, strand: str) -> Iterator[Candidate]:
        """Scan one reading frame of ``seq`` (already reverse-complemented for '-')."""
        n = len(seq)
        open_starts: list[int] = []

        for pos in range(frame, n - 2, 3):
            codon = seq[pos : pos + 3]

            if self.codon_table.is_stop(codon):
                for start_pos in open_starts:
                    length = pos + 3 - start_pos
                    if length < self.min_length:
                        # open_starts is ascending, later starts are shorter
                        break
                    yield self._make_candidate(start_pos, pos, n, frame, strand, seq)
                open_starts = []
            elif self.codon_table.is_start(codon):
                open_starts.append(pos)

        if open_starts:
            logging.debug(f"Frame {strand}{frame}: {len(open_starts)} start(s) without an in-frame stop")

    @staticmethod
    def _make_candidate(start_pos: int, stop_pos: int, n: int, frame: int,
                        strand: str, seq: str) -> Candidate:
        start_codon = seq[start_pos : start_pos + 3]
        if strand == '+':
            return Candidate(
                start=start_pos,
                stop=stop_pos,
                strand='+',
                frame=frame,
                length=stop_pos + 3 - start_pos,
                start_codon=start_codon,
            )
        # map codon positions in the reverse complement back to forward coordinates
        return Candidate(
            start=n - start_pos - 3,
            stop=n - stop_pos - 3,
            strand='-',
            frame=frame,
            length=stop_pos + 3 - start_pos,
            start_codon=start_codon,
        )
