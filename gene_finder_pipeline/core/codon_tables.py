"""Translation tables 11 and 4.

Codon to amino-acid rules come from Biopython's NCBI tables. Only ATG, GTG
and TTG open an ORF; the rarer alternative initiators Biopython lists are
not used as starts. Tables are built once per process and shared read-only
between contig workers.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from Bio.Data.CodonTable import unambiguous_dna_by_id
from Bio.Seq import reverse_complement as _bio_reverse_complement

from .exceptions import ConfigurationError

START_CODONS = frozenset({"ATG", "GTG", "TTG"})
SUPPORTED_TABLES = (11, 4)


@dataclass(frozen=True)
class CodonTable:
    """Codon lookups for one NCBI translation table."""

    table_id: int
    forward_table: dict      # codon -> amino acid, stops excluded
    stop_codons: frozenset
    start_codons: frozenset

    def is_start(self, codon: str) -> bool:
        return codon in self.start_codons

    def is_stop(self, codon: str) -> bool:
        return codon in self.stop_codons

    def translate(self, nucleotides: str) -> str:
        """Translate an ORF, stopping before the first in-frame stop codon.

        The first codon becomes M when it is a start codon, since bacterial
        initiator tRNA reads GTG and TTG as methionine. Unknown or ambiguous
        codons translate to X. Trailing partial codons are ignored.
        """
        seq = nucleotides.upper().replace("U", "T")
        amino_acids: list[str] = []
        for i in range(0, len(seq) - 2, 3):
            codon = seq[i : i + 3]
            if codon in self.stop_codons:
                break
            if i == 0 and codon in self.start_codons:
                amino_acids.append("M")
            else:
                amino_acids.append(self.forward_table.get(codon, "X"))
        return "".join(amino_acids)


@lru_cache(maxsize=None)
def get_codon_table(table_id: int = 11) -> CodonTable:
    """Get the shared codon table for a supported translation table id."""
    if table_id not in SUPPORTED_TABLES:
        raise ConfigurationError(
            f"Only translation tables 11 and 4 are implemented, got {table_id}"
        )
    bio_table = unambiguous_dna_by_id[table_id]
    return CodonTable(
        table_id=table_id,
        forward_table=dict(bio_table.forward_table),
        stop_codons=frozenset(bio_table.stop_codons),
        start_codons=START_CODONS,
    )


def reverse_complement(sequence: str) -> str:
    """Reverse complement of a DNA string (IUPAC codes supported)."""
    return str(_bio_reverse_complement(sequence))
