#!/usr/bin/env python3

"""
Output generation for predicted genes.

Writes the GFF3 annotation and, optionally, the translated proteins.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from .codon_tables import CodonTable
from .data_structures import Candidate, ContigResult

GFF_SOURCE = "balrog"
GFF_ATTRIBUTES = "inference=ab initio prediction:Balrog;product=hypothetical protein"


def gff_coordinates(gene: Candidate) -> Tuple[int, int]:
    """1-based inclusive (start, end) with the stop codon included."""
    if gene.strand == '+':
        return gene.start + 1, gene.stop + 3
    return gene.stop + 1, gene.start + 3


class OutputGenerator:
    """Generate output files from per-contig results."""

    def __init__(self, codon_table: CodonTable):
        self.codon_table = codon_table

    def format_gff3(self, results: Sequence[ContigResult]) -> List[str]:
        """
        Build GFF3 lines.

        All ``##sequence-region`` lines come first, one per contig (also for
        contigs without genes), followed by one CDS line per gene.
        """
        lines = ["##gff-version 3"]
        for result in results:
            lines.append(f"##sequence-region {result.contig.name} 1 {result.contig.length}")

        for result in results:
            name = result.contig.name
            for gene in result.gene_set:
                start, end = gff_coordinates(gene)
                lines.append("\t".join([
                    name, GFF_SOURCE, "CDS", str(start), str(end), ".",
                    gene.strand, "0", GFF_ATTRIBUTES,
                ]))
        return lines

    def write_gff3(self, results: Sequence[ContigResult], output_path: str) -> str:
        """Write the annotation file and return its path."""
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            for line in self.format_gff3(results):
                f.write(line + "\n")

        gene_count = sum(len(r.gene_set) for r in results)
        logging.info(f"Wrote {gene_count} genes on {len(results)} contigs to {output_path}")
        return output_path

    def iter_proteins(self, results: Iterable[ContigResult]) -> Iterable[Tuple[str, str]]:
        """Yield (record id, protein) for every selected gene."""
        for result in results:
            for gene in result.gene_set:
                start, end = gff_coordinates(gene)
                record_id = f"{result.contig.name}_{start}_{end}_{gene.strand}"
                protein = self.codon_table.translate(result.contig.coding_sequence(gene))
                yield record_id, protein

    def write_proteins(self, results: Sequence[ContigResult], output_path: str,
                       line_width: int = 60) -> str:
        """Write selected gene translations as protein FASTA."""
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with open(output_path, 'w') as f:
            for record_id, protein in self.iter_proteins(results):
                f.write(f">{record_id}\n")
                for i in range(0, len(protein), line_width):
                    f.write(protein[i:i + line_width] + "\n")
                count += 1

        logging.info(f"Wrote {count} protein sequences to {output_path}")
        return output_path
