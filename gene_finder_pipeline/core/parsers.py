#!/usr/bin/env python3

"""
FASTA input for the gene finding pipeline.

Reads plain or gzip-compressed nucleotide FASTA into Contig objects.
"""

import gzip
import logging
from pathlib import Path
from typing import IO, List

from .data_structures import Contig
from .exceptions import ParseError


def _open_text(file_path: str) -> IO[str]:
    with open(file_path, 'rb') as handle:
        magic = handle.read(2)
    if magic == b'\x1f\x8b':
        return gzip.open(file_path, 'rt')
    return open(file_path, 'r')


class FastaReader:
    """Parse FASTA files with O(n) complexity."""

    def __init__(self, file_path: str):
        self.file_path = file_path

    def read(self) -> List[Contig]:
        """
        Read every record of the file.

        Sequences are upper-cased; the full header line (without '>') is
        kept so the contig name can be derived from it later.

        Raises:
            ParseError: file missing, unreadable, or without any record.
        """
        if not Path(self.file_path).exists():
            raise ParseError(f"Sequence file not found: {self.file_path}")

        contigs: List[Contig] = []
        current_header = None
        current_seq: List[str] = []
        line_num = 0

        try:
            with _open_text(self.file_path) as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()

                    if line.startswith('>'):
                        # Save previous sequence
                        if current_header is not None:
                            contigs.append(Contig(current_header, ''.join(current_seq)))

                        current_header = line[1:]
                        current_seq = []

                    elif line and current_header is not None:
                        current_seq.append(line)

                    elif line:
                        raise ParseError("Sequence data before first header", self.file_path, line_num)

                # Save last sequence
                if current_header is not None:
                    contigs.append(Contig(current_header, ''.join(current_seq)))

        except (OSError, EOFError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to read FASTA file: {e}", self.file_path, line_num)

        if not contigs:
            raise ParseError("No FASTA records found", self.file_path)

        total = sum(c.length for c in contigs)
        logging.info(f"Read {len(contigs)} contigs ({total:,} nt) from {self.file_path}")
        return contigs
