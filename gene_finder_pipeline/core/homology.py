"""Optional homology filter using MMseqs2.

Translated gene calls are searched against a reference protein set. Genes
with a reference hit keep their call and carry the hit's bit score; genes
without support are dropped when their coding score is weak. Any MMseqs2
failure is fatal to the run.
"""

from __future__ import annotations

import dataclasses
import logging
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .codon_tables import CodonTable
from .data_structures import Candidate, Contig, GeneSet
from .exceptions import ConfigurationError, ExternalToolError

CACHE_DIRNAME = "gene_finder_mmseqs"


def run_mmseqs(binary: str, args: List[str], verbose: bool = False) -> subprocess.CompletedProcess:
    """Run one MMseqs2 module, raising ExternalToolError on nonzero exit."""
    cmd = [binary, *args]
    if not verbose:
        cmd += ["-v", "0"]
    logging.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise ExternalToolError(f"could not start MMseqs2: {e}", cmd) from e
    if result.returncode != 0:
        raise ExternalToolError(f"mmseqs {args[0]} failed", cmd, result.returncode, result.stderr)
    return result


class MMseqsIndex:
    """Locate or build the reference database and index in the temp directory.

    Args:
        reference_fasta: Reference protein FASTA.
        temp_dir: Directory that holds the cached database between runs.
        binary: MMseqs2 executable.
        clear_cache: Rebuild even when a cached index exists.
    """

    def __init__(self, reference_fasta: str, temp_dir: str, binary: str = "mmseqs",
                 clear_cache: bool = False, verbose: bool = False):
        self.reference_fasta = Path(reference_fasta)
        self.cache_dir = Path(temp_dir) / CACHE_DIRNAME
        self.binary = binary
        self.clear_cache = clear_cache
        self.verbose = verbose
        self._lock = threading.Lock()
        self._ready = False

    @property
    def database(self) -> Path:
        return self.cache_dir / "reference_genes.db"

    @property
    def index_tmp(self) -> Path:
        return self.cache_dir / "index_tmp"

    def is_built(self) -> bool:
        return self.database.exists() and Path(f"{self.database}.idx").exists()

    def ensure(self) -> Path:
        """Return the reference database path, building it first if needed."""
        with self._lock:
            if self._ready:
                return self.database

            if not self.reference_fasta.exists():
                raise ConfigurationError(f"Reference FASTA not found: {self.reference_fasta}")

            if self.clear_cache and self.cache_dir.exists():
                logging.info(f"Clearing MMseqs2 cache at {self.cache_dir}")
                shutil.rmtree(self.cache_dir)

            if self.is_built():
                logging.info(f"Found MMseqs2 index at {self.database}")
            else:
                logging.info("Building MMseqs2 reference database and index...")
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                run_mmseqs(self.binary, ["createdb", str(self.reference_fasta), str(self.database)],
                           self.verbose)
                run_mmseqs(self.binary, ["createindex", str(self.database), str(self.index_tmp)],
                           self.verbose)

            self._ready = True
            return self.database


class HomologyFilter:
    """Search selected genes against the reference and drop unsupported weak calls."""

    def __init__(self, index: MMseqsIndex, codon_table: CodonTable,
                 min_bitscore: float = 20.0, min_unsupported_coding: float = 0.5,
                 sensitivity: float = 5.7, temp_dir: Optional[str] = None):
        self.index = index
        self.codon_table = codon_table
        self.min_bitscore = min_bitscore
        self.min_unsupported_coding = min_unsupported_coding
        self.sensitivity = sensitivity
        self.temp_dir = temp_dir

    @classmethod
    def from_config(cls, config, codon_table: CodonTable) -> 'HomologyFilter':
        index = MMseqsIndex(
            config.reference_fasta_path,
            config.temp_dir,
            binary=config.mmseqs_binary,
            clear_cache=config.clear_cache,
            verbose=config.debug_mode,
        )
        return cls(
            index,
            codon_table,
            min_bitscore=config.homology_min_bitscore,
            min_unsupported_coding=config.homology_min_unsupported_coding,
            sensitivity=config.homology_sensitivity,
            temp_dir=config.temp_dir,
        )

    def apply(self, contig: Contig, gene_set: GeneSet) -> GeneSet:
        """Return a new gene set with homology scores attached and weak unsupported genes removed."""
        if gene_set.is_empty:
            return gene_set

        proteins = {f"gene_{i}": self._protein(contig, gene) for i, gene in enumerate(gene_set.genes)}
        hits = self.search(proteins)

        kept: List[Candidate] = []
        for i, gene in enumerate(gene_set.genes):
            bits = hits.get(f"gene_{i}")
            if bits is not None and bits >= self.min_bitscore:
                kept.append(dataclasses.replace(gene, homology_score=bits))
            elif (gene.coding_score or 0.0) >= self.min_unsupported_coding:
                kept.append(gene)

        dropped = len(gene_set) - len(kept)
        logging.info(f"{contig.name}: homology filter kept {len(kept)} genes, dropped {dropped}")
        return GeneSet(
            contig_name=gene_set.contig_name,
            genes=kept,
            total_score=sum(g.combined_score or 0.0 for g in kept),
        )

    def search(self, proteins: Dict[str, str]) -> Dict[str, float]:
        """Best bit score per query name; queries without hits are absent."""
        if not proteins:
            return {}
        database = self.index.ensure()
        binary = self.index.binary
        verbose = self.index.verbose

        with tempfile.TemporaryDirectory(dir=self.temp_dir, prefix="gene_finder_search_") as work:
            work_dir = Path(work)
            query_fasta = work_dir / "query.faa"
            with open(query_fasta, "w") as f:
                for name, protein in proteins.items():
                    f.write(f">{name}\n{protein}\n")

            query_db = work_dir / "query.db"
            result_db = work_dir / "result.db"
            hits_tsv = work_dir / "hits.tsv"

            run_mmseqs(binary, ["createdb", str(query_fasta), str(query_db)], verbose)
            run_mmseqs(binary, ["search", str(query_db), str(database), str(result_db),
                                str(work_dir / "tmp"), "-s", str(self.sensitivity)], verbose)
            run_mmseqs(binary, ["convertalis", str(query_db), str(database), str(result_db),
                                str(hits_tsv), "--format-output", "query,target,bits"], verbose)

            return parse_hits(hits_tsv)

    def _protein(self, contig: Contig, gene: Candidate) -> str:
        return self.codon_table.translate(contig.coding_sequence(gene))


def parse_hits(path: Path) -> Dict[str, float]:
    """Parse ``query, target, bits`` rows keeping the best bit score per query."""
    best: Dict[str, float] = {}
    if not path.exists():
        return best
    with open(path) as f:
        for line in f:
            fields = line.rstrip("\n").split("\t")
            if len(fields) < 3:
                continue
            query, bits = fields[0], float(fields[2])
            if bits > best.get(query, float("-inf")):
                best[query] = bits
    return best
