"""TorchScript scoring backend.

Wraps a gene model (amino-acid tokens in, coding logits out) and a TIS model
(one-hot nucleotide window in, start-site logit out). Weights are loaded once
and only read afterwards, so one instance can serve concurrent contig tasks.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import torch

from .exceptions import ConfigurationError

AA_TOKENS = {
    "L": 1, "V": 2, "I": 3, "M": 4, "C": 5, "A": 6, "G": 7, "S": 8, "T": 9, "P": 10,
    "F": 11, "Y": 12, "W": 13, "E": 14, "D": 15, "N": 16, "Q": 17, "K": 18, "H": 19, "R": 20,
}
NUC_CHANNELS = {"A": 0, "T": 1, "G": 2, "C": 3}

ModelSource = Union[str, Path, torch.nn.Module]


class TorchScoreOracle:
    """ScoreOracle backed by two torch models.

    Args:
        gene_model: TorchScript file or module scoring ``(B, L)`` int64 token
            tensors (0 = padding/unknown). May return ``(B,)``, ``(B, 1)``
            or per-residue ``(B, L)`` / ``(B, 1, L)`` logits.
        tis_model: TorchScript file or module scoring ``(B, 4, W)`` float
            one-hot windows; returns ``(B,)`` or ``(B, 1)`` logits.
        device: Compute device. Auto-selects CUDA/MPS/CPU if None.
        apply_sigmoid: Set False when the models already emit probabilities.
    """

    def __init__(
        self,
        gene_model: ModelSource,
        tis_model: ModelSource,
        device: Optional[Union[str, torch.device]] = None,
        apply_sigmoid: bool = True,
    ):
        self.device = torch.device(device) if device else _select_device()
        self.apply_sigmoid = apply_sigmoid
        self.gene_model = self._load(gene_model, "gene")
        self.tis_model = self._load(tis_model, "TIS")

    def _load(self, source: ModelSource, label: str) -> torch.nn.Module:
        if isinstance(source, torch.nn.Module):
            model = source
        else:
            path = Path(source)
            if not path.exists():
                raise ConfigurationError(f"{label} model not found: {path}")
            logging.info(f"Loading {label} model from {path}")
            model = torch.jit.load(str(path), map_location=self.device)
        model = model.to(self.device)
        model.train(False)  # inference mode
        return model

    def score_genes(self, proteins: Sequence[str]) -> list[float]:
        if not proteins:
            return []
        tokens, lengths = encode_proteins(proteins)
        tokens_t = torch.from_numpy(tokens).to(self.device)

        with torch.no_grad():
            out = self.gene_model(tokens_t)
            if out.dim() == 3:
                out = out.squeeze(1)
            probs = torch.sigmoid(out) if self.apply_sigmoid else out

            if probs.dim() == 2 and probs.shape[1] == tokens_t.shape[1] and probs.shape[1] > 1:
                mask = torch.from_numpy(_length_mask(lengths, tokens.shape[1])).to(self.device)
                per_seq = (probs * mask).sum(dim=1) / mask.sum(dim=1).clamp(min=1.0)
            else:
                per_seq = probs.reshape(len(proteins))

        return per_seq.float().cpu().tolist()

    def score_tis(self, windows: Sequence[str]) -> list[float]:
        if not windows:
            return []
        one_hot = torch.from_numpy(encode_windows(windows)).to(self.device)

        with torch.no_grad():
            out = self.tis_model(one_hot)
            probs = torch.sigmoid(out) if self.apply_sigmoid else out
            per_window = probs.reshape(len(windows))

        return per_window.float().cpu().tolist()


def encode_proteins(proteins: Sequence[str]) -> tuple[np.ndarray, np.ndarray]:
    """Right-padded ``(B, L)`` int64 token matrix and the true lengths."""
    lengths = np.array([len(p) for p in proteins], dtype=np.int64)
    width = max(1, int(lengths.max()))
    tokens = np.zeros((len(proteins), width), dtype=np.int64)
    for row, protein in enumerate(proteins):
        tokens[row, :len(protein)] = [AA_TOKENS.get(aa, 0) for aa in protein]
    return tokens, lengths


def encode_windows(windows: Sequence[str]) -> np.ndarray:
    """``(B, 4, W)`` float32 one-hot encoding; ambiguous bases stay all-zero."""
    width = max(len(w) for w in windows)
    one_hot = np.zeros((len(windows), 4, width), dtype=np.float32)
    for row, window in enumerate(windows):
        for col, base in enumerate(window.upper()):
            channel = NUC_CHANNELS.get(base)
            if channel is not None:
                one_hot[row, channel, col] = 1.0
    return one_hot


def _length_mask(lengths: np.ndarray, width: int) -> np.ndarray:
    return (np.arange(width)[None, :] < lengths[:, None]).astype(np.float32)


def _select_device() -> torch.device:
    if torch.cuda.is_available():
        return torch.device("cuda")
    if torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")
