#!/usr/bin/env python3

"""
Custom exceptions for the gene finding pipeline.

Provides specific exception types so each stage can decide whether a failure
is fatal to the run, fatal to one contig, or recoverable.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""
    pass


class ConfigurationError(PipelineError):
    """Error in pipeline configuration (raised before any contig is processed)."""
    pass


class ParseError(PipelineError):
    """Error occurred during file parsing."""

    def __init__(self, message: str, filename: str = "", line_number: int = 0):
        super().__init__(message)
        self.filename = filename
        self.line_number = line_number

    def __str__(self):
        if self.filename and self.line_number:
            return f"Parse error in {self.filename} at line {self.line_number}: {super().__str__()}"
        elif self.filename:
            return f"Parse error in {self.filename}: {super().__str__()}"
        return super().__str__()


class InputError(PipelineError):
    """Empty or malformed contig sequence."""

    def __init__(self, message: str, sequence_id: str = ""):
        super().__init__(message)
        self.sequence_id = sequence_id

    def __str__(self):
        if self.sequence_id:
            return f"Input error in contig {self.sequence_id}: {super().__str__()}"
        return super().__str__()


class OracleError(PipelineError):
    """Scoring backend failed or returned an unusable response."""

    def __init__(self, message: str, batch_kind: str = "", batch_size: int = 0):
        super().__init__(message)
        self.batch_kind = batch_kind
        self.batch_size = batch_size

    def __str__(self):
        if self.batch_kind:
            return (f"Oracle error in {self.batch_kind} batch of {self.batch_size}: "
                    f"{super().__str__()}")
        return super().__str__()


class ExternalToolError(PipelineError):
    """External tool exited with a nonzero status."""

    def __init__(self, message: str, command: Optional[List[str]] = None,
                 returncode: int = 0, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self):
        text = super().__str__()
        if self.command:
            text = f"{text} (command: {' '.join(self.command)}, exit status {self.returncode})"
        if self.stderr:
            text = f"{text}\n{self.stderr.strip()}"
        return text


class ValidationError(PipelineError):
    """Selected gene set violates an annotation invariant."""

    def __init__(self, message: str, contig_id: str = ""):
        super().__init__(message)
        self.contig_id = contig_id

    def __str__(self):
        if self.contig_id:
            return f"Validation error for contig {self.contig_id}: {super().__str__()}"
        return super().__str__()


class MemoryError(PipelineError):
    """Memory usage exceeded limits."""

    def __init__(self, message: str, current_usage: float, limit: float):
        super().__init__(message)
        self.current_usage = current_usage
        self.limit = limit

    def __str__(self):
        return f"Memory error: {super().__str__()} (current: {self.current_usage:.1f}MB, limit: {self.limit:.1f}MB)"
