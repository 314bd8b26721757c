"""Utility modules for the gene finding pipeline."""
