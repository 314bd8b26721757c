#!/usr/bin/env python3

"""
Test suite for the gene finding pipeline.

Unit tests covering:
- Core data structures, configuration and codon tables
- ORF enumeration invariants
- Batched scoring against mocked and tiny torch backends
- Graph construction and path selection
- MMseqs2 homology filtering with a mocked executable
- End-to-end runs with a fake scoring backend
"""
