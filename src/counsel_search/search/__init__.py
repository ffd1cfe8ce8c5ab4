"""
Message search indexing and query primitives.

This package provides a pure-Python search stack:
- analyzers: Tokenizers and filters (lowercase, length, stop words, digits)
- fuzzy: Levenshtein distance and spelling correction
- synonyms: Domain thesaurus for semantic expansion
- index: Inverted index, JSON persistence and the served index handle
- indexer: Offline batch index builder
"""
