"""Analyzer utilities for message search.

Mirrors a Whoosh-style composable tokenizer/filter design. Two analyzers are
registered:

* ``index`` - used by the index builder; drops short tokens, stop words and
  purely numeric tokens.
* ``query`` - used at query time; only drops short tokens. Stop words and
  digits are kept in queries.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
import re
from typing import Protocol


MIN_TERM_LENGTH = 3


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int


class Analyzer(Protocol):
    """Protocol implemented by analyzers."""

    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class WordTokenizer:
    """Splits text on every run of characters that are not letters, digits or underscore."""

    def __init__(self, pattern: str = r"\w+") -> None:
        self.pattern = re.compile(pattern, re.UNICODE)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(text=match.group(0), position=position)


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not token.text.islower():
                token.text = token.text.lower()
            yield token


class MinLengthFilter:
    """Drops tokens whose length is below ``min_length``."""

    def __init__(self, min_length: int = MIN_TERM_LENGTH) -> None:
        self.min_length = min_length

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) >= self.min_length:
                yield token


class NumericFilter:
    """Drops tokens made only of digits."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not token.text.isdigit():
                yield token


DEFAULT_STOPWORDS = [
    "a",
    "all",
    "an",
    "and",
    "any",
    "are",
    "as",
    "at",
    "be",
    "both",
    "but",
    "by",
    "can",
    "each",
    "few",
    "for",
    "from",
    "had",
    "has",
    "have",
    "he",
    "her",
    "hers",
    "herself",
    "him",
    "himself",
    "how",
    "i",
    "in",
    "is",
    "it",
    "its",
    "itself",
    "just",
    "me",
    "more",
    "most",
    "no",
    "nor",
    "not",
    "now",
    "of",
    "on",
    "only",
    "or",
    "other",
    "our",
    "ours",
    "ourselves",
    "own",
    "same",
    "she",
    "should",
    "so",
    "some",
    "such",
    "than",
    "that",
    "the",
    "their",
    "theirs",
    "them",
    "themselves",
    "they",
    "this",
    "to",
    "too",
    "us",
    "very",
    "was",
    "we",
    "what",
    "when",
    "where",
    "which",
    "who",
    "why",
    "will",
    "with",
    "you",
    "your",
    "yours",
    "yourself",
    "yourselves",
]


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = frozenset(word.lower() for word in vocab)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        if not text:
            return []
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # normalize positions post-filtering
            token.position = idx
        return tokens


def _build_index_analyzer() -> AnalyzerPipeline:
    return AnalyzerPipeline(
        WordTokenizer(),
        [LowercaseFilter(), MinLengthFilter(), StopFilter(), NumericFilter()],
    )


def _build_query_analyzer() -> AnalyzerPipeline:
    return AnalyzerPipeline(WordTokenizer(), [LowercaseFilter(), MinLengthFilter()])


_ANALYZERS: dict[str, Analyzer] = {
    "index": _build_index_analyzer(),
    "query": _build_query_analyzer(),
}


def get_analyzer(name: str) -> Analyzer:
    """Return a registered analyzer by name."""

    try:
        return _ANALYZERS[name]
    except KeyError as exc:
        raise KeyError(f"Unknown analyzer '{name}'") from exc


def tokenize_for_index(text: str | None) -> list[str]:
    """Terms to post for a message body."""

    if not text:
        return []
    return [token.text for token in _ANALYZERS["index"](text)]


def tokenize_query(text: str | None) -> list[str]:
    """Terms extracted from a user query, duplicates removed in first-seen order."""

    if not text:
        return []
    seen: dict[str, None] = {}
    for token in _ANALYZERS["query"](text):
        seen.setdefault(token.text, None)
    return list(seen)
