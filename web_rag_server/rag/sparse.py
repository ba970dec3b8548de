"""Sparse term-weight vectors over a shared, growing vocabulary.

Weights are per-document term frequencies, ``ln(1 + freq) / ln(1 + token_count)``.
There is no corpus-wide IDF: this is a lightweight lexical signal that only
complements the dense embedding during hybrid search.
"""

import json
import logging
import math
import re
import threading
from collections import Counter
from pathlib import Path

from .models import SparseVector

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    [
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "can", "this", "that", "these", "those",
    ]
)  # fmt: skip

MIN_TOKEN_LENGTH = 2  # exclusive
MAX_TOKEN_LENGTH = 20  # exclusive
MIN_TERM_SCORE = 0.01

_NON_WORD_RE = re.compile(r"[^\w\s]")


class Vocabulary:
    """Term to id mapping shared by every sparse vector of a collection.

    Ids are handed out sequentially and never reused or reassigned, so vectors
    built at different times stay comparable. Updates are serialized with a
    lock so the same vocabulary can be used from worker threads.
    """

    def __init__(self, terms: dict[str, int] | None = None):
        self._terms: dict[str, int] = dict(terms or {})
        self._next_id = max(self._terms.values(), default=-1) + 1
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._terms)

    def __contains__(self, term: str) -> bool:
        return term in self._terms

    def get(self, term: str) -> int | None:
        return self._terms.get(term)

    def get_or_add(self, term: str) -> int:
        """Return the id of ``term``, assigning the next free id if it is new."""
        with self._lock:
            index = self._terms.get(term)
            if index is None:
                index = self._next_id
                self._terms[term] = index
                self._next_id += 1
            return index

    @property
    def next_id(self) -> int:
        return self._next_id

    def save(self, path: str | Path):
        """Write the vocabulary to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            snapshot = dict(self._terms)
        path.write_text(json.dumps(snapshot))
        logger.debug(f"[SPARSE] Saved vocabulary with {len(snapshot)} terms to {path}")

    @classmethod
    def load(cls, path: str | Path) -> "Vocabulary":
        """Load a vocabulary saved by :meth:`save`, or start empty if the file is missing."""
        path = Path(path)
        if not path.exists():
            logger.info(f"[SPARSE] No vocabulary at {path}, starting empty")
            return cls()
        terms = json.loads(path.read_text())
        logger.info(f"[SPARSE] Loaded vocabulary with {len(terms)} terms from {path}")
        return cls({str(term): int(index) for term, index in terms.items()})


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation and drop short, long and stop-word tokens."""
    tokens = _NON_WORD_RE.sub(" ", text.lower()).split()
    return [
        token
        for token in tokens
        if MIN_TOKEN_LENGTH < len(token) < MAX_TOKEN_LENGTH and token not in STOP_WORDS
    ]


def generate_sparse_vector(
    text: str, vocabulary: Vocabulary | None = None, extend_vocabulary: bool = True
) -> SparseVector:
    """Build a sparse vector for ``text``.

    Args:
        text: Text to vectorize
        vocabulary: Vocabulary to look up and register terms in. A private,
            throwaway vocabulary is used when omitted.
        extend_vocabulary: If False, terms missing from the vocabulary are
            dropped instead of added (used for queries, where an unseen term
            cannot match any stored vector).

    Returns:
        SparseVector with one entry per kept term
    """
    vocab = vocabulary if vocabulary is not None else Vocabulary()
    tokens = tokenize(text)
    if not tokens:
        return SparseVector()

    term_freq = Counter(tokens)
    normalizer = math.log(1 + len(tokens))

    indices: list[int] = []
    values: list[float] = []
    for term, freq in term_freq.items():
        if extend_vocabulary:
            index = vocab.get_or_add(term)
        else:
            index = vocab.get(term)
            if index is None:
                continue

        score = math.log(1 + freq) / normalizer
        if score > MIN_TERM_SCORE:
            indices.append(index)
            values.append(score)

    return SparseVector(indices=indices, values=values)
