"""Similarity scores between a query text and stored verification texts."""

import re

import numpy as np

MIN_KEYWORD_LENGTH = 4
MIN_SHARED_PHRASE_WORDS = 3
SHARED_PHRASE_BONUS = 0.2
TEXT_SIMILARITY_CAP = 0.95

_ARITHMETIC = re.compile(r"\d+(?:[.,]\d+)?(?:\s*[+\-*/^]\s*\d+(?:[.,]\d+)?)+")
_NON_WORD = re.compile(r"[^\w\s]|_")
_SENTENCE_SPLIT = re.compile(r"[.!?;]")


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse numbers to a NUM token.

    Arithmetic spans are kept verbatim so ``2 + 2`` and ``2 + 3`` stay distinct.
    """
    expressions: list[str] = []

    def _stash(match: re.Match) -> str:
        expressions.append(re.sub(r"\s+", "", match.group(0)))
        return f" mathexpr{len(expressions) - 1} "

    tokenized = _ARITHMETIC.sub(_stash, text)
    words = []
    for word in _NON_WORD.sub(" ", tokenized.lower()).split():
        if word.startswith("mathexpr") and word[8:].isdigit():
            words.append(expressions[int(word[8:])])
        else:
            words.append(re.sub(r"\d+", "NUM", word))
    return " ".join(words)


def _keywords(normalized: str) -> set[str]:
    return {w for w in normalized.split() if len(w) >= MIN_KEYWORD_LENGTH}


def _phrases(text: str) -> list[str]:
    chunks = (normalize_text(c) for c in _SENTENCE_SPLIT.split(text))
    return [c for c in chunks if c]


def text_similarity(query: str, candidate: str) -> float:
    """Keyword Jaccard similarity plus a bonus for a shared sentence.

    Exact matches score 1.0; anything else is capped below that.
    """
    if query == candidate:
        return 1.0

    query_words = _keywords(normalize_text(query))
    candidate_words = _keywords(normalize_text(candidate))
    union = query_words | candidate_words
    score = len(query_words & candidate_words) / len(union) if union else 0.0

    candidate_phrases = _phrases(candidate)
    for phrase in _phrases(query):
        if len(phrase.split()) < MIN_SHARED_PHRASE_WORDS:
            continue
        if any(phrase in other for other in candidate_phrases):
            score += SHARED_PHRASE_BONUS
            break

    return min(score, TEXT_SIMILARITY_CAP)


def cosine_similarity(query_embedding: np.ndarray, embeddings: np.ndarray) -> np.ndarray:
    """Cosine similarity between one query vector and a stack of vectors.

    Args:
        query_embedding: Query vector (dimension,)
        embeddings: Stored vectors (n, dimension)

    Returns:
        Similarity scores (n,)
    """
    if len(embeddings.shape) == 1:
        embeddings = embeddings.reshape(1, -1)
    query_norm = np.linalg.norm(query_embedding)
    norms = np.linalg.norm(embeddings, axis=1)
    denominator = norms * query_norm
    scores = np.dot(embeddings, query_embedding)
    return np.divide(scores, denominator, out=np.zeros_like(scores, dtype=float), where=denominator > 0)
