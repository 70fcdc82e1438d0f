"""Durable memory of past verifications."""

from .similarity import cosine_similarity, normalize_text, text_similarity
from .verification_store import (
    StoredVerification,
    VerificationMemoryStore,
)

__all__ = [
    "VerificationMemoryStore",
    "StoredVerification",
    "text_similarity",
    "normalize_text",
    "cosine_similarity",
]
