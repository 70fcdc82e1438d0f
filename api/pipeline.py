"""
Process-wide verification pipeline for the API.

Thoughts verified through the API are remembered in a bounded registry so
later conclusions can inherit verification from the thoughts they cite.
"""
import os

from thoughtcheck.logging_config import get_logger
from thoughtcheck.models import Thought
from thoughtcheck.verification import (
    BoundedRecencyCache,
    VerificationConfig,
    VerificationPipeline,
    create_verification_pipeline,
)

logger = get_logger(__name__)

DEFAULT_DB_PATH = "verifications.db"
DEFAULT_REGISTRY_SIZE = 1000

_pipeline_instance: VerificationPipeline | None = None
_thought_registry: BoundedRecencyCache[str, Thought] = BoundedRecencyCache(
    int(os.environ.get("THOUGHTCHECK_THOUGHT_REGISTRY_SIZE", DEFAULT_REGISTRY_SIZE))
)


def register_thought(thought: Thought) -> None:
    _thought_registry.put(thought.id, thought)


def lookup_thought(thought_id: str) -> Thought | None:
    return _thought_registry.get(thought_id)


async def get_pipeline() -> VerificationPipeline:
    """Get or create the global pipeline instance."""
    global _pipeline_instance
    if _pipeline_instance is None:
        db_path = os.environ.get("THOUGHTCHECK_DB_PATH", DEFAULT_DB_PATH)
        _pipeline_instance = create_verification_pipeline(
            thought_lookup=lookup_thought,
            config=VerificationConfig.from_env(),
            db_path=db_path,
        )
        logger.info("Verification pipeline ready (memory: %s)", db_path)
    return _pipeline_instance


async def close_pipeline() -> None:
    """Drop the global pipeline and the thought registry."""
    global _pipeline_instance
    _pipeline_instance = None
    _thought_registry.clear()
