"""Registry of verification tools, with keyword-based suggestion."""

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..logging_config import get_logger
from ..verification.interfaces import VerificationToolExecutor
from ..verification.models import SuggestedTool

logger = get_logger(__name__)

ToolHandler = Callable[[str], Awaitable[dict[str, Any]]]

MIN_SUGGESTION_SCORE = 0.1
FALLBACK_CONFIDENCE = 0.5

# Intent name -> (trigger terms, score bonus for tools serving that intent)
INTENTS: dict[str, tuple[tuple[str, ...], float]] = {
    "web_search": (
        ("search", "find", "information", "recent", "news", "latest",
         "recherche", "trouve", "cherche", "récent", "actualité"),
        0.3,
    ),
    "calculation": (
        ("calcul", "compute", "math", "equation", "python", "script", "algorithm",
         "algorithme", "données", "data", "="),
        0.4,
    ),
    "reference": (
        ("according to", "study", "published", "source", "citation",
         "selon", "d'après", "étude", "publié"),
        0.3,
    ),
}


@dataclass
class RegisteredTool:
    """A verification tool known to the catalog."""
    name: str
    description: str
    handler: ToolHandler
    keywords: list[str] = field(default_factory=list)
    use_case: str = ""
    intents: tuple[str, ...] = ()


class ToolCatalog(VerificationToolExecutor):
    """Named async verification tools.

    Tools are suggested for a text by keyword overlap plus bonuses for
    detected intents. When nothing scores, every registered tool is offered
    at a neutral confidence.
    """

    def __init__(self):
        self._tools: dict[str, RegisteredTool] = {}

    @classmethod
    def with_defaults(cls) -> "ToolCatalog":
        """Catalog preloaded with the built-in calculator tool."""
        from .calculator import register_calculator

        catalog = cls()
        register_calculator(catalog)
        return catalog

    def register(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
        keywords: list[str] | None = None,
        use_case: str = "",
        intents: tuple[str, ...] = (),
    ) -> None:
        unknown = set(intents) - set(INTENTS)
        if unknown:
            raise ValueError(f"Unknown intent(s) for {name}: {sorted(unknown)}")
        self._tools[name] = RegisteredTool(
            name=name,
            description=description,
            handler=handler,
            keywords=[k.lower() for k in keywords or []],
            use_case=use_case,
            intents=tuple(intents),
        )
        logger.debug("Registered verification tool %s", name)

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def _score(self, tool: RegisteredTool, lowered: str, words: set[str], intents: set[str]) -> float:
        matching = [k for k in tool.keywords if k in words or k in lowered]
        score = len(matching) / max(len(tool.keywords), 1)
        for intent in tool.intents:
            if intent in intents:
                score += INTENTS[intent][1]
        return score

    def detect_intents(self, text: str) -> set[str]:
        lowered = text.lower()
        return {
            intent for intent, (terms, _) in INTENTS.items()
            if any(term in lowered for term in terms)
        }

    def suggest_verification_tools(self, text: str, limit: int = 5) -> list[SuggestedTool]:
        if not self._tools:
            return []

        lowered = text.lower()
        words = {w for w in re.split(r"\W+", lowered) if len(w) > 3}
        intents = self.detect_intents(text)

        scored = [
            (self._score(tool, lowered, words, intents), tool)
            for tool in self._tools.values()
        ]
        # sorted() is stable, so ties keep registration order
        ranked = sorted(
            (item for item in scored if item[0] > MIN_SUGGESTION_SCORE),
            key=lambda item: item[0],
            reverse=True,
        )[:limit]

        if not ranked:
            return [
                SuggestedTool(
                    name=tool.name,
                    confidence=FALLBACK_CONFIDENCE,
                    reason=f"No tool stood out; {tool.use_case or tool.description}",
                    priority=index + 1,
                )
                for index, tool in enumerate(list(self._tools.values())[:limit])
            ]

        return [
            SuggestedTool(
                name=tool.name,
                confidence=min(max(score, 0.0), 1.0),
                reason=tool.use_case or tool.description,
                priority=index + 1,
            )
            for index, (score, tool) in enumerate(ranked)
        ]

    async def execute_verification_tool(self, name: str, text: str) -> dict[str, Any]:
        """Run a registered tool.

        Raises:
            KeyError: if no tool is registered under ``name``
        """
        tool = self._tools.get(name)
        if tool is None:
            raise KeyError(f"Unknown verification tool: {name}")
        logger.debug("Executing verification tool %s", name)
        return await tool.handler(text)
