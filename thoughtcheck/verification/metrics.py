"""Verification metrics tracking."""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from .models import VerificationResult, VerificationStatus


@dataclass
class LatencyMetrics:
    """Latency metrics for verification operations."""
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float('inf')
    max_ms: float = 0.0

    def add(self, latency_ms: float) -> None:
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2) if self.count else 0.0,
            "max_ms": round(self.max_ms, 2),
        }


@dataclass
class VerificationMetricsTracker:
    """Track verification activity for one pipeline."""

    started_at: datetime = field(default_factory=datetime.now)

    # Final statuses of deep verifications
    status_counts: dict = field(default_factory=lambda: defaultdict(int))
    deep_verifications: int = 0
    preliminary_verifications: int = 0

    # Reuse
    cache_hits: dict = field(default_factory=lambda: defaultdict(int))
    memory_hits: int = 0
    memory_misses: int = 0
    memory_failures: int = 0
    propagated: int = 0

    # Tools: tool name -> outcome -> count
    tool_outcomes: dict = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))

    deep_latency: LatencyMetrics = field(default_factory=LatencyMetrics)

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def record_result(self, result: VerificationResult, latency_ms: float) -> None:
        """Record the outcome of one deep verification."""
        async with self._lock:
            self.deep_verifications += 1
            self.status_counts[result.status.value] += 1
            self.deep_latency.add(latency_ms)

    async def record_preliminary(self) -> None:
        async with self._lock:
            self.preliminary_verifications += 1

    async def record_cache_hit(self, cache_name: str) -> None:
        async with self._lock:
            self.cache_hits[cache_name] += 1

    async def record_memory_lookup(self, hit: bool | None) -> None:
        """Record a durable-memory lookup; ``None`` means the lookup failed."""
        async with self._lock:
            if hit is None:
                self.memory_failures += 1
            elif hit:
                self.memory_hits += 1
            else:
                self.memory_misses += 1

    async def record_propagation(self) -> None:
        async with self._lock:
            self.propagated += 1

    async def record_tool_invocation(self, tool_name: str, outcome: str) -> None:
        """Record one tool call: success, failure, timeout or unusable."""
        async with self._lock:
            self.tool_outcomes[tool_name][outcome] += 1

    def get_summary(self) -> dict:
        """Get metrics summary."""
        tool_totals: dict[str, int] = defaultdict(int)
        for outcomes in self.tool_outcomes.values():
            for outcome, count in outcomes.items():
                tool_totals[outcome] += count
        invocations = sum(tool_totals.values())
        verified = sum(
            self.status_counts.get(s.value, 0)
            for s in (VerificationStatus.VERIFIED, VerificationStatus.PARTIALLY_VERIFIED)
        )

        return {
            "started_at": self.started_at.isoformat(),
            "deep_verifications": self.deep_verifications,
            "preliminary_verifications": self.preliminary_verifications,
            "status_counts": dict(self.status_counts),
            "verified_rate": verified / self.deep_verifications if self.deep_verifications else 0.0,
            "cache_hits": dict(self.cache_hits),
            "memory": {
                "hits": self.memory_hits,
                "misses": self.memory_misses,
                "failures": self.memory_failures,
            },
            "propagated": self.propagated,
            "tools": {
                "invocations": invocations,
                "success": tool_totals.get("success", 0),
                "failure": tool_totals.get("failure", 0),
                "timeout": tool_totals.get("timeout", 0),
                "unusable": tool_totals.get("unusable", 0),
                "by_tool": {name: dict(o) for name, o in self.tool_outcomes.items()},
            },
            "latency": self.deep_latency.to_dict(),
        }

    def reset(self) -> None:
        """Reset all counters."""
        self.started_at = datetime.now()
        self.status_counts = defaultdict(int)
        self.deep_verifications = 0
        self.preliminary_verifications = 0
        self.cache_hits = defaultdict(int)
        self.memory_hits = 0
        self.memory_misses = 0
        self.memory_failures = 0
        self.propagated = 0
        self.tool_outcomes = defaultdict(lambda: defaultdict(int))
        self.deep_latency = LatencyMetrics()
