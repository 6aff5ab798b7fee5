"""
Result type for multi-step writes.

A write such as "create a log, link its content and repertoire, then
recompute stats" is not atomic across steps. Only the primary row decides
success; failures in the later steps are collected instead of raised so the
caller can tell "fully succeeded" from "succeeded with stale auxiliary
state" from "failed".
"""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class WriteOutcome(Generic[T]):
    """Outcome of a multi-step write."""

    primary: Optional[T] = None
    secondary_failures: List[str] = field(default_factory=list)
    stats_updated: bool = False
    recomputed_repertoire_ids: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.primary is not None

    @property
    def fully_succeeded(self) -> bool:
        return self.succeeded and not self.secondary_failures

    def record_failure(self, step: str, error: Exception) -> None:
        self.secondary_failures.append(f"{step}: {error}")
