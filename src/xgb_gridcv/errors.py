from dataclasses import dataclass, field
from typing import Any


class InvalidArgument(ValueError):
    """Call-level validation failure; raised before any cross-validation work starts."""


class CollaboratorUnavailable(RuntimeError):
    """The cross-validation backend cannot be invoked at all; aborts the run."""


@dataclass(frozen=True)
class CombinationFailure:
    """
    Per-combination, non-fatal failure: the combination still gets a row in the
    results table, with every metric field unavailable.
    """
    position: int
    params: dict[str, Any] = field(default_factory=dict)
    reason: str = ""

    def describe(self) -> str:
        return f"combination #{self.position} {self.params}: {self.reason}"
