"""Best-effort side effects that run after a primary write has committed.

A failing effect never undoes the primary change: it is logged and reported
back to the caller as a structured warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SideEffect:
    name: str
    run: Callable[[], Awaitable[object]]


@dataclass(frozen=True)
class SideEffectWarning:
    effect: str
    error: str

    def as_dict(self) -> dict:
        return {"effect": self.effect, "error": self.error}


async def run_best_effort(effects: Iterable[SideEffect]) -> list[SideEffectWarning]:
    """Run each effect in order, collecting failures instead of raising."""
    warnings: list[SideEffectWarning] = []
    for effect in effects:
        try:
            await effect.run()
        except Exception as exc:
            logger.error("Side effect %s failed: %s", effect.name, exc, exc_info=True)
            warnings.append(SideEffectWarning(effect.name, str(exc) or exc.__class__.__name__))
    return warnings


__all__ = ["SideEffect", "SideEffectWarning", "run_best_effort"]
