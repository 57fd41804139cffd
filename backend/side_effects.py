"""
Best-effort follow-ups of a primary write.

A task mutation returns its result to the caller no matter how its follow-ups
(audit record, notification batch) fare. Each follow-up runs once, in order,
independently of the others; a failure is logged and never retried.
"""
import logging
from typing import Callable, Sequence, Tuple

logger = logging.getLogger(__name__)

SideEffect = Tuple[str, Callable[[], None]]


def run_side_effects(effects: Sequence[SideEffect]) -> int:
    """Run each (name, callable) pair and return how many of them failed."""
    failures = 0
    for name, effect in effects:
        try:
            effect()
        except Exception:
            failures += 1
            logger.exception("Side effect %r failed", name)
    return failures
