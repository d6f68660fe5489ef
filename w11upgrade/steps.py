"""
Best-effort steps
-----------------

Most of the upgrade is made of steps whose failure must not stop the
run: changing a power timeout, dismounting an image, removing a folder.
:func:`best_effort` runs such a step, logs a warning on failure, records
the warning in a shared list and hands back a :class:`StepOutcome`
instead of raising.  The orchestrator then always proceeds to the next
step of its phase.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

logger = logging.getLogger("w11upgrade.steps")


@dataclass
class StepOutcome:
    """Result of a best-effort step: a value, or the error that replaced it."""

    name: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def best_effort(
    name: str,
    func: Callable[..., Any],
    *args: Any,
    warnings: Optional[List[str]] = None,
    **kwargs: Any,
) -> StepOutcome:
    """Run ``func(*args, **kwargs)`` and never let an ``Exception`` escape.

    Parameters
    ----------
    name : str
        Human readable step name used in log messages.
    func : callable
        The step to run.
    warnings : list of str, optional
        If given, a message is appended to it when the step fails.

    Returns
    -------
    StepOutcome
        ``value`` holds the return value of ``func`` on success,
        ``error`` holds the exception on failure.
    """
    logger.debug("Step: %s", name)
    try:
        value = func(*args, **kwargs)
    except Exception as exc:
        message = f"{name} failed: {exc}"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)
        return StepOutcome(name=name, error=exc)
    return StepOutcome(name=name, value=value)
