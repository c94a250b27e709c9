"""Minimal state-machine runner.

Handlers are looked up by state; each returns the next state or an error.
``enter`` runs after every transition (the coordinator persists the
session there). Terminal states have no handler and end the run.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from shipit.core.result import Err, Ok, Result

from .errors import ReleaseError

__all__ = ["StepAdvance", "StepFailure", "StepHandler", "advance", "run_state_machine"]


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    to: S


@dataclass(frozen=True, slots=True)
class StepFailure[S]:
    """The state whose handler (or entry) failed, and why."""

    state: S
    error: ReleaseError


type StepHandler[S] = Callable[[S], Result[StepAdvance[S], ReleaseError]]
type EnterState[S] = Callable[[S], Result[None, ReleaseError]]


def advance[S](to: S) -> Ok[StepAdvance[S]]:
    return Ok(StepAdvance(to=to))


def run_state_machine[S](
    *,
    initial_state: S,
    handlers: Mapping[S, StepHandler[S]],
    enter: EnterState[S],
    is_terminal: Callable[[S], bool],
) -> Result[S, StepFailure[S]]:
    """Drive handlers until a terminal state; returns that state."""
    current = initial_state

    while not is_terminal(current):
        handler = handlers.get(current)
        if handler is None:
            return Err(
                StepFailure(
                    state=current,
                    error=ReleaseError(kind="invalid_input", message=f"no handler for state: {current}"),
                )
            )

        outcome = handler(current)
        if isinstance(outcome, Err):
            return Err(StepFailure(state=current, error=outcome.error))

        current = outcome.value.to
        entered = enter(current)
        if isinstance(entered, Err):
            return Err(StepFailure(state=current, error=entered.error))

    return Ok(current)
