from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List


class TransitionError(ValueError):
    pass


class PipelineState(str, Enum):
    INIT = "INIT"
    DEPENDENCIES_INSTALLED = "DEPENDENCIES_INSTALLED"
    BUNDLED = "BUNDLED"
    ASSEMBLED = "ASSEMBLED"
    PACKAGED = "PACKAGED"
    FAILED = "FAILED"


# Strictly linear; FAILED is reachable from every non-terminal state.
FORWARD: dict[PipelineState, PipelineState] = {
    PipelineState.INIT: PipelineState.DEPENDENCIES_INSTALLED,
    PipelineState.DEPENDENCIES_INSTALLED: PipelineState.BUNDLED,
    PipelineState.BUNDLED: PipelineState.ASSEMBLED,
    PipelineState.ASSEMBLED: PipelineState.PACKAGED,
}

TERMINAL = (PipelineState.PACKAGED, PipelineState.FAILED)


@dataclass(frozen=True)
class ResolvedTransition:
    from_state: PipelineState
    to_state: PipelineState


def _coerce(state: PipelineState | str) -> PipelineState:
    try:
        return PipelineState(state)
    except ValueError:
        known = [s.value for s in PipelineState]
        raise TransitionError(f"Unknown state '{state}'. Known: {known}") from None


def resolve_transition(from_state: PipelineState | str, to_state: PipelineState | str) -> ResolvedTransition:
    src = _coerce(from_state)
    dst = _coerce(to_state)

    if src in TERMINAL:
        raise TransitionError(f"State {src.value} is terminal; re-run the pipeline from INIT")

    if dst is PipelineState.FAILED or FORWARD.get(src) is dst:
        return ResolvedTransition(from_state=src, to_state=dst)

    raise TransitionError(f"Transition not allowed: {src.value} -> {dst.value}")


def validate_plan(to_states: Iterable[PipelineState | str]) -> List[PipelineState]:
    """
    Checks that an ordered list of step targets walks INIT -> PACKAGED exactly once.
    """
    plan = [_coerce(s) for s in to_states]
    current = PipelineState.INIT
    for target in plan:
        if target is PipelineState.FAILED:
            raise TransitionError("FAILED cannot be a step target")
        current = resolve_transition(current, target).to_state
    if current is not PipelineState.PACKAGED:
        raise TransitionError(f"Pipeline ends in {current.value}, expected {PipelineState.PACKAGED.value}")
    return plan


class PipelineStateMachine:
    def __init__(self) -> None:
        self.state = PipelineState.INIT
        self.history: list[PipelineState] = [self.state]

    def advance(self, to_state: PipelineState | str) -> ResolvedTransition:
        resolved = resolve_transition(self.state, to_state)
        self.state = resolved.to_state
        self.history.append(self.state)
        return resolved

    def fail(self) -> ResolvedTransition:
        return self.advance(PipelineState.FAILED)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL
