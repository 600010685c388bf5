"""
Per-request dispatch state machine.

    RESOLVING -> SELECTING -> EXECUTING -> SUCCESS
                     ^            |
                     +- RETRYING -+-> EXHAUSTED

DENIED ends a request before any provider is called; CANCELLED ends it when
the caller aborts.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..exceptions import ProviderFailure

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    RESOLVING = "resolving_entitlement"
    SELECTING = "selecting_provider"
    EXECUTING = "executing"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    DENIED = "denied"
    CANCELLED = "cancelled"


TERMINAL_STATES = {
    DispatchState.SUCCESS,
    DispatchState.EXHAUSTED,
    DispatchState.DENIED,
    DispatchState.CANCELLED,
}


@dataclass
class DispatchTrace:
    """Transitions, attempts and failures recorded for one request."""

    operation: str
    tier: str
    states: List[DispatchState] = field(default_factory=list)
    attempts: List[str] = field(default_factory=list)
    failures: List[ProviderFailure] = field(default_factory=list)

    def enter(self, state: DispatchState) -> None:
        if self.finished:
            raise RuntimeError(f"{self.operation} already finished in state {self.state.value}")
        self.states.append(state)
        if state in TERMINAL_STATES:
            logger.debug(
                f"{self.operation} [{self.tier}] -> {state.value} "
                f"(attempts={self.attempts}, failures={self.failures})"
            )

    @property
    def state(self) -> Optional[DispatchState]:
        return self.states[-1] if self.states else None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES
