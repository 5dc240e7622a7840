"""
Close-out wizard state machine.

The wizard walks ``sales -> cash -> digital -> summary`` and ends in ``closed``.
Confirming the summary goes through the safe-deposit step only when there is
cash in the drawer; with an empty drawer the deposit is zero and the day closes
straight away. Every allowed move is listed in ``TRANSITIONS``; anything else
is an ``InvalidState``.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from till.core.errors import InvalidState


class CloseState(str, Enum):
    sales = "sales"
    cash = "cash"
    digital = "digital"
    summary = "summary"
    safe_deposit = "safe_deposit"
    closed = "closed"


class CloseEvent(str, Enum):
    advance = "advance"
    back = "back"
    confirm = "confirm"
    confirm_deposit = "confirm_deposit"


Guard = Callable[[Decimal], bool]


def _has_cash(physical_cash: Decimal) -> bool:
    return physical_cash > 0


def _no_cash(physical_cash: Decimal) -> bool:
    return physical_cash <= 0


@dataclass(frozen=True)
class Transition:
    source: CloseState
    event: CloseEvent
    target: CloseState
    guard: Optional[Guard] = None
    # Reaching the target persists the closing record
    commits: bool = False


TRANSITIONS: List[Transition] = [
    Transition(CloseState.sales, CloseEvent.advance, CloseState.cash),
    Transition(CloseState.cash, CloseEvent.advance, CloseState.digital),
    Transition(CloseState.digital, CloseEvent.advance, CloseState.summary),
    Transition(CloseState.cash, CloseEvent.back, CloseState.sales),
    Transition(CloseState.digital, CloseEvent.back, CloseState.cash),
    Transition(CloseState.summary, CloseEvent.back, CloseState.digital),
    Transition(CloseState.summary, CloseEvent.confirm, CloseState.safe_deposit, guard=_has_cash),
    Transition(CloseState.summary, CloseEvent.confirm, CloseState.closed, guard=_no_cash, commits=True),
    Transition(CloseState.safe_deposit, CloseEvent.back, CloseState.summary),
    Transition(CloseState.safe_deposit, CloseEvent.confirm_deposit, CloseState.closed, commits=True),
]

_TABLE: Dict[Tuple[CloseState, CloseEvent], List[Transition]] = {}
for _transition in TRANSITIONS:
    _TABLE.setdefault((_transition.source, _transition.event), []).append(_transition)


def resolve(state: CloseState, event: CloseEvent, physical_cash: Decimal) -> Transition:
    """Pick the transition for ``event`` in ``state`` whose guard holds."""
    state = CloseState(state)
    event = CloseEvent(event)
    candidates = _TABLE.get((state, event), [])
    for transition in candidates:
        if transition.guard is None or transition.guard(physical_cash):
            return transition
    if state == CloseState.closed:
        raise InvalidState("The close-out is already finished")
    raise InvalidState(f"Cannot {event.value} from step '{state.value}'")
