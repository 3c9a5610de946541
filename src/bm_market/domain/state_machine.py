"""Market status transitions.

    active  -> paused | matured
    paused  -> active
    matured -> (terminal)
"""

from src.bm_common.enums import MarketStatus
from src.bm_common.errors import InvalidTransitionError

_ALLOWED: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.ACTIVE: frozenset({MarketStatus.PAUSED, MarketStatus.MATURED}),
    MarketStatus.PAUSED: frozenset({MarketStatus.ACTIVE}),
    MarketStatus.MATURED: frozenset(),
}


def allowed_sources(target: MarketStatus) -> list[str]:
    """Statuses from which `target` may be entered."""
    return sorted(src.value for src, targets in _ALLOWED.items() if target in targets)


def check_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if MarketStatus(target) not in _ALLOWED[MarketStatus(current)]:
        raise InvalidTransitionError("market", current, target)
