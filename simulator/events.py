"""
Event names published by the simulator.

The transport treats every event as `(name, payload)`; payload keys use the
camelCase names the map client reads.
"""

from typing import Callable

ATTACK_EVENT = "attack-event"
ATTACK_UPDATE = "attack-update"
ATTACK_FINAL = "attack-final"
DEFENSE_LAUNCH = "defense-launch"
DEFENSE_UPDATE = "defense-update"
INTERCEPT_RESULT = "intercept-result"
CENTER_INFO = "center-info"
SERVER_STATUS = "server-status"

Publisher = Callable[[str, dict], None]


def null_publisher(event: str, payload: dict) -> None:
    """Sink that drops everything."""
    return None
