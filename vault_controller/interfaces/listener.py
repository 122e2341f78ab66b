"""State listener protocol — presentation-side subscribers."""
from typing import Protocol

from ..models import ControllerState


class StateListener(Protocol):
    """Receives every published controller state."""

    async def on_state_changed(self, state: ControllerState) -> None: ...
