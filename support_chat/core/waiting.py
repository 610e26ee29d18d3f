"""Estimated waiting time held in the session state."""

from support_chat.models.chat import EstimatedWaiting
from support_chat.models.state import ChatState


def apply_estimate(state: ChatState, estimate: EstimatedWaiting) -> None:
    state.estimated_waiting = EstimatedWaiting(
        is_active=estimate.is_active, time=estimate.time
    )


def reset_to_zero(state: ChatState) -> None:
    """Used once an agent has joined and the estimate no longer matters."""
    state.estimated_waiting.time = 0
