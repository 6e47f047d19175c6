"""Response formatting for model-driven turns.

Derives the single display payload and the quick-reply set from the
final state of a turn.
"""

from typing import List, Optional

from agents.phrases import PRODUCT_QUICK_REPLIES
from agents.quick_replies import fallback_quick_replies
from models.conversation import ConversationState, UserSettings
from models.drew_response import Display, DisplayType, DrewResponse


def build_display(state: ConversationState) -> Optional[Display]:
    """Checklist if one is pending, else products if any are pending, else None."""
    if state.has_pending_checklist:
        return Display(type=DisplayType.CHECKLIST, checklist=state.pending_checklist)
    if state.has_pending_products:
        return Display(type=DisplayType.PRODUCTS, products=state.pending_products)
    return None


def resolve_quick_replies(
    display: Optional[Display],
    directive: Optional[List[str]],
    state: ConversationState,
    user_settings: UserSettings
) -> List[str]:
    """Quick replies for a turn.

    A displayed checklist gets none (the client renders checkboxes) and
    displayed products get the add/skip pair. Otherwise the model's own
    directive wins over the state heuristic.
    """
    if display is not None:
        if display.type == DisplayType.CHECKLIST:
            return []
        if display.type == DisplayType.PRODUCTS:
            return list(PRODUCT_QUICK_REPLIES)
    if directive:
        return directive
    return fallback_quick_replies(state, user_settings)


def build_response(
    message: str,
    state: ConversationState,
    user_settings: UserSettings,
    directive: Optional[List[str]] = None
) -> DrewResponse:
    display = build_display(state)
    return DrewResponse(
        message=message,
        state=state,
        display=display,
        quick_replies=resolve_quick_replies(display, directive, state, user_settings),
    )
