"""Quick-reply directive parsing and state-derived fallbacks.

The model ends a question with a bracketed directive such as
``[QUICK_REPLIES: "100A", "150A"]``. The directive is a private convention
between the orchestrator and the model and never reaches the user.
"""

import re
from typing import List, Optional, Tuple

from models.conversation import ConversationState, UserSettings

QUICK_REPLIES_DIRECTIVE = re.compile(r"\[QUICK_REPLIES:\s*(.+?)\]", re.DOTALL)
QUOTED_OPTION = re.compile(r"[\"']([^\"']+)[\"']")
_DIRECTIVE_WITH_SPACE = re.compile(r"\s*\[QUICK_REPLIES:\s*.+?\]", re.DOTALL)

MAX_FALLBACK_REPLIES = 3


def parse_quick_replies(text: str) -> Tuple[str, Optional[List[str]]]:
    """Split model text into (clean text, options).

    Options is None when there is no directive or it holds no quoted
    option. Every directive is removed from the text either way.
    """
    match = QUICK_REPLIES_DIRECTIVE.search(text or "")
    if not match:
        return (text or "").strip(), None

    options = [option.strip() for option in QUOTED_OPTION.findall(match.group(1)) if option.strip()]
    clean_text = _DIRECTIVE_WITH_SPACE.sub("", text).strip()
    return clean_text, options or None


def fallback_quick_replies(state: ConversationState, user_settings: UserSettings) -> List[str]:
    """Suggest next steps from the shape of the quote."""
    if state.is_complete:
        return ["Save Quote", "Add more materials"]

    replies: List[str] = []
    has_items = bool(state.quote_items)
    has_labor = bool(state.labor_hours and state.labor_rate)
    has_markup = state.markup_percent is not None

    if has_items and not has_labor:
        if user_settings.default_labor_rate:
            replies.append("Use my default rate")
        replies.append("Set labor hours")

    if has_items and has_labor and not has_markup:
        if user_settings.default_markup_percent:
            percent = user_settings.default_markup_percent
            replies.append(f"Use {percent:g}% markup")
        replies.append("Set markup percentage")

    if has_items and has_labor and has_markup:
        replies.append("Yes, finalize")
        replies.append("Add more materials")

    if len(state.quote_items) < 3:
        replies.append("Look up materials")

    return replies[:MAX_FALLBACK_REPLIES]
