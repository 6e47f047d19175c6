"""Phrase tables and patterns for the deterministic phase router.

Everything the router matches against lives here so the boundary between
deterministic handling and the model fallback can be reviewed in one place.
Bump PHRASES_VERSION whenever a table or pattern changes.
"""

import re
from typing import Dict, List

PHRASES_VERSION = "2024.3"

# ---------------------------------------------------------------------------
# Structured tags sent by the client UI
# ---------------------------------------------------------------------------

ADD_SELECTED_TAG = "ADD_SELECTED:"
CONFIRM_CHECKLIST_TAG = "CONFIRM_CHECKLIST:"

# ---------------------------------------------------------------------------
# Patterns (matched against the stripped message)
# ---------------------------------------------------------------------------

RESET_PATTERN = re.compile(r"^(start new quote|new quote|start over|start fresh)$", re.IGNORECASE)

ADD_ALL_PATTERN = re.compile(r"^add all( to quote)?$", re.IGNORECASE)
SKIP_PRODUCTS_PATTERN = re.compile(r"^skip( these materials)?$", re.IGNORECASE)

AFFIRMATIVE_PATTERN = re.compile(
    r"^(looks? good|yes|yeah|yep|confirm|ok|okay|good|perfect|"
    r"that'?s? (good|right|it)|sounds? good|all good|go ahead)$",
    re.IGNORECASE,
)
PARTIAL_SELECTION_PATTERN = re.compile(r"^(just|only)\s+(the\s+)?(.+)$", re.IGNORECASE)
SKIP_CHECKLIST_PATTERN = re.compile(r"^skip( checklist)?$", re.IGNORECASE)

LABOR_HOURS_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)?$", re.IGNORECASE)

MARKUP_PERCENT_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*%?(?:\s*percent)?$", re.IGNORECASE)
NO_MARKUP_PATTERN = re.compile(r"^(no markup|none|skip|0%?)$", re.IGNORECASE)

FINALIZE_PATTERN = re.compile(r"^(yes|finalize|yes,?\s*finalize|done|save|looks? good)$", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Job type table (exact match on the lowercased message)
# ---------------------------------------------------------------------------

JOB_TYPE_PHRASES: Dict[str, str] = {
    "panel upgrade": "panel_upgrade",
    "panel": "panel_upgrade",
    "200 amp": "panel_upgrade",
    "200a": "panel_upgrade",
    "electrical panel": "panel_upgrade",
    "ev charger": "ev_charger",
    "ev charger install": "ev_charger",
    "ev": "ev_charger",
    "charger": "ev_charger",
    "recessed lighting": "recessed_lighting",
    "recessed lights": "recessed_lighting",
    "can lights": "recessed_lighting",
    "outlet": "outlet_circuit",
    "circuit": "outlet_circuit",
    "outlet addition": "outlet_circuit",
}

# ---------------------------------------------------------------------------
# Fixed responses
# ---------------------------------------------------------------------------

GREETING_MESSAGE = "Hey! I'm Drew, your estimating assistant. What kind of job are we quoting today?"
RESTART_MESSAGE = "Starting fresh! What kind of job are we quoting?"
JOB_QUICK_REPLIES: List[str] = ["Panel upgrade", "EV charger install", "Recessed lighting", "Something else"]

PRODUCT_QUICK_REPLIES: List[str] = ["Add all to quote", "Skip these materials"]
AFTER_ADD_QUICK_REPLIES: List[str] = ["Look up more materials", "Set labor hours", "Review quote"]
AFTER_ADD_ALL_QUICK_REPLIES: List[str] = ["Set labor hours", "Look up more materials", "Review quote"]
SKIPPED_PRODUCTS_MESSAGE = "No problem. What would you like to do next?"

NO_CATEGORIES_MESSAGE = "No materials selected. Would you like to look up materials manually or move on?"
NO_CATEGORIES_QUICK_REPLIES: List[str] = ["Look up materials", "Set labor hours", "Skip materials"]

SKIPPED_CHECKLIST_MESSAGE = "No problem. Would you like to look up specific materials or set labor?"
SKIPPED_CHECKLIST_QUICK_REPLIES: List[str] = ["Look up materials", "Set labor hours"]

MARKUP_QUICK_REPLIES: List[str] = ["20%", "25%", "30%", "No markup"]
REVIEW_QUICK_REPLIES: List[str] = ["Yes, finalize", "Review details", "Add more materials"]

FINALIZED_MESSAGE = "Quote saved! You can add custom items or adjust quantities when you edit it."
FINALIZED_QUICK_REPLIES: List[str] = ["Start new quote"]

STUCK_MESSAGE = "I got a bit stuck there. Let's try again - what were we working on?"
STUCK_QUICK_REPLIES: List[str] = ["Start over", "Continue where we left off"]

