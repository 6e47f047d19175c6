"""Turn Logger for Drew.

Provides highly visible, formatted logging for conversation turns
with distinctive visual markers that stand out in log streams.
"""

import json
import structlog
from typing import Any, Dict, Optional
from datetime import datetime

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
TURN_BANNER_CHAR = "█"
ROUTE_BANNER_CHAR = "═"
TOOL_BANNER_CHAR = "─"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _truncate(value: Any, max_length: int = 200) -> str:
    """Render a value as text, truncated for display."""
    if not isinstance(value, str):
        try:
            value = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            value = str(value)
    if len(value) > max_length:
        return value[:max_length] + f"... [truncated {len(value) - max_length} chars]"
    return value


def log_turn_start(user_message: str, phase: str, user_id: Optional[str] = None) -> None:
    """Log the start of a conversation turn."""
    timestamp = datetime.utcnow().isoformat()

    print("\n")
    print(TURN_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(TURN_BANNER_CHAR, "DREW TURN STARTED"))
    print(TURN_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Timestamp : {timestamp}")
    print(f"║ Phase     : {phase}")
    print(f"║ User      : {user_id or 'anonymous'}")
    print(f"║ Message   : {_truncate(user_message, 120)}")
    print(TURN_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "turn_start",
        phase=phase,
        user_id=user_id,
        message=_truncate(user_message, 120)
    )


def log_route_decision(handler: Optional[str], phase: str) -> None:
    """Log which deterministic handler answered, or the model fallback."""
    label = f"DETERMINISTIC: {handler}" if handler else "MODEL FALLBACK"

    print(_create_banner(ROUTE_BANNER_CHAR, label))

    logger.info(
        "route_decision",
        handler=handler or "orchestrator",
        deterministic=handler is not None,
        phase=phase
    )


def log_tool_executed(
    tool_name: str,
    tool_input: Dict[str, Any],
    result: str,
    iteration: int
) -> None:
    """Log one tool execution and its textual result."""
    print(TOOL_BANNER_CHAR * BANNER_WIDTH)
    print(f"│ Tool      : {tool_name} (iteration {iteration})")
    print(f"│ Input     : {_truncate(tool_input)}")
    print(f"│ Result    : {_truncate(result)}")
    print(TOOL_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "tool_executed",
        tool=tool_name,
        iteration=iteration,
        result_length=len(result)
    )


def log_iterations_exhausted(max_iterations: int, phase: str) -> None:
    """Log that the tool loop hit its iteration cap."""
    print("!" * BANNER_WIDTH)
    print(_create_banner("!", f"✗ STOPPED AFTER {max_iterations} ITERATIONS"))
    print("!" * BANNER_WIDTH)

    logger.warning(
        "iterations_exhausted",
        max_iterations=max_iterations,
        phase=phase
    )


def log_turn_complete(
    phase: str,
    iterations: int,
    quote_items: int,
    display_type: Optional[str] = None,
    tokens_used: int = 0
) -> None:
    """Log turn completion with summary."""
    print(TURN_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(TURN_BANNER_CHAR, "✓ TURN COMPLETE"))
    print(f"║ Phase       : {phase}")
    print(f"║ Iterations  : {iterations}")
    print(f"║ Quote Items : {quote_items}")
    print(f"║ Display     : {display_type or '-'}")
    print(f"║ Tokens      : {tokens_used:,}")
    print(TURN_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "turn_complete",
        phase=phase,
        iterations=iterations,
        quote_items=quote_items,
        display_type=display_type,
        tokens_used=tokens_used
    )
