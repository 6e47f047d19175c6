"""Quote state accumulator.

Pure functions folding intents into ConversationState snapshots. Every
function returns a new state and leaves its input untouched.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from models.conversation import (
    PHASE_ORDER,
    ContentBlock,
    ConversationState,
    Message,
    Phase,
    QuoteItem,
)
from models.tradecraft import TradecraftDoc


def format_number(value: float) -> str:
    """Render 8.0 as "8" and 7.5 as "7.5"."""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def default_quote_name(job_type: Optional[str]) -> str:
    """Quote name derived from the job type, e.g. "panel upgrade quote"."""
    if job_type:
        return f"{job_type.replace('_', ' ')} quote"
    return "New quote"


def advance_phase(current: str, target: Phase) -> str:
    """Move forward to ``target``; never move backwards."""
    target_value = Phase(target).value
    if PHASE_ORDER.index(target_value) > PHASE_ORDER.index(Phase(current).value):
        return target_value
    return Phase(current).value


def _update(state: ConversationState, **changes) -> ConversationState:
    return state.model_copy(update=changes)


def append_messages(
    state: ConversationState,
    *messages: Tuple[str, Union[str, List[ContentBlock]]]
) -> ConversationState:
    """Append (role, content) turns to the conversation log."""
    log = list(state.messages)
    log.extend(Message(role=role, content=content) for role, content in messages)
    return _update(state, messages=log)


def add_quote_items(state: ConversationState, items: Iterable[QuoteItem]) -> ConversationState:
    """Merge items by product id.

    Re-adding an id overwrites its quantity (the client always sends the
    total selected quantity, not a delta).
    """
    merged: Dict[str, QuoteItem] = dict(state.quote_items)
    for item in items:
        existing = merged.get(item.product_id)
        if existing is not None:
            merged[item.product_id] = existing.model_copy(update={"qty": item.qty})
        else:
            merged[item.product_id] = item
    return _update(state, quote_items=merged)


def remove_quote_items(
    state: ConversationState,
    product_ids: Optional[Iterable[str]] = None,
    product_names: Optional[Iterable[str]] = None
) -> Tuple[ConversationState, int]:
    """Remove items by id and/or case-insensitive name substring.

    Returns:
        (new state, number of items removed). Removing nothing is not an error.
    """
    ids = set(product_ids or [])
    patterns = [name.lower() for name in (product_names or []) if name]

    remaining: Dict[str, QuoteItem] = {}
    for product_id, item in state.quote_items.items():
        if product_id in ids:
            continue
        lowered = item.name.lower()
        if any(pattern in lowered for pattern in patterns):
            continue
        remaining[product_id] = item

    removed = len(state.quote_items) - len(remaining)
    return _update(state, quote_items=remaining), removed


def set_labor(state: ConversationState, hours: float, rate: float) -> ConversationState:
    return _update(
        state,
        labor_hours=hours,
        labor_rate=rate,
        phase=advance_phase(state.phase, Phase.MARKUP),
    )


def set_markup(state: ConversationState, percent: float) -> ConversationState:
    return _update(
        state,
        markup_percent=percent,
        phase=advance_phase(state.phase, Phase.REVIEW),
    )


def set_quote_info(
    state: ConversationState,
    quote_name: Optional[str] = None,
    client_name: Optional[str] = None,
    client_email: Optional[str] = None,
    client_phone: Optional[str] = None
) -> ConversationState:
    """Shallow-merge the provided metadata fields."""
    changes = {
        "quote_name": quote_name,
        "client_name": client_name,
        "client_email": client_email,
        "client_phone": client_phone,
    }
    return _update(state, **{key: value for key, value in changes.items() if value is not None})


def finalize_quote(state: ConversationState, quote_name: Optional[str] = None) -> ConversationState:
    """Mark the quote complete; a quote name is always present afterwards."""
    return _update(
        state,
        phase=Phase.DONE.value,
        is_complete=True,
        quote_name=quote_name or state.quote_name or default_quote_name(state.tradecraft_job_type),
    )


def reset_state() -> ConversationState:
    """Fresh state for "start new quote", ready for job selection."""
    return ConversationState(phase=Phase.JOB_SELECTION)


def start_scoping(state: ConversationState, doc: TradecraftDoc) -> ConversationState:
    """Load a knowledge document and seed its scoping questions.

    Once a job type is set, its questions, answers and index are kept until
    a reset: the same document only refreshes the narrative and a different
    one is ignored.
    """
    if state.tradecraft_job_type is not None:
        if state.tradecraft_job_type != doc.job_type or state.tradecraft_context == doc.content:
            return state
        return _update(state, tradecraft_context=doc.content)

    changes = {
        "tradecraft_context": doc.content,
        "tradecraft_job_type": doc.job_type,
    }
    if doc.scoping_questions:
        changes.update(
            scoping_questions=list(doc.scoping_questions),
            current_question_index=0,
            scoping_answers={},
            phase=advance_phase(state.phase, Phase.SCOPING),
        )
    return _update(state, **changes)


def record_scoping_answer(state: ConversationState, answer: str) -> ConversationState:
    """Store the answer to the current question and advance the pointer."""
    question = state.current_question
    if question is None:
        return state
    answers = dict(state.scoping_answers or {})
    answers[question.store_as] = answer
    return _update(
        state,
        scoping_answers=answers,
        current_question_index=min(
            (state.current_question_index or 0) + 1,
            len(state.scoping_questions or []),
        ),
    )


@dataclass
class QuoteTotals:
    """Money totals for a quote."""

    materials_subtotal: float
    markup_amount: float
    labor_total: float

    @property
    def grand_total(self) -> float:
        return self.materials_subtotal + self.markup_amount + self.labor_total


def compute_totals(state: ConversationState, markup_percent: Optional[float] = None) -> QuoteTotals:
    """Materials subtotal, markup amount, labor total (grand total derived)."""
    percent = markup_percent if markup_percent is not None else (state.markup_percent or 0)
    materials = sum(item.line_total for item in state.quote_items.values())
    return QuoteTotals(
        materials_subtotal=materials,
        markup_amount=materials * percent / 100,
        labor_total=(state.labor_hours or 0) * (state.labor_rate or 0),
    )


def format_quote_summary(state: ConversationState) -> str:
    """Markdown summary of items, totals, labor and grand total."""
    totals = compute_totals(state)
    lines = ["## Quote Summary", ""]

    if state.quote_name:
        lines.append(f"**Quote Name:** {state.quote_name}")
    if state.client_name:
        lines.append(f"**Client:** {state.client_name}")

    lines.append("")
    lines.append(f"### Materials ({len(state.quote_items)} items)")
    for item in state.quote_items.values():
        lines.append(
            f"- {format_number(item.qty)}x {item.name} @ ${item.unit_price:.2f} = ${item.line_total:.2f}"
        )
    lines.append("")
    lines.append(f"**Materials Subtotal:** ${totals.materials_subtotal:.2f}")

    if state.markup_percent:
        lines.append(f"**Markup ({format_number(state.markup_percent)}%):** ${totals.markup_amount:.2f}")

    if state.labor_hours and state.labor_rate:
        lines.append("")
        lines.append("### Labor")
        lines.append(
            f"{format_number(state.labor_hours)} hours @ ${format_number(state.labor_rate)}/hr"
            f" = ${totals.labor_total:.2f}"
        )

    lines.append("")
    lines.append(f"### Total: ${totals.grand_total:.2f}")
    return "\n".join(lines)
