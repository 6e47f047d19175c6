"""Tool executors for the Drew orchestrator.

Dispatch table keyed by tool name. Each handler takes the turn's
ToolContext, the running state and its validated input model and returns
a ToolResult: the text fed back to the model plus the new state.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from config.settings import settings
from agents import quote_state
from agents.trade_agents import TradeAgent, quick_match_job_type
from models.conversation import ConversationState, Phase, QuoteItem, UserSettings, WizardProduct
from services.material_search_service import MaterialSearchService, category_filter_for_job_type
from services.tradecraft_service import TradecraftService
from tools.drew_tools import (
    DREW_TOOLS_BY_NAME,
    AddQuoteItemsInput,
    FinalizeQuoteInput,
    GetQuoteSummaryInput,
    LookupMaterialsInput,
    ProposeChecklistInput,
    RemoveQuoteItemsInput,
    SearchTradecraftInput,
    SetLaborInput,
    SetMarkupInput,
    SetQuoteInfoInput,
)

logger = structlog.get_logger()


@dataclass
class ToolContext:
    """Per-turn collaborators and caller identity."""

    tradecraft: TradecraftService
    materials: MaterialSearchService
    user_id: Optional[str] = None
    user_settings: UserSettings = field(default_factory=UserSettings)
    trade_agent: Optional[TradeAgent] = None
    checklist_adjustments_enabled: bool = False


@dataclass
class ToolResult:
    text: str
    state: ConversationState


Handler = Callable[[ToolContext, ConversationState, Any], Awaitable[ToolResult]]


# =============================================================================
# Handlers
# =============================================================================


async def _search_tradecraft(
    context: ToolContext,
    state: ConversationState,
    args: SearchTradecraftInput
) -> ToolResult:
    doc = await context.tradecraft.search(args.query, args.trade)

    if doc is None:
        # Keyword fallback for phrasings the embedding search misses
        match = quick_match_job_type(args.query)
        if match is not None:
            logger.info("tradecraft_keyword_fallback", query=args.query, job_type=match.job_type)
            doc = await context.tradecraft.get_by_job_type(match.job_type)

    if doc is None:
        return ToolResult(
            "No specific tradecraft found for this job type. Proceed with general knowledge.",
            state,
        )

    text = f'Found tradecraft document: "{doc.title}"\n\n{doc.content}'

    if state.tradecraft_job_type is not None:
        if state.tradecraft_job_type != doc.job_type:
            return ToolResult(
                f'{text}\n\nThis quote is already for {state.tradecraft_job_type}. '
                'Keep building it, or ask the user to say "start new quote" to switch jobs.',
                state,
            )
        new_state = quote_state.start_scoping(state, doc)
        current = new_state.current_question
        if current is not None:
            text += f'\n\nScoping already in progress. Current question: "{current.question}"'
        return ToolResult(text, new_state)

    new_state = quote_state.start_scoping(state, doc)

    first = new_state.current_question
    if doc.scoping_questions and first is not None:
        text += (
            f"\n\n{len(doc.scoping_questions)} scoping questions loaded. "
            f'First question: "{first.question}"'
        )
        if first.quick_replies:
            options = ", ".join(f'"{reply}"' for reply in first.quick_replies)
            text += f"\nQuick replies: {options}"

    return ToolResult(text, new_state)


async def _propose_checklist(
    context: ToolContext,
    state: ConversationState,
    args: ProposeChecklistInput
) -> ToolResult:
    if state.has_pending_checklist:
        return ToolResult(
            "Checklist already shown. Ask user to confirm the materials checklist, "
            "modify it, or skip. Don't re-propose.",
            state,
        )

    checklist = await context.tradecraft.get_checklist(args.job_type)
    if not checklist:
        return ToolResult(
            f"No materials checklist found for job type: {args.job_type}. Use lookup_materials directly.",
            state,
        )

    if context.checklist_adjustments_enabled and context.trade_agent and state.scoping_answers:
        checklist = await context.trade_agent.adjust_checklist(
            checklist, state.scoping_answers, job_type=args.job_type
        )

    new_state = state.model_copy(update={
        "pending_checklist": checklist,
        "pending_products": None,
        "phase": quote_state.advance_phase(state.phase, Phase.CHECKLIST),
    })

    lines = [f"Materials checklist for {args.job_type}:"]
    for item in checklist:
        line = f"- {item.name} ({quote_state.format_number(item.default_qty)} {item.unit})"
        if item.required:
            line += " [required]"
        if item.notes:
            line += f" - {item.notes}"
        lines.append(line)

    return ToolResult("\n".join(lines), new_state)


async def _lookup_materials(
    context: ToolContext,
    state: ConversationState,
    args: LookupMaterialsInput
) -> ToolResult:
    products = await context.materials.search(
        args.search_terms,
        user_id=context.user_id,
        category_filter=category_filter_for_job_type(state.tradecraft_job_type),
    )

    if not products:
        return ToolResult("No materials found for those search terms.", state)

    pending = [
        WizardProduct(
            id=product.id,
            name=product.name,
            price=product.price,
            unit=product.unit,
            retailer=product.retailer,
            source=product.source,
            suggested_qty=1,
        )
        for product in products
    ]
    new_state = state.model_copy(update={"pending_products": pending})

    lines = ["Found materials:"]
    lines.extend(
        f"- {p.name}: ${p.price:.2f}/{p.unit}{p.source_label()} (ID: {p.id})"
        for p in products
    )
    return ToolResult("\n".join(lines), new_state)


async def _add_quote_items(
    context: ToolContext,
    state: ConversationState,
    args: AddQuoteItemsInput
) -> ToolResult:
    items = [QuoteItem(**item.model_dump()) for item in args.items]
    new_state = quote_state.add_quote_items(state, items)
    return ToolResult(
        f"Added {len(items)} item(s) to quote. Current total: {len(new_state.quote_items)} items.",
        new_state,
    )


async def _remove_quote_items(
    context: ToolContext,
    state: ConversationState,
    args: RemoveQuoteItemsInput
) -> ToolResult:
    new_state, removed = quote_state.remove_quote_items(state, args.product_ids, args.product_names)
    if removed == 0:
        return ToolResult("No matching items found to remove.", new_state)
    return ToolResult(
        f"Removed {removed} item(s) from quote. {len(new_state.quote_items)} items remaining.",
        new_state,
    )


async def _set_labor(
    context: ToolContext,
    state: ConversationState,
    args: SetLaborInput
) -> ToolResult:
    new_state = quote_state.set_labor(state, args.hours, args.rate)
    return ToolResult(
        f"Labor set: {quote_state.format_number(args.hours)} hours @ "
        f"${quote_state.format_number(args.rate)}/hr = ${args.hours * args.rate:.2f}",
        new_state,
    )


async def _set_markup(
    context: ToolContext,
    state: ConversationState,
    args: SetMarkupInput
) -> ToolResult:
    new_state = quote_state.set_markup(state, args.percent)
    return ToolResult(f"Markup set to {quote_state.format_number(args.percent)}%", new_state)


async def _set_quote_info(
    context: ToolContext,
    state: ConversationState,
    args: SetQuoteInfoInput
) -> ToolResult:
    new_state = quote_state.set_quote_info(
        state,
        quote_name=args.quote_name,
        client_name=args.client_name,
        client_email=args.client_email,
        client_phone=args.client_phone,
    )
    return ToolResult("Quote information updated.", new_state)


async def _get_quote_summary(
    context: ToolContext,
    state: ConversationState,
    args: GetQuoteSummaryInput
) -> ToolResult:
    return ToolResult(quote_state.format_quote_summary(state), state)


async def _finalize_quote(
    context: ToolContext,
    state: ConversationState,
    args: FinalizeQuoteInput
) -> ToolResult:
    new_state = quote_state.finalize_quote(state, args.quote_name)
    if args.quote_name:
        return ToolResult(f'Quote finalized as "{args.quote_name}". Ready to save.', new_state)
    return ToolResult("Quote finalized. Ready to save.", new_state)


TOOL_HANDLERS: Dict[str, Handler] = {
    "search_tradecraft": _search_tradecraft,
    "propose_checklist": _propose_checklist,
    "lookup_materials": _lookup_materials,
    "add_quote_items": _add_quote_items,
    "remove_quote_items": _remove_quote_items,
    "set_labor": _set_labor,
    "set_markup": _set_markup,
    "set_quote_info": _set_quote_info,
    "get_quote_summary": _get_quote_summary,
    "finalize_quote": _finalize_quote,
}


def _format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "input"
        parts.append(f"{location}: {detail.get('msg')}")
    return "; ".join(parts)


async def execute_tool(
    context: ToolContext,
    state: ConversationState,
    name: str,
    raw_input: Optional[Dict[str, Any]]
) -> ToolResult:
    """Validate the model's arguments and run the named tool.

    Never raises: unknown tools, invalid arguments and handler failures
    all come back as a textual result with the state unchanged, so the
    model can react to them.
    """
    spec = DREW_TOOLS_BY_NAME.get(name)
    handler = TOOL_HANDLERS.get(name)
    if spec is None or handler is None:
        logger.warning("unknown_tool", tool=name)
        return ToolResult(f"Unknown tool: {name}", state)

    try:
        args: BaseModel = spec.input_model.model_validate(raw_input or {})
    except PydanticValidationError as e:
        logger.warning("tool_input_invalid", tool=name, error=str(e))
        return ToolResult(f"Invalid input for {name}: {_format_validation_error(e)}", state)

    try:
        return await handler(context, state, args)
    except Exception as e:
        logger.error("tool_failed", tool=name, error=str(e), error_type=type(e).__name__)
        return ToolResult(f"Error running {name}: {e}", state)


def build_tool_context(
    tradecraft: TradecraftService,
    materials: MaterialSearchService,
    user_id: Optional[str],
    user_settings: UserSettings,
    trade_agent: Optional[TradeAgent] = None
) -> ToolContext:
    """ToolContext wired with the configured feature flags."""
    enabled = settings.checklist_adjustments_enabled
    return ToolContext(
        tradecraft=tradecraft,
        materials=materials,
        user_id=user_id,
        user_settings=user_settings,
        trade_agent=(trade_agent or TradeAgent()) if enabled else trade_agent,
        checklist_adjustments_enabled=enabled,
    )
