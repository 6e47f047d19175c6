"""Deterministic phase router for Drew.

Handles the common, unambiguous turns (quick-reply taps, numeric answers,
affirmations, UI payloads) without a model round-trip. Rules are checked
in a fixed order and the first match wins:

1. reset command
2. ADD_SELECTED payload
3. add all / skip while products are pending
4. job-type phrase while in job_selection
5. scoping answer matching a quick reply
6. checklist confirmation (payload, affirmation, "just the ...")
7. skip checklist
8. labor hours while in labor
9. markup while in markup
10. finalize while in review

Tagged payloads come before natural-language heuristics. Anything that
does not match is left to the orchestrator.
"""

from dataclasses import dataclass
from typing import List, Optional

import structlog
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from config.settings import settings
from agents import phrases
from agents import quote_state
from models.conversation import (
    ConversationState,
    Phase,
    ProductGroup,
    QuoteItem,
    UserSettings,
    WizardProduct,
)
from models.drew_response import AddedItem, Display, DisplayType, DrewResponse
from models.tradecraft import ScopingQuestion
from services.material_search_service import MaterialSearchService, category_filter_for_job_type
from services.tradecraft_service import TradecraftService

logger = structlog.get_logger()


class SelectedProduct(BaseModel):
    """One entry of an ADD_SELECTED payload."""

    id: str
    name: str
    price: float = Field(ge=0)
    unit: Optional[str] = None
    qty: float = Field(ge=0)

    def to_quote_item(self) -> QuoteItem:
        return QuoteItem(product_id=self.id, name=self.name, unit_price=self.price, qty=self.qty, unit=self.unit)


_SELECTED_PRODUCTS = TypeAdapter(List[SelectedProduct])
_CATEGORY_KEYS = TypeAdapter(List[str])


@dataclass
class RouteOutcome:
    """Result of routing one message.

    ``response`` is None when the orchestrator should take over; ``state``
    is then the state to hand it (a matched final scoping answer is
    recorded even when no checklist follows).
    """

    state: ConversationState
    response: Optional[DrewResponse] = None
    handler: Optional[str] = None

    @property
    def handled(self) -> bool:
        return self.response is not None


def match_quick_reply(answer: str, quick_replies: List[str]) -> Optional[str]:
    """Match a typed answer against a question's quick replies.

    Strategies in order: exact (case-insensitive), prefix in either
    direction, then the answer containing the reply.
    """
    normalized = answer.strip().lower()
    if not normalized:
        return None

    for reply in quick_replies:
        if reply.lower() == normalized:
            return reply
    for reply in quick_replies:
        lowered = reply.lower()
        if normalized.startswith(lowered) or lowered.startswith(normalized):
            return reply
    for reply in quick_replies:
        if reply.lower() in normalized:
            return reply
    return None


def _format_added(items: List[QuoteItem]) -> str:
    return ", ".join(f"{quote_state.format_number(item.qty)}x {item.name}" for item in items)


def _added_display(items: List[QuoteItem]) -> Display:
    return Display(
        type=DisplayType.ADDED,
        added_items=[AddedItem(name=item.name, qty=item.qty) for item in items],
    )


class PhaseRouter:
    """Short-circuits unambiguous turns using only the prior state."""

    def __init__(
        self,
        tradecraft_service: TradecraftService,
        material_search: MaterialSearchService,
        products_per_category: Optional[int] = None
    ):
        self.tradecraft = tradecraft_service
        self.materials = material_search
        self.products_per_category = products_per_category or settings.products_per_category

    async def route(
        self,
        message: str,
        state: ConversationState,
        user_settings: UserSettings,
        user_id: Optional[str] = None
    ) -> RouteOutcome:
        text = (message or "").strip()
        lowered = text.lower()

        if not text:
            return self._greeting(state)

        if phrases.RESET_PATTERN.match(text):
            return self._respond("reset", quote_state.reset_state(), phrases.RESTART_MESSAGE,
                                 quick_replies=phrases.JOB_QUICK_REPLIES)

        if text.startswith(phrases.ADD_SELECTED_TAG):
            outcome = self._add_selected(text, state)
            if outcome is not None:
                return outcome

        if state.has_pending_products:
            if phrases.ADD_ALL_PATTERN.match(text):
                return self._add_all(state)
            if phrases.SKIP_PRODUCTS_PATTERN.match(text):
                return self._skip_products(state)

        if (
            state.phase == Phase.JOB_SELECTION.value
            and state.tradecraft_job_type is None
            and lowered in phrases.JOB_TYPE_PHRASES
        ):
            outcome = await self._job_type(text, phrases.JOB_TYPE_PHRASES[lowered], state)
            if outcome is not None:
                return outcome

        if state.phase == Phase.SCOPING.value and state.current_question is not None:
            outcome = await self._scoping_answer(text, state.current_question, state)
            if outcome.handled:
                return outcome
            state = outcome.state

        categories = self._confirmed_categories(text, state)
        if categories is not None:
            return await self._confirm_checklist(categories, state, user_id)

        if state.has_pending_checklist and phrases.SKIP_CHECKLIST_PATTERN.match(text):
            new_state = quote_state.append_messages(
                state.model_copy(update={"pending_checklist": None}),
                ("user", "[Skipped checklist]"),
                ("assistant", "Skipped the materials checklist."),
            )
            return self._respond("skip_checklist", new_state, phrases.SKIPPED_CHECKLIST_MESSAGE,
                                 quick_replies=phrases.SKIPPED_CHECKLIST_QUICK_REPLIES)

        if state.phase == Phase.LABOR.value:
            match = phrases.LABOR_HOURS_PATTERN.match(lowered)
            if match:
                return self._labor(text, float(match.group(1)), state, user_settings)

        if state.phase == Phase.MARKUP.value:
            if phrases.NO_MARKUP_PATTERN.match(text):
                return self._markup(text, 0.0, state)
            match = phrases.MARKUP_PERCENT_PATTERN.match(lowered)
            if match:
                return self._markup(text, float(match.group(1)), state)

        if state.phase == Phase.REVIEW.value and phrases.FINALIZE_PATTERN.match(text):
            new_state = quote_state.finalize_quote(state)
            return self._respond("finalize", new_state, phrases.FINALIZED_MESSAGE,
                                 quick_replies=phrases.FINALIZED_QUICK_REPLIES, user_message=text)

        return RouteOutcome(state=state)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _respond(
        self,
        handler: str,
        state: ConversationState,
        message: str,
        quick_replies: Optional[List[str]] = None,
        display: Optional[Display] = None,
        user_message: Optional[str] = None
    ) -> RouteOutcome:
        """Build the outcome; ``user_message`` also logs the exchange."""
        if user_message is not None:
            state = quote_state.append_messages(state, ("user", user_message), ("assistant", message))
        logger.info("deterministic_route", handler=handler, phase=state.phase)
        return RouteOutcome(
            state=state,
            handler=handler,
            response=DrewResponse(
                message=message,
                state=state,
                display=display,
                quick_replies=list(quick_replies) if quick_replies is not None else None,
            ),
        )

    def _greeting(self, state: ConversationState) -> RouteOutcome:
        new_state = quote_state.append_messages(
            state.model_copy(update={
                "phase": quote_state.advance_phase(state.phase, Phase.JOB_SELECTION),
            }),
            ("assistant", phrases.GREETING_MESSAGE),
        )
        return self._respond("greeting", new_state, phrases.GREETING_MESSAGE,
                             quick_replies=phrases.JOB_QUICK_REPLIES)

    def _add_selected(self, text: str, state: ConversationState) -> Optional[RouteOutcome]:
        payload = text[len(phrases.ADD_SELECTED_TAG):]
        try:
            selected = _SELECTED_PRODUCTS.validate_json(payload)
        except PydanticValidationError as e:
            logger.warning("add_selected_payload_invalid", error=str(e))
            return None

        items = [product.to_quote_item() for product in selected]
        new_state = quote_state.add_quote_items(state, items)
        new_state = new_state.model_copy(update={
            "pending_products": None,
            "phase": quote_state.advance_phase(state.phase, Phase.LABOR),
        })
        new_state = quote_state.append_messages(
            new_state,
            ("user", f"[Selected: {_format_added(items)}]"),
            ("assistant", f"Added {len(items)} item(s) to the quote."),
        )
        return self._respond(
            "add_selected",
            new_state,
            f"Added {len(items)} item(s) to the quote. What's next?",
            quick_replies=phrases.AFTER_ADD_QUICK_REPLIES,
            display=_added_display(items),
        )

    def _add_all(self, state: ConversationState) -> RouteOutcome:
        items = [product.to_quote_item() for product in state.pending_products]
        new_state = quote_state.add_quote_items(state, items)
        new_state = new_state.model_copy(update={
            "pending_products": None,
            "phase": quote_state.advance_phase(state.phase, Phase.LABOR),
        })
        new_state = quote_state.append_messages(
            new_state,
            ("user", f"[Added all: {_format_added(items)}]"),
            ("assistant", f"Added {len(items)} item(s) to the quote."),
        )
        return self._respond(
            "add_all",
            new_state,
            f"Added all {len(items)} item(s) to the quote. Ready to set labor hours?",
            quick_replies=phrases.AFTER_ADD_ALL_QUICK_REPLIES,
            display=_added_display(items),
        )

    def _skip_products(self, state: ConversationState) -> RouteOutcome:
        new_state = quote_state.append_messages(
            state.model_copy(update={"pending_products": None}),
            ("user", "[Skipped materials]"),
            ("assistant", "No problem, skipped those materials."),
        )
        return self._respond("skip_products", new_state, phrases.SKIPPED_PRODUCTS_MESSAGE,
                             quick_replies=phrases.AFTER_ADD_QUICK_REPLIES)

    async def _job_type(self, text: str, job_type: str, state: ConversationState) -> Optional[RouteOutcome]:
        doc = await self.tradecraft.get_by_job_type(job_type)
        if doc is None:
            logger.info("job_type_direct_lookup_miss", job_type=job_type)
            doc = await self.tradecraft.search(job_type)

        if doc is None or not doc.scoping_questions:
            logger.info("job_type_without_scoping", job_type=job_type)
            return None

        new_state = quote_state.start_scoping(state, doc)
        first = new_state.current_question
        return self._respond(
            "job_type",
            new_state,
            f"{doc.title}, got it. {first.question}",
            quick_replies=first.quick_replies,
            user_message=text,
        )

    async def _scoping_answer(
        self,
        text: str,
        question: ScopingQuestion,
        state: ConversationState
    ) -> RouteOutcome:
        matched = match_quick_reply(text, question.quick_replies)
        if matched is None:
            logger.info("scoping_answer_unmatched", question_id=question.id)
            return RouteOutcome(state=state)

        new_state = quote_state.record_scoping_answer(state, matched)
        next_question = new_state.current_question
        if next_question is not None:
            return self._respond(
                "scoping_answer",
                new_state,
                f"{matched}, got it. {next_question.question}",
                quick_replies=next_question.quick_replies,
                user_message=text,
            )

        new_state = new_state.model_copy(update={
            "phase": quote_state.advance_phase(new_state.phase, Phase.CHECKLIST),
        })
        checklist = await self.tradecraft.get_checklist(new_state.tradecraft_job_type or "")
        if not checklist:
            return RouteOutcome(state=new_state)

        new_state = new_state.model_copy(update={"pending_checklist": checklist})
        return self._respond(
            "scoping_complete",
            new_state,
            f"{matched}, got it. Here's what you'll need for this job:",
            quick_replies=[],
            display=Display(type=DisplayType.CHECKLIST, checklist=checklist),
            user_message=text,
        )

    def _confirmed_categories(self, text: str, state: ConversationState) -> Optional[List[str]]:
        """Category keys confirmed by this message, or None if it is not a confirmation."""
        if text.startswith(phrases.CONFIRM_CHECKLIST_TAG):
            try:
                return _CATEGORY_KEYS.validate_json(text[len(phrases.CONFIRM_CHECKLIST_TAG):])
            except PydanticValidationError as e:
                logger.warning("confirm_checklist_payload_invalid", error=str(e))
                return None

        if not state.has_pending_checklist:
            return None

        if phrases.AFFIRMATIVE_PATTERN.match(text):
            return [item.category for item in state.pending_checklist if item.required]

        partial = phrases.PARTIAL_SELECTION_PATTERN.match(text)
        if partial:
            requested = partial.group(3).lower()
            categories = [
                item.category for item in state.pending_checklist
                if requested in item.name.lower() or requested in item.category.lower()
            ]
            return categories or None

        return None

    async def _confirm_checklist(
        self,
        categories: List[str],
        state: ConversationState,
        user_id: Optional[str]
    ) -> RouteOutcome:
        if not state.has_pending_checklist or not categories:
            return self._respond(
                "confirm_checklist",
                state.model_copy(update={"pending_checklist": None}),
                phrases.NO_CATEGORIES_MESSAGE,
                quick_replies=phrases.NO_CATEGORIES_QUICK_REPLIES,
            )

        confirmed = [item for item in state.pending_checklist if item.category in categories]
        category_filter = category_filter_for_job_type(state.tradecraft_job_type)

        # Dedup is global: a product found for an earlier category is not
        # offered again under a later one.
        seen_ids = set()
        groups: List[ProductGroup] = []
        for item in confirmed:
            found = await self.materials.search(item.search_terms, user_id=user_id, category_filter=category_filter)
            unique: List[WizardProduct] = []
            for product in found:
                if product.id in seen_ids:
                    continue
                seen_ids.add(product.id)
                unique.append(WizardProduct(
                    id=product.id,
                    name=product.name,
                    price=product.price,
                    unit=product.unit,
                    retailer=product.retailer,
                    source=product.source,
                    suggested_qty=item.default_qty,
                ))
            if unique:
                groups.append(ProductGroup(
                    category=item.category,
                    category_name=item.name,
                    products=unique[:self.products_per_category],
                ))

        products = [product for group in groups for product in group.products]
        new_state = state.model_copy(update={
            "pending_checklist": None,
            "pending_products": products,
            "phase": quote_state.advance_phase(state.phase, Phase.PRODUCTS),
        })
        new_state = quote_state.append_messages(
            new_state,
            ("user", f"[Confirmed {len(categories)} material categories]"),
            ("assistant", f"Found {len(products)} products across {len(groups)} categories."),
        )
        return self._respond(
            "confirm_checklist",
            new_state,
            f"Found {len(products)} products. Select what you need:",
            quick_replies=phrases.PRODUCT_QUICK_REPLIES,
            display=Display(type=DisplayType.PRODUCTS, products=products, product_groups=groups),
        )

    def _labor(self, text: str, hours: float, state: ConversationState, user_settings: UserSettings) -> RouteOutcome:
        rate = user_settings.default_labor_rate
        if rate is None:
            rate = settings.default_labor_rate
        new_state = quote_state.set_labor(state, hours, rate)
        message = (
            f"{quote_state.format_number(hours)} hours at ${quote_state.format_number(rate)}/hr"
            f" = ${hours * rate:.0f}. What markup percentage?"
        )
        return self._respond("labor", new_state, message,
                             quick_replies=phrases.MARKUP_QUICK_REPLIES, user_message=text)

    def _markup(self, text: str, percent: float, state: ConversationState) -> RouteOutcome:
        new_state = quote_state.set_markup(state, percent)
        totals = quote_state.compute_totals(new_state)
        message = (
            f"{quote_state.format_number(percent)}% markup. "
            f"Total comes to ${totals.grand_total:.0f}. Ready to finalize?"
        )
        return self._respond("markup", new_state, message,
                             quick_replies=phrases.REVIEW_QUICK_REPLIES, user_message=text)
