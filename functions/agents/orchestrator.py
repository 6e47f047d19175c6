"""Turn Orchestrator for Drew.

Runs one conversation turn: the deterministic phase router first, then,
when it does not handle the message, a bounded tool-calling loop against
the chat model.
"""

import time
from typing import Any, Dict, List, Optional, Tuple

import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from config.settings import settings
from agents import phrases
from agents import quote_state
from agents.phase_router import PhaseRouter, RouteOutcome, match_quick_reply
from agents.quick_replies import parse_quick_replies
from agents.response_formatter import build_response
from agents.tool_executors import ToolContext, build_tool_context, execute_tool
from agents.trade_agents import (
    TradeAgent,
    TradeAgentContext,
    TradeAgentRequest,
    TradeTask,
    quick_match_job_type,
)
from models.conversation import ContentBlock, ConversationState, Message, Phase, Role, UserSettings
from models.drew_response import DrewRequest, DrewResponse
from models.tradecraft import Trade
from services.llm_service import LLMService
from services.material_search_service import MaterialSearchService
from services.tradecraft_service import TradecraftService
from tools.drew_tools import openai_tool_schemas
from utils.turn_logger import (
    log_turn_start,
    log_route_decision,
    log_tool_executed,
    log_iterations_exhausted,
    log_turn_complete,
)

logger = structlog.get_logger()


DREW_SYSTEM_PROMPT = """You are Drew, an expert construction estimating assistant built into the QuoteCat app. You help contractors build accurate, professional quotes.

## Your Personality
- You're a fellow tradesperson, not a computer
- Keep responses brief and practical (1-3 sentences max unless explaining materials)
- Use casual language: "Got it", "Nice", "Let's do this"
- Never say "Great question!" or "I'd be happy to help!"
- Be confident but not cocky

## Your Capabilities
You have access to tools that let you:
1. Search tradecraft knowledge for job-specific guidance
2. Look up real material prices from the user's pricebook and the product catalog
3. Build the quote by adding items
4. Get and confirm labor hours, rates, and markup
5. Finalize the quote when the user is done

## How You Work
1. When a user describes a job, FIRST search the tradecraft knowledge base to get expert guidance
2. Use the tradecraft doc to ask the RIGHT scoping questions in the RIGHT order
3. When you understand the scope, call propose_checklist to show the user what material CATEGORIES they need
4. Wait for the user to confirm the checklist (they can uncheck items they already have)
5. After checklist is confirmed, look up specific products for the confirmed categories
6. Confirm labor hours with the user (propose based on tradecraft, let them adjust)
7. Confirm markup percentage
8. When user says "review quote" or similar, call get_quote_summary to show totals
9. When the user confirms the summary looks good, call finalize_quote with a descriptive quote name
10. After finalizing, let them know they can add custom items when they edit the quote

## Removing Items
If the user says items don't belong, are wrong, or need to be cleaned up:
- Call remove_quote_items with the item names to remove
- Be aggressive about removing clearly wrong items (e.g., "faucet" in an electrical job)
- After removing, show what's left with get_quote_summary

## Important Rules
- ALWAYS search tradecraft first for any job type - this is your expertise
- ONE THING PER MESSAGE:
  - If showing products: ONLY say "Here are the products" - do NOT ask about labor or anything else
  - If asking about labor: ONLY ask about labor - do NOT mention materials
  - If showing summary: ONLY show summary - do NOT ask "want to finalize?" in same message
  - Never bundle multiple questions or actions together
- Ask scoping questions ONE AT A TIME, not all at once
- ALWAYS use propose_checklist BEFORE lookup_materials - let user confirm categories first
- When you don't know something, ask - don't assume
- Propose labor hours based on tradecraft, but always confirm with user
- Keep the conversation moving - don't over-explain
- For specialty items not in the catalog, tell user they can add them on the quote edit screen
- After completing an action (adding items, setting labor, etc), WAIT for user response before asking the next question

## Quick Replies
When you ask a question, ALWAYS include 2-4 likely answers as quick reply buttons. Put them at the END of your message in this exact format:

[QUICK_REPLIES: "Option 1", "Option 2", "Option 3"]

Examples:
- Asking about amperage: [QUICK_REPLIES: "100A", "150A", "60A or fuse box"]
- Asking about reason for upgrade: [QUICK_REPLIES: "EV charger", "General capacity", "Selling home", "New HVAC"]
- Asking about panel location: [QUICK_REPLIES: "Garage", "Basement", "Exterior", "Interior"]
- Asking about labor hours: [QUICK_REPLIES: "Sounds right", "Add more time", "Less time needed"]
- Asking about markup: [QUICK_REPLIES: "20%", "25%", "30%"]

The quick replies should be SHORT (1-4 words each) and directly answer your question. This helps users respond quickly on mobile.

## Your Current Context
{tradecraft_context}"""


def _format_setting(value: Optional[float]) -> str:
    return quote_state.format_number(value) if value else "not set"


def build_system_prompt(state: ConversationState, user_settings: UserSettings) -> str:
    """System prompt with the loaded tradecraft and the user's defaults."""
    if state.tradecraft_context:
        context = f"You have loaded the following tradecraft guidance:\n\n{state.tradecraft_context}"
    else:
        context = "No tradecraft loaded yet. Search the knowledge base when the user describes a job."
    prompt = DREW_SYSTEM_PROMPT.replace("{tradecraft_context}", context)

    if user_settings.default_labor_rate is not None or user_settings.default_markup_percent is not None:
        prompt += (
            f"\n\nUser defaults: Labor rate: ${_format_setting(user_settings.default_labor_rate)}/hr, "
            f"Markup: {_format_setting(user_settings.default_markup_percent)}%"
        )
    return prompt


def to_langchain_messages(messages: List[Message]) -> List[BaseMessage]:
    """Convert the conversation log into chat model messages.

    tool_use blocks become AIMessage tool calls and tool_result blocks
    become ToolMessages answering them.
    """
    converted: List[BaseMessage] = []
    for message in messages:
        if isinstance(message.content, str):
            if message.role == Role.ASSISTANT.value:
                converted.append(AIMessage(content=message.content))
            else:
                converted.append(HumanMessage(content=message.content))
            continue

        text = "\n".join(block.text for block in message.content if block.type == "text" and block.text)

        if message.role == Role.ASSISTANT.value:
            tool_calls = [
                {"name": block.name, "args": block.input or {}, "id": block.id, "type": "tool_call"}
                for block in message.content
                if block.type == "tool_use"
            ]
            converted.append(AIMessage(content=text, tool_calls=tool_calls))
            continue

        for block in message.content:
            if block.type == "tool_result":
                converted.append(ToolMessage(content=block.content or "", tool_call_id=block.tool_use_id))
        if text:
            converted.append(HumanMessage(content=text))

    return converted


def _response_text(response: AIMessage) -> str:
    content = response.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class DrewOrchestrator:
    """Runs conversation turns.

    Flow per turn:
    1. Deterministic phase router (no model call)
    2. If unhandled: trade expert assist for a free-form job description or
       a scoping answer that matched no option
    3. Otherwise: tool-calling loop, at most ``max_iterations`` model calls
    4. Final text stripped of its quick-reply directive and formatted
    """

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        tradecraft_service: Optional[TradecraftService] = None,
        material_search: Optional[MaterialSearchService] = None,
        trade_agent: Optional[TradeAgent] = None,
        max_iterations: Optional[int] = None,
        trade_assist: Optional[bool] = None
    ):
        """Initialize DrewOrchestrator.

        Args:
            llm_service: Chat model service (created lazily if omitted).
            tradecraft_service: Knowledge-base lookups.
            material_search: Pricebook and catalog search.
            trade_agent: Trade expert for job interpretation, answer
                clarification and checklist adjustments.
            max_iterations: Model call cap per turn.
            trade_assist: Consult the trade expert before the tool loop
                (defaults to TRADE_AGENT_ASSIST_ENABLED).
        """
        self._llm = llm_service
        self.tradecraft = tradecraft_service or TradecraftService()
        self.materials = material_search or MaterialSearchService()
        self.trade_assist = settings.trade_agent_assist_enabled if trade_assist is None else trade_assist
        self.trade_agent = trade_agent or (TradeAgent() if self.trade_assist else None)
        self.max_iterations = max_iterations or settings.agent_max_iterations
        self.router = PhaseRouter(self.tradecraft, self.materials)

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            self._llm = LLMService()
        return self._llm

    async def run_turn(self, request: DrewRequest, user_id: Optional[str] = None) -> DrewResponse:
        """Process one turn.

        Args:
            request: User message, prior state and user settings.
            user_id: Authenticated user, enables pricebook lookups.

        Returns:
            The response for the client, including the new state.

        Raises:
            LLMError: If the chat model call fails.
        """
        state = request.state or ConversationState()
        start_time = time.time()
        log_turn_start(request.user_message, state.phase, user_id)

        outcome = await self.router.route(request.user_message, state, request.user_settings, user_id)
        if not outcome.handled:
            outcome = await self._expert_assist(
                request.user_message.strip(), outcome.state, request.user_settings, user_id
            )
        log_route_decision(outcome.handler, state.phase)

        if outcome.handled:
            response = outcome.response
            log_turn_complete(
                phase=response.state.phase,
                iterations=0,
                quote_items=len(response.state.quote_items),
                display_type=response.display.type if response.display else None,
            )
            return response

        response, iterations = await self._run_agent(
            request.user_message.strip(), outcome.state, request.user_settings, user_id
        )
        logger.info(
            "agent_turn_finished",
            iterations=iterations,
            duration_ms=int((time.time() - start_time) * 1000)
        )
        return response

    async def _expert_assist(
        self,
        user_message: str,
        state: ConversationState,
        user_settings: UserSettings,
        user_id: Optional[str]
    ) -> RouteOutcome:
        """Let the trade expert settle what the fixed tables could not.

        Returns an unhandled outcome (state as given, or with a recorded
        answer) when the tool loop should run.
        """
        if not self.trade_assist or self.trade_agent is None or not user_message:
            return RouteOutcome(state=state)

        if state.phase == Phase.JOB_SELECTION.value and state.tradecraft_job_type is None:
            return await self._interpret_job(user_message, state)

        if state.phase == Phase.SCOPING.value and state.current_question is not None:
            return await self._clarify_scoping_answer(user_message, state, user_settings, user_id)

        return RouteOutcome(state=state)

    async def _interpret_job(self, user_message: str, state: ConversationState) -> RouteOutcome:
        match = quick_match_job_type(user_message)
        job_type = match.job_type if match else None
        acknowledgement = None

        if job_type is None:
            expert = await self.trade_agent.call(TradeAgentRequest(
                trade=Trade.ELECTRICAL,
                task=TradeTask.INTERPRET_JOB,
                user_input=user_message,
            ))
            if not expert.success or not expert.job_type:
                return RouteOutcome(state=state)
            job_type, acknowledgement = expert.job_type, expert.message

        doc = await self.tradecraft.get_by_job_type(job_type)
        if doc is None or not doc.scoping_questions:
            logger.info("interpreted_job_without_scoping", job_type=job_type)
            return RouteOutcome(state=state)

        new_state = quote_state.start_scoping(state, doc)
        first = new_state.current_question
        lead = acknowledgement or f"{doc.title}, got it."
        message = f"{lead} {first.question}"
        new_state = quote_state.append_messages(new_state, ("user", user_message), ("assistant", message))

        logger.info("job_type_interpreted", job_type=job_type, source="keywords" if match else "trade_agent")
        return RouteOutcome(
            state=new_state,
            handler="interpret_job",
            response=DrewResponse(message=message, state=new_state, quick_replies=list(first.quick_replies)),
        )

    async def _clarify_scoping_answer(
        self,
        user_message: str,
        state: ConversationState,
        user_settings: UserSettings,
        user_id: Optional[str]
    ) -> RouteOutcome:
        question = state.current_question
        expert = await self.trade_agent.call(TradeAgentRequest(
            trade=Trade.ELECTRICAL,
            task=TradeTask.CLARIFY_INPUT,
            user_input=user_message,
            context=TradeAgentContext(
                current_state=state.phase,
                previous_question=question.question,
                question_options=question.quick_replies,
                scoping_answers=state.scoping_answers or {},
            ),
        ))
        if not expert.success or expert.suggested_action != "continue" or not expert.clarified_intent:
            return RouteOutcome(state=state)

        answer = match_quick_reply(expert.clarified_intent, question.quick_replies)
        if answer is None:
            return RouteOutcome(state=state)

        logger.info("scoping_answer_clarified", question_id=question.id, answer=answer)
        outcome = await self.router.route(answer, state, user_settings, user_id)
        if outcome.handled:
            outcome.handler = "clarify_input"
        return outcome

    async def _run_agent(
        self,
        user_message: str,
        state: ConversationState,
        user_settings: UserSettings,
        user_id: Optional[str]
    ) -> Tuple[DrewResponse, int]:
        context = build_tool_context(
            self.tradecraft, self.materials, user_id, user_settings, trade_agent=self.trade_agent
        )
        tools = openai_tool_schemas()
        state = quote_state.append_messages(state, ("user", user_message))

        for iteration in range(1, self.max_iterations + 1):
            prompt = build_system_prompt(state, user_settings)
            messages = [SystemMessage(content=prompt)] + to_langchain_messages(state.messages)

            response = await self.llm.invoke_with_tools(messages, tools)
            text = _response_text(response)

            if response.tool_calls:
                state = await self._execute_tool_calls(context, state, response, text, iteration)
                continue

            clean_text, directive = parse_quick_replies(text)
            state = quote_state.append_messages(state, ("assistant", clean_text))
            result = build_response(clean_text, state, user_settings, directive)

            log_turn_complete(
                phase=state.phase,
                iterations=iteration,
                quote_items=len(state.quote_items),
                display_type=result.display.type if result.display else None,
                tokens_used=self.llm.total_tokens_used,
            )
            return result, iteration

        log_iterations_exhausted(self.max_iterations, state.phase)
        return DrewResponse(
            message=phrases.STUCK_MESSAGE,
            state=state,
            quick_replies=list(phrases.STUCK_QUICK_REPLIES),
        ), self.max_iterations

    async def _execute_tool_calls(
        self,
        context: ToolContext,
        state: ConversationState,
        response: AIMessage,
        text: str,
        iteration: int
    ) -> ConversationState:
        """Run the requested tools in order and log both turns."""
        tool_use: List[ContentBlock] = []
        if text:
            tool_use.append(ContentBlock(type="text", text=text))
        tool_results: List[ContentBlock] = []

        for index, call in enumerate(response.tool_calls):
            call_id = call.get("id") or f"call_{iteration}_{index}"
            args: Dict[str, Any] = call.get("args") or {}

            result = await execute_tool(context, state, call["name"], args)
            state = result.state
            log_tool_executed(call["name"], args, result.text, iteration)

            tool_use.append(ContentBlock(type="tool_use", id=call_id, name=call["name"], input=args))
            tool_results.append(ContentBlock(type="tool_result", tool_use_id=call_id, content=result.text))

        return quote_state.append_messages(state, ("assistant", tool_use), ("user", tool_results))
