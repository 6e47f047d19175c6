"""Trade expert agents for Drew.

Single-shot "master tradesperson" calls that return JSON. They add judgement
where fixed tables run out: interpreting a free-form job description,
clarifying an answer that matched none of the offered options and
adjusting a base materials checklist from the scoping answers.
"""

import json
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from config.settings import settings
from config.errors import ErrorCode, LLMError
from models.tradecraft import AdjustmentAction, ChecklistAdjustment, ChecklistItem, Trade
from services.llm_service import LLMService

logger = structlog.get_logger()


# =============================================================================
# Types
# =============================================================================


class TradeTask(str, Enum):
    """What the expert is asked to do."""

    INTERPRET_JOB = "interpret_job"
    CLARIFY_INPUT = "clarify_input"
    ADJUST_CHECKLIST = "adjust_checklist"


class TradeAgentContext(BaseModel):
    """Conversation context handed to the expert."""

    current_state: Optional[str] = Field(default=None, alias="currentState")
    previous_question: Optional[str] = Field(default=None, alias="previousQuestion")
    question_options: List[str] = Field(default_factory=list, alias="questionOptions")
    scoping_answers: Dict[str, str] = Field(default_factory=dict, alias="scopingAnswers")
    available_job_types: Optional[List[str]] = Field(default=None, alias="availableJobTypes")
    base_checklist: List[ChecklistItem] = Field(default_factory=list, alias="baseChecklist")
    job_type: Optional[str] = Field(default=None, alias="jobType")

    class Config:
        populate_by_name = True


class TradeAgentRequest(BaseModel):
    trade: Trade
    task: TradeTask
    user_input: str = Field(default="", alias="userInput")
    context: TradeAgentContext = Field(default_factory=TradeAgentContext)

    class Config:
        populate_by_name = True


class TradeAgentResponse(BaseModel):
    """Expert answer; ``message`` is always safe to show the user."""

    success: bool
    job_type: Optional[str] = Field(default=None, alias="jobType")
    confidence: Optional[str] = None
    clarified_intent: Optional[str] = Field(default=None, alias="clarifiedIntent")
    suggested_action: Optional[str] = Field(default=None, alias="suggestedAction")
    adjustments: Optional[List[ChecklistAdjustment]] = None
    message: Optional[str] = None
    quick_replies: Optional[List[str]] = Field(default=None, alias="quickReplies")

    class Config:
        populate_by_name = True


class JobTypeMatch(NamedTuple):
    job_type: str
    confidence: str


# =============================================================================
# Prompts
# =============================================================================

_STYLE = """Communication style:
- Brief and practical (1-2 sentences max)
- Speak like a fellow tradesperson
- Never say "Great question!" or be overly enthusiastic
- Be confident but not cocky"""

MASTER_ELECTRICIAN_PROMPT = f"""You are a Master Electrician with 20+ years of residential and commercial experience.
You know the NEC code inside and out. You help contractors build accurate quotes.

Your expertise includes:
- Residential: Panel upgrades, EV chargers, lighting, outlets, ceiling fans
- Commercial: 3-phase, sub-panels, dedicated circuits
- Code: NEC requirements, permits, inspections
- Safety: Wire sizing, load calculations, grounding

{_STYLE}"""

MASTER_PLUMBER_PROMPT = f"""You are a Master Plumber with 20+ years of residential and commercial experience.
You know the IPC code inside and out. You help contractors build accurate quotes.

Your expertise includes:
- Residential: Water heaters, fixtures, re-pipes, drains
- Commercial: Backflow, grease traps, medical gas
- Code: IPC requirements, permits, inspections
- Safety: Venting, pressure testing, gas lines

{_STYLE}"""

MASTER_BUILDER_PROMPT = f"""You are a Master Builder/General Contractor with 20+ years of residential experience.
You handle framing, drywall, finishing, and general construction.

Your expertise includes:
- Framing: Walls, headers, structural repairs
- Drywall: Installation, finishing, repairs
- Finishing: Trim, doors, cabinets, flooring
- General: Decks, fences, siding, roofing basics

{_STYLE}"""

# TODO: dedicated HVAC and roofing personas; both use the builder for now
TRADE_PROMPTS: Dict[str, str] = {
    Trade.ELECTRICAL.value: MASTER_ELECTRICIAN_PROMPT,
    Trade.PLUMBING.value: MASTER_PLUMBER_PROMPT,
    Trade.GENERAL.value: MASTER_BUILDER_PROMPT,
    Trade.HVAC.value: MASTER_BUILDER_PROMPT,
    Trade.ROOFING.value: MASTER_BUILDER_PROMPT,
}

ELECTRICAL_JOB_TYPES: List[Dict[str, Any]] = [
    {"id": "panel_upgrade", "keywords": ["panel", "sub-panel", "subpanel", "200 amp", "200a", "upgrade panel",
                                         "service upgrade", "main panel", "breaker box", "fuse box"]},
    {"id": "ev_charger", "keywords": ["ev charger", "electric vehicle", "tesla charger", "car charger",
                                      "level 2 charger", "nema 14-50"]},
    {"id": "recessed_lighting", "keywords": ["recessed", "can lights", "pot lights", "downlights", "ceiling lights"]},
    {"id": "outlet_circuit", "keywords": ["outlet", "receptacle", "plug", "circuit", "dedicated circuit"]},
    {"id": "ceiling_fan", "keywords": ["ceiling fan", "fan install", "fan installation"]},
    {"id": "generator", "keywords": ["generator", "whole house generator", "backup power", "transfer switch"]},
    {"id": "hot_tub", "keywords": ["hot tub", "spa", "jacuzzi", "240v outdoor"]},
    {"id": "smoke_detectors", "keywords": ["smoke detector", "smoke alarm", "co detector", "carbon monoxide"]},
    {"id": "range_dryer_circuit", "keywords": ["range", "dryer", "stove", "oven", "240v outlet", "240 volt",
                                               "50 amp outlet", "30 amp outlet", "dryer outlet", "range outlet"]},
]

TROUBLE_MESSAGE = "I had trouble understanding that. Could you rephrase?"
EMPTY_RESPONSE_MESSAGE = "I didn't get a response. Please try again."


def _interpret_job_prompt(request: TradeAgentRequest) -> str:
    job_types = request.context.available_job_types or [job["id"] for job in ELECTRICAL_JOB_TYPES]
    options = "\n".join(f"- {job_type}" for job_type in job_types)
    return f"""The user said: "{request.user_input}"

Your task: Identify what type of {Trade(request.trade).value} job they're describing.

Available job types:
{options}

Respond with JSON:
{{
  "jobType": "the matching job type ID or null if unclear",
  "confidence": "high" | "medium" | "low",
  "message": "brief acknowledgment to the user (e.g., 'Panel upgrade, got it.')",
  "quickReplies": ["array of 2-4 follow-up options if confidence is low"]
}}

If you can't determine the job type, set jobType to null and ask a clarifying question in the message."""


def _clarify_input_prompt(request: TradeAgentRequest) -> str:
    context = request.context
    return f"""The user said: "{request.user_input}"

Context:
- Current state: {context.current_state or 'unknown'}
- Previous question: "{context.previous_question or 'none'}"
- Options offered: {', '.join(context.question_options) or 'none'}
- Previous answers: {json.dumps(context.scoping_answers)}

Your task: Understand what the user meant and suggest how to proceed.
If they meant one of the options offered, set clarifiedIntent to that option exactly and suggestedAction to "continue".

Respond with JSON:
{{
  "clarifiedIntent": "what you think they meant",
  "suggestedAction": "continue" | "rephrase_question" | "skip_question" | "go_back",
  "message": "brief response to the user",
  "quickReplies": ["2-4 helpful options"]
}}"""


def _adjust_checklist_prompt(request: TradeAgentRequest) -> str:
    context = request.context
    answers = "\n".join(f"- {key}: {value}" for key, value in context.scoping_answers.items())
    checklist = "\n".join(
        f"- {item.name} ({item.category}): qty {item.default_qty:g} {item.unit}"
        for item in context.base_checklist
    )
    return f"""Job type: {context.job_type or 'unknown'}

Scoping answers from the customer:
{answers}

Current materials checklist:
{checklist}

Your task: Based on the scoping answers, suggest adjustments to the checklist.

Common adjustments to consider:
- Long wire runs (50+ ft): Upsize wire gauge for voltage drop
- Panel full: Add sub-panel or tandem breakers
- Exterior/outdoor: Add weatherproof boxes, outdoor-rated materials
- Vaulted ceiling: Add angled mount adapters
- No attic access: More labor, may need surface conduit
- Multiple units: Increase quantities accordingly

Respond with JSON:
{{
  "adjustments": [
    {{
      "action": "add" | "remove" | "modify",
      "category": "category name for the item",
      "name": "item name (for add/modify)",
      "reason": "brief explanation",
      "searchTerms": ["search", "terms"],
      "defaultQty": 1,
      "unit": "ea"
    }}
  ],
  "message": "brief summary of changes (or 'No adjustments needed' if none)"
}}

Only suggest adjustments that are clearly needed based on the answers. If the standard checklist is fine, return an empty adjustments array."""


PROMPT_BUILDERS = {
    TradeTask.INTERPRET_JOB: _interpret_job_prompt,
    TradeTask.CLARIFY_INPUT: _clarify_input_prompt,
    TradeTask.ADJUST_CHECKLIST: _adjust_checklist_prompt,
}


# =============================================================================
# Agent
# =============================================================================


class TradeAgent:
    """Calls a trade expert persona on the smaller, cheaper model."""

    def __init__(self, llm_service: Optional[LLMService] = None):
        self._llm = llm_service

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            self._llm = LLMService(
                model=settings.trade_agent_model,
                max_tokens=settings.trade_agent_max_tokens,
            )
        return self._llm

    async def call(self, request: TradeAgentRequest) -> TradeAgentResponse:
        """Run one expert task.

        Never raises: provider failures become ``success=False`` with a
        user-safe message, and output that is not JSON is passed through as
        a low-confidence message.
        """
        system_prompt = TRADE_PROMPTS.get(Trade(request.trade).value)
        user_prompt = PROMPT_BUILDERS[TradeTask(request.task)](request)

        logger.info(
            "trade_agent_call",
            trade=request.trade,
            task=request.task,
            user_input=request.user_input[:50]
        )

        try:
            result = await self.llm.generate_json(system_prompt, user_prompt)
        except LLMError as e:
            if e.code != ErrorCode.LLM_INVALID_JSON:
                logger.error("trade_agent_failed", trade=request.trade, task=request.task, error=e.message)
                return TradeAgentResponse(success=False, message=TROUBLE_MESSAGE)

            raw = (e.details.get("raw_content") or "").strip()
            if not raw:
                logger.warning("trade_agent_empty_response", trade=request.trade, task=request.task)
                return TradeAgentResponse(success=False, message=EMPTY_RESPONSE_MESSAGE)

            logger.warning("trade_agent_invalid_json", trade=request.trade, task=request.task)
            return TradeAgentResponse(success=True, message=raw[:200], confidence="low")

        content = result["content"]
        content.pop("success", None)
        try:
            response = TradeAgentResponse.model_validate({"success": True, **content})
        except PydanticValidationError as e:
            logger.warning("trade_agent_unexpected_shape", task=request.task, error=str(e))
            message = content.get("message")
            return TradeAgentResponse(
                success=True,
                message=message if isinstance(message, str) else json.dumps(content)[:200],
                confidence="low",
            )

        logger.info("trade_agent_response", task=request.task, confidence=response.confidence)
        return response

    async def adjust_checklist(
        self,
        checklist: List[ChecklistItem],
        scoping_answers: Dict[str, str],
        job_type: Optional[str] = None,
        trade: Trade = Trade.ELECTRICAL
    ) -> List[ChecklistItem]:
        """Base checklist with the expert's adjustments applied.

        Returns the checklist unchanged when the expert fails or suggests
        nothing.
        """
        response = await self.call(TradeAgentRequest(
            trade=trade,
            task=TradeTask.ADJUST_CHECKLIST,
            user_input="",
            context=TradeAgentContext(
                scoping_answers=scoping_answers,
                base_checklist=checklist,
                job_type=job_type,
            ),
        ))
        if not response.success or not response.adjustments:
            return checklist

        logger.info("checklist_adjusted", job_type=job_type, adjustments=len(response.adjustments))
        return apply_checklist_adjustments(checklist, response.adjustments)


# =============================================================================
# Helpers
# =============================================================================


def apply_checklist_adjustments(
    checklist: List[ChecklistItem],
    adjustments: List[ChecklistAdjustment]
) -> List[ChecklistItem]:
    """Apply add/remove/modify adjustments, returning a new list."""
    if not adjustments:
        return checklist

    result = list(checklist)
    for adjustment in adjustments:
        action = AdjustmentAction(adjustment.action)

        if action == AdjustmentAction.ADD:
            if any(item.category == adjustment.category for item in result):
                continue
            name = adjustment.name or adjustment.category
            result.append(ChecklistItem(
                category=adjustment.category,
                name=name,
                search_terms=adjustment.search_terms or [name],
                default_qty=adjustment.default_qty or 1,
                unit=adjustment.unit or "ea",
                required=False,
                notes=adjustment.reason,
            ))

        elif action == AdjustmentAction.REMOVE:
            result = [item for item in result if item.category != adjustment.category]

        elif action == AdjustmentAction.MODIFY:
            result = [
                item.model_copy(update={
                    "default_qty": (
                        adjustment.default_qty if adjustment.default_qty is not None else item.default_qty
                    ),
                    "name": adjustment.name or item.name,
                    "notes": adjustment.reason,
                })
                if item.category == adjustment.category else item
                for item in result
            ]

    return result


def quick_match_job_type(text: str) -> Optional[JobTypeMatch]:
    """Keyword match against the electrical job types.

    High confidence when the keyword is the whole input or a leading or
    trailing word, medium when it is merely contained.
    """
    normalized = (text or "").strip().lower()
    if not normalized:
        return None

    for job in ELECTRICAL_JOB_TYPES:
        for keyword in job["keywords"]:
            if keyword not in normalized:
                continue
            if (
                normalized == keyword
                or normalized.startswith(keyword + " ")
                or normalized.endswith(" " + keyword)
            ):
                return JobTypeMatch(job["id"], "high")
            return JobTypeMatch(job["id"], "medium")

    return None
