"""LLM service for Drew.

Provides the LangChain/OpenAI chat model used by the tool-calling
orchestrator and the trade expert agents.
"""

import json
from typing import Dict, Any, Optional, List, Sequence
import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from config.settings import settings
from config.errors import LLMError, ErrorCode

logger = structlog.get_logger()


def _to_llm_error(error: Exception) -> LLMError:
    """Map a provider exception onto an LLMError with a specific code."""
    error_msg = str(error)
    lowered = error_msg.lower()

    if "rate_limit" in lowered or "rate limit" in lowered:
        return LLMError(
            "OpenAI rate limit exceeded",
            code=ErrorCode.LLM_RATE_LIMIT,
            details={"original_error": error_msg}
        )
    if "context_length" in lowered or "maximum context" in lowered:
        return LLMError(
            "Input too long for model context",
            code=ErrorCode.LLM_CONTEXT_TOO_LONG,
            details={"original_error": error_msg}
        )
    return LLMError(
        f"LLM generation failed: {error_msg}",
        details={"original_error": error_msg}
    )


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code block from model output."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


class LLMService:
    """Service for LLM operations using LangChain.

    Wraps ChatOpenAI with token tracking and error mapping. The client is
    built with ``max_retries=0``: a provider failure is fatal for the turn.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
            max_tokens: Response token cap (default from settings).
            timeout: Per-call timeout in seconds (default from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.timeout = timeout or settings.llm_timeout_seconds

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=0
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    def _track_usage(self, response: BaseMessage) -> int:
        metadata = getattr(response, "response_metadata", None) or {}
        usage = metadata.get("token_usage") or {}
        tokens_used = usage.get("total_tokens", 0) or 0
        self._total_tokens_used += tokens_used
        return tokens_used

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.

        Raises:
            LLMError: If LLM call fails.
        """
        try:
            kwargs = {}
            if max_tokens:
                kwargs["max_tokens"] = max_tokens

            response = await self.client.ainvoke(messages, **kwargs)
        except Exception as e:
            raise _to_llm_error(e)

        tokens_used = self._track_usage(response)
        content = response.content if isinstance(response.content, str) else ""

        logger.info(
            "llm_generated",
            model=self.model,
            tokens_used=tokens_used,
            content_length=len(content)
        )

        return {
            "content": content,
            "tokens_used": tokens_used
        }

    async def invoke_with_tools(
        self,
        messages: List[BaseMessage],
        tools: Sequence[Dict[str, Any]]
    ) -> AIMessage:
        """Call the chat model with a tool manifest bound.

        Args:
            messages: System prompt followed by the conversation history.
            tools: OpenAI function-calling tool schemas.

        Returns:
            The model's AIMessage (text and/or ``tool_calls``).

        Raises:
            LLMError: If the provider call fails.
        """
        try:
            response = await self.client.bind_tools(list(tools)).ainvoke(messages)
        except Exception as e:
            raise _to_llm_error(e)

        tokens_used = self._track_usage(response)
        logger.info(
            "llm_tool_call_completed",
            model=self.model,
            tokens_used=tokens_used,
            tool_calls=[call.get("name") for call in (response.tool_calls or [])]
        )
        return response

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response with system prompt.

        Args:
            system_prompt: System prompt for context.
            user_message: User message/query.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.
        """
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_message)
        ]
        return await self.generate(messages, max_tokens)

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a JSON response.

        Adds JSON formatting instructions to the system prompt.

        Returns:
            Dict with parsed JSON content and token usage.

        Raises:
            LLMError: With code LLM_INVALID_JSON if the response is not
                valid JSON (the raw text is kept in details["raw_content"]).
        """
        json_prompt = f"""{system_prompt}

IMPORTANT: You MUST respond with valid JSON only. No markdown, no explanation, just JSON."""

        result = await self.generate_with_system_prompt(
            json_prompt,
            user_message,
            max_tokens
        )

        try:
            parsed = json.loads(strip_code_fences(result["content"]))
        except json.JSONDecodeError as e:
            raise LLMError(
                "LLM did not return valid JSON",
                code=ErrorCode.LLM_INVALID_JSON,
                details={
                    "parse_error": str(e),
                    "raw_content": result["content"][:500]
                }
            )

        if not isinstance(parsed, dict):
            raise LLMError(
                "LLM returned JSON that is not an object",
                code=ErrorCode.LLM_INVALID_JSON,
                details={"raw_content": result["content"][:500]}
            )

        return {
            "content": parsed,
            "tokens_used": result["tokens_used"]
        }
