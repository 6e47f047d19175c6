"""Unit tests for LLM service."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from langchain_core.messages import AIMessage, HumanMessage

from config.errors import LLMError, ErrorCode


class TestLLMService:
    """Tests for LLMService."""

    def test_initialization(self):
        """Test LLMService initialization."""
        with patch('services.llm_service.ChatOpenAI'):
            from services.llm_service import LLMService

            service = LLMService(
                model="gpt-4o-mini",
                temperature=0.2,
                api_key="test-key",
                max_tokens=256
            )

            assert service.model == "gpt-4o-mini"
            assert service.temperature == 0.2
            assert service.api_key == "test-key"
            assert service.max_tokens == 256

    def test_default_initialization(self):
        """Test LLMService uses settings defaults."""
        from config.settings import settings
        from services.llm_service import LLMService

        service = LLMService(api_key="test-key")

        assert service.model == settings.llm_model
        assert service.timeout == settings.llm_timeout_seconds

    def test_client_built_without_retries(self):
        """Test the chat model is created lazily with retries disabled."""
        with patch('services.llm_service.ChatOpenAI') as mock_chat:
            from services.llm_service import LLMService

            service = LLMService(model="gpt-4o", temperature=0, api_key="test-key", max_tokens=100, timeout=5)
            mock_chat.assert_not_called()

            _ = service.client

            mock_chat.assert_called_once_with(
                model="gpt-4o",
                temperature=0,
                api_key="test-key",
                max_tokens=100,
                timeout=5,
                max_retries=0
            )

    @pytest.mark.asyncio
    async def test_generate(self, mock_llm_service):
        """Test generate method."""
        messages = [HumanMessage(content="Hello")]

        result = await mock_llm_service.generate(messages)

        assert result["content"] == "Mock response content"
        assert result["tokens_used"] == 100
        assert mock_llm_service.total_tokens_used == 100

    @pytest.mark.asyncio
    async def test_generate_maps_rate_limit(self, mock_llm_service):
        """Test provider rate limits become LLM_RATE_LIMIT."""
        mock_llm_service._client.ainvoke.side_effect = Exception("Error code: 429 - rate_limit_exceeded")

        with pytest.raises(LLMError) as exc_info:
            await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert exc_info.value.code == ErrorCode.LLM_RATE_LIMIT

    @pytest.mark.asyncio
    async def test_generate_maps_context_length(self, mock_llm_service):
        mock_llm_service._client.ainvoke.side_effect = Exception("This model's maximum context length is 128000")

        with pytest.raises(LLMError) as exc_info:
            await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert exc_info.value.code == ErrorCode.LLM_CONTEXT_TOO_LONG

    @pytest.mark.asyncio
    async def test_invoke_with_tools(self, mock_llm_service):
        """Test the tool manifest is bound and usage tracked."""
        reply = AIMessage(
            content="",
            tool_calls=[{"name": "set_markup", "args": {"percent": 20}, "id": "call_1"}],
            response_metadata={"token_usage": {"total_tokens": 30}}
        )
        bound = MagicMock()
        bound.ainvoke = AsyncMock(return_value=reply)
        mock_llm_service._client.bind_tools = MagicMock(return_value=bound)
        tools = [{"type": "function", "function": {"name": "set_markup", "parameters": {}}}]

        result = await mock_llm_service.invoke_with_tools([HumanMessage(content="20%")], tools)

        assert result is reply
        mock_llm_service._client.bind_tools.assert_called_once_with(tools)
        assert mock_llm_service.total_tokens_used == 30

    @pytest.mark.asyncio
    async def test_invoke_with_tools_error(self, mock_llm_service):
        """Test provider failures surface as LLMError."""
        bound = MagicMock()
        bound.ainvoke = AsyncMock(side_effect=Exception("connection reset"))
        mock_llm_service._client.bind_tools = MagicMock(return_value=bound)

        with pytest.raises(LLMError) as exc_info:
            await mock_llm_service.invoke_with_tools([HumanMessage(content="hi")], [])

        assert exc_info.value.code == ErrorCode.LLM_ERROR
        assert "connection reset" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_generate_json(self, mock_llm_service):
        """Test generate_json method."""
        mock_llm_service._client.ainvoke.return_value = MagicMock(
            content='{"jobType": "panel_upgrade", "confidence": "high"}',
            response_metadata={"token_usage": {"total_tokens": 50}}
        )

        result = await mock_llm_service.generate_json(
            system_prompt="Return JSON.",
            user_message="Which job?"
        )

        assert result["content"] == {"jobType": "panel_upgrade", "confidence": "high"}
        assert result["tokens_used"] == 50

    @pytest.mark.asyncio
    async def test_generate_json_handles_markdown(self, mock_llm_service):
        """Test generate_json handles markdown code blocks."""
        mock_llm_service._client.ainvoke.return_value = MagicMock(
            content='```json\n{"result": "success"}\n```',
            response_metadata={"token_usage": {"total_tokens": 50}}
        )

        result = await mock_llm_service.generate_json(
            system_prompt="Return JSON.",
            user_message="Give me JSON."
        )

        assert result["content"]["result"] == "success"

    @pytest.mark.asyncio
    async def test_generate_json_invalid_response(self, mock_llm_service):
        """Test generate_json keeps the raw text of invalid JSON."""
        mock_llm_service._client.ainvoke.return_value = MagicMock(
            content='This is not valid JSON',
            response_metadata={"token_usage": {"total_tokens": 50}}
        )

        with pytest.raises(LLMError) as exc_info:
            await mock_llm_service.generate_json(
                system_prompt="Return JSON.",
                user_message="Give me JSON."
            )

        assert exc_info.value.code == ErrorCode.LLM_INVALID_JSON
        assert exc_info.value.details["raw_content"] == "This is not valid JSON"

    @pytest.mark.asyncio
    async def test_generate_json_rejects_non_object(self, mock_llm_service):
        mock_llm_service._client.ainvoke.return_value = MagicMock(
            content='["a", "b"]',
            response_metadata={"token_usage": {"total_tokens": 5}}
        )

        with pytest.raises(LLMError) as exc_info:
            await mock_llm_service.generate_json("Return JSON.", "List please.")

        assert exc_info.value.code == ErrorCode.LLM_INVALID_JSON

    def test_token_tracking(self, mock_llm_service):
        """Test token usage tracking."""
        assert mock_llm_service.total_tokens_used == 0
