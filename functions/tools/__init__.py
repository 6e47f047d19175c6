"""
Agent Tools module for Drew.

Provides the tool manifest the orchestrator binds to the chat model.
Tool inputs are pydantic models exported in the OpenAI function calling
format; execution happens in agents.tool_executors.

Usage:
    from tools import openai_tool_schemas

    response = await llm.invoke_with_tools(messages, openai_tool_schemas())
"""

from .drew_tools import (
    DREW_TOOL_SPECS,
    DREW_TOOLS_BY_NAME,
    ToolSpec,
    openai_tool_schemas,
)

__all__ = [
    "DREW_TOOL_SPECS",
    "DREW_TOOLS_BY_NAME",
    "ToolSpec",
    "openai_tool_schemas",
]
