"""Drew agents.

This package contains the conversational quote-building agent:
- Phase router (deterministic handling of unambiguous turns)
- Orchestrator (tool-calling fallback against the chat model)
- Tool executors, quote state accumulator and response formatting
- Trade expert agents (single-shot JSON calls)
"""

from agents.orchestrator import DrewOrchestrator

__all__ = ["DrewOrchestrator"]
