"""Drew Agent - Cloud Functions.

This package contains the Python Cloud Function behind Drew, the
conversational quote-building assistant.

Architecture:
- Phase Router: deterministic handlers for unambiguous turns
- Orchestrator: LLM tool-calling loop for everything else
- Leaf services: tradecraft knowledge base, checklists, material search
- Response formatter: display payloads and quick replies
"""

__version__ = "1.0.0"
