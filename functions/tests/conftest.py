"""Pytest configuration and shared fixtures for Drew tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (agents/, models/, services/, config/)
# ============================================================================
#
# Our codebase uses absolute imports like `from models...` / `from agents...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Never reach real credentials or Secret Manager from unit tests
os.environ.setdefault("FUNCTIONS_EMULATOR", "true")
os.environ.setdefault("GCLOUD_PROJECT", "quotecat-test")
os.environ.setdefault("OPENAI_API_KEY", "test-api-key")

from tests.fixtures.mock_tradecraft_data import (  # noqa: E402
    get_panel_upgrade_checklist,
    get_panel_upgrade_doc,
)


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client."""
    client = MagicMock()

    # Set up chain: client.collection().document()
    collection_mock = MagicMock()
    document_mock = MagicMock()
    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock

    # Mock async methods
    document_mock.get = AsyncMock(return_value=MagicMock(
        exists=True,
        id="panel_upgrade",
        to_dict=lambda: {"title": "200 Amp Panel Upgrade", "isActive": True}
    ))
    document_mock.set = AsyncMock()

    # Mock subcollection
    subcollection_mock = MagicMock()
    document_mock.collection.return_value = subcollection_mock

    return client


@pytest.fixture
def mock_firestore_service(mock_firestore_client):
    """Mock FirestoreService with mocked client."""
    from services.firestore_service import FirestoreService

    service = FirestoreService(db=mock_firestore_client)
    return service


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content="Mock response content",
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """Mock LLMService."""
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key")
        service._client = mock_chat_openai
        return service


# ============================================================================
# Knowledge Base / Material Search Mocks
# ============================================================================

@pytest.fixture
def panel_upgrade_doc():
    """Panel upgrade TradecraftDoc."""
    from services.tradecraft_service import doc_from_firestore

    return doc_from_firestore(get_panel_upgrade_doc())


@pytest.fixture
def panel_checklist():
    """Panel upgrade checklist as ChecklistItem models."""
    from models.tradecraft import ChecklistItem

    return [ChecklistItem.model_validate(item) for item in get_panel_upgrade_checklist()]


@pytest.fixture
def mock_tradecraft_service(panel_upgrade_doc, panel_checklist):
    """Mock TradecraftService returning the panel upgrade doc."""
    from services.tradecraft_service import TradecraftService

    service = MagicMock(spec=TradecraftService)
    service.get_by_job_type = AsyncMock(return_value=panel_upgrade_doc)
    service.search = AsyncMock(return_value=panel_upgrade_doc)
    service.get_checklist = AsyncMock(return_value=panel_checklist)
    return service


@pytest.fixture
def sample_products():
    """Priced products for material search results."""
    from models.catalog import PricedProduct

    return [
        PricedProduct(id="p-panel", name="200A Main Breaker Panel", price=289.0, unit="ea",
                      retailer="Home Depot", source="catalog"),
        PricedProduct(id="p-panel-pb", name="200A Panel (my supplier)", price=249.0, unit="ea",
                      source="pricebook"),
        PricedProduct(id="p-ser", name="4/0 SER Cable", price=4.25, unit="ft",
                      retailer="Lowe's", source="catalog"),
    ]


@pytest.fixture
def mock_material_search(sample_products):
    """Mock MaterialSearchService returning sample products."""
    from services.material_search_service import MaterialSearchService

    service = MagicMock(spec=MaterialSearchService)
    service.search = AsyncMock(return_value=sample_products)
    return service


# ============================================================================
# Conversation State Samples
# ============================================================================

@pytest.fixture
def scoping_state(panel_upgrade_doc):
    """State at the first scoping question of a panel upgrade."""
    from models.conversation import ConversationState, Phase
    from agents.quote_state import start_scoping

    return start_scoping(ConversationState(phase=Phase.JOB_SELECTION), panel_upgrade_doc)


@pytest.fixture
def checklist_state(scoping_state, panel_checklist):
    """State with the panel upgrade checklist pending."""
    return scoping_state.model_copy(update={
        "phase": "checklist",
        "current_question_index": 2,
        "scoping_answers": {"current_amperage": "100A", "panel_location": "Garage"},
        "pending_checklist": panel_checklist,
    })


@pytest.fixture
def priced_state():
    """State with two quote items, labor and markup set."""
    from models.conversation import ConversationState, QuoteItem

    return ConversationState(
        phase="review",
        tradecraft_job_type="panel_upgrade",
        quote_items=[
            QuoteItem(product_id="p-panel", name="200A Main Breaker Panel", unit_price=289.0, qty=1),
            QuoteItem(product_id="p-ser", name="4/0 SER Cable", unit_price=4.0, qty=25, unit="ft"),
        ],
        labor_hours=8,
        labor_rate=75,
        markup_percent=20,
    )


@pytest.fixture
def phase_router(mock_tradecraft_service, mock_material_search):
    """PhaseRouter wired to the mocked lookups."""
    from agents.phase_router import PhaseRouter

    return PhaseRouter(mock_tradecraft_service, mock_material_search, products_per_category=2)
