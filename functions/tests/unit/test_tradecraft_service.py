"""Unit tests for tradecraft knowledge lookups."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.errors import LookupServiceError, ErrorCode
from services.tradecraft_service import TradecraftService, doc_from_firestore
from tests.fixtures.mock_tradecraft_data import get_panel_upgrade_doc


@pytest.fixture
def mock_firestore():
    """Mock FirestoreService."""
    mock = MagicMock()
    mock.get_tradecraft_doc = AsyncMock(return_value=get_panel_upgrade_doc())
    mock.find_nearest_tradecraft = AsyncMock(return_value=[{**get_panel_upgrade_doc(), "similarity": 0.82}])
    return mock


@pytest.fixture
def mock_embeddings():
    """Mock EmbeddingService."""
    mock = MagicMock()
    mock.embed_query = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return mock


@pytest.fixture
def tradecraft_service(mock_firestore, mock_embeddings):
    return TradecraftService(
        firestore_service=mock_firestore,
        embedding_service=mock_embeddings,
        match_threshold=0.5
    )


class TestDocFromFirestore:
    """Tests for decoding stored documents."""

    def test_wrapped_checklist(self):
        doc = doc_from_firestore(get_panel_upgrade_doc())

        assert doc.job_type == "panel_upgrade"
        assert len(doc.scoping_questions) == 2
        assert doc.scoping_questions[0].store_as == "current_amperage"
        assert [item.category for item in doc.materials_checklist] == [
            "main_panel", "service_cable", "breakers", "grounding"
        ]

    def test_bare_list_checklist_and_id_fallback(self):
        data = get_panel_upgrade_doc()
        data.pop("jobType")
        data["materialsChecklist"] = data["materialsChecklist"]["items"]

        doc = doc_from_firestore(data)

        assert doc.job_type == "panel_upgrade"
        assert len(doc.materials_checklist) == 4

    def test_missing_checklist(self):
        data = get_panel_upgrade_doc()
        data.pop("materialsChecklist")

        assert doc_from_firestore(data).materials_checklist is None


class TestSearch:
    """Tests for semantic search."""

    @pytest.mark.asyncio
    async def test_match_above_threshold(self, tradecraft_service, mock_firestore, mock_embeddings):
        doc = await tradecraft_service.search("upgrade my panel to 200 amps", trade="electrical")

        assert doc.title == "200 Amp Panel Upgrade"
        assert doc.similarity == 0.82
        mock_embeddings.embed_query.assert_awaited_once_with("upgrade my panel to 200 amps")
        mock_firestore.find_nearest_tradecraft.assert_awaited_once_with(
            [0.1, 0.2, 0.3], trade="electrical", limit=1
        )

    @pytest.mark.asyncio
    async def test_match_at_threshold_rejected(self, tradecraft_service, mock_firestore):
        """Test similarity must be strictly above the threshold."""
        mock_firestore.find_nearest_tradecraft.return_value = [{**get_panel_upgrade_doc(), "similarity": 0.5}]

        assert await tradecraft_service.search("panel") is None

    @pytest.mark.asyncio
    async def test_no_results(self, tradecraft_service, mock_firestore):
        mock_firestore.find_nearest_tradecraft.return_value = []

        assert await tradecraft_service.search("tile backsplash") is None

    @pytest.mark.asyncio
    async def test_lookup_failure_is_a_miss(self, tradecraft_service, mock_embeddings):
        """Test embedding failures degrade to a miss."""
        mock_embeddings.embed_query.side_effect = LookupServiceError(
            code=ErrorCode.EMBEDDING_ERROR, message="timeout", service="openai_embeddings"
        )

        assert await tradecraft_service.search("panel") is None


class TestDirectLookup:
    """Tests for job-type lookups and checklists."""

    @pytest.mark.asyncio
    async def test_get_by_job_type(self, tradecraft_service, mock_firestore):
        doc = await tradecraft_service.get_by_job_type("panel_upgrade")

        assert doc.job_type == "panel_upgrade"
        mock_firestore.get_tradecraft_doc.assert_awaited_once_with("panel_upgrade")

    @pytest.mark.asyncio
    async def test_get_by_job_type_missing(self, tradecraft_service, mock_firestore):
        mock_firestore.get_tradecraft_doc.return_value = None

        assert await tradecraft_service.get_by_job_type("nope") is None

    @pytest.mark.asyncio
    async def test_get_by_job_type_failure(self, tradecraft_service, mock_firestore):
        mock_firestore.get_tradecraft_doc.side_effect = LookupServiceError(
            code=ErrorCode.FIRESTORE_ERROR, message="unavailable", service="firestore"
        )

        assert await tradecraft_service.get_by_job_type("panel_upgrade") is None

    @pytest.mark.asyncio
    async def test_get_checklist(self, tradecraft_service):
        checklist = await tradecraft_service.get_checklist("panel_upgrade")

        assert checklist[0].name == "Main breaker panel"
        assert checklist[0].required is True
        assert checklist[1].default_qty == 25

    @pytest.mark.asyncio
    async def test_get_checklist_blank_job_type(self, tradecraft_service, mock_firestore):
        assert await tradecraft_service.get_checklist("") is None
        mock_firestore.get_tradecraft_doc.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_checklist_absent(self, tradecraft_service, mock_firestore):
        data = get_panel_upgrade_doc()
        data.pop("materialsChecklist")
        mock_firestore.get_tradecraft_doc.return_value = data

        assert await tradecraft_service.get_checklist("panel_upgrade") is None
