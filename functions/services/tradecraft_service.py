"""Tradecraft knowledge lookup and checklist resolution.

Backed by the /tradecraftDocs collection: semantic search through Firestore
vector search over OpenAI embeddings, plus direct lookup by job type for the
deterministic shortcuts. Lookup failures are logged and reported as misses.
"""

from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config.settings import settings
from config.errors import DrewError
from models.tradecraft import ChecklistItem, TradecraftDoc
from services.embedding_service import EmbeddingService
from services.firestore_service import FirestoreService

logger = structlog.get_logger()


def _checklist_items(raw: Any) -> List[Dict[str, Any]]:
    # Stored as {"items": [...]}; tolerate a bare list
    if isinstance(raw, dict):
        return list(raw.get("items") or [])
    if isinstance(raw, list):
        return raw
    return []


def doc_from_firestore(data: Dict[str, Any]) -> TradecraftDoc:
    """Build a TradecraftDoc from a stored document."""
    return TradecraftDoc(
        title=data.get("title", ""),
        content=data.get("content", ""),
        job_type=data.get("jobType") or data.get("id"),
        trade=data.get("trade"),
        scoping_questions=data.get("scopingQuestions"),
        materials_checklist=_checklist_items(data.get("materialsChecklist")) or None,
        similarity=data.get("similarity"),
    )


class TradecraftService:
    """Knowledge-base lookups used by the router and the tool executors."""

    def __init__(
        self,
        firestore_service: Optional[FirestoreService] = None,
        embedding_service: Optional[EmbeddingService] = None,
        match_threshold: Optional[float] = None
    ):
        self.firestore = firestore_service or FirestoreService()
        self._embeddings = embedding_service
        self.match_threshold = (
            match_threshold if match_threshold is not None else settings.tradecraft_match_threshold
        )

    @property
    def embeddings(self) -> EmbeddingService:
        if self._embeddings is None:
            self._embeddings = EmbeddingService()
        return self._embeddings

    async def search(self, query: str, trade: Optional[str] = None) -> Optional[TradecraftDoc]:
        """Semantic search for the best matching document.

        Only a match with similarity above the threshold is accepted.

        Args:
            query: Free-text job description, e.g. "EV charger installation".
            trade: Optional trade filter.

        Returns:
            The matching document or None on a miss or lookup failure.
        """
        logger.info("tradecraft_search", query=query, trade=trade or "any")
        try:
            vector = await self.embeddings.embed_query(query)
            matches = await self.firestore.find_nearest_tradecraft(vector, trade=trade, limit=1)
        except DrewError as e:
            logger.warning("tradecraft_search_failed", query=query, code=e.code, error=e.message)
            return None

        if not matches:
            logger.info("tradecraft_not_found", query=query)
            return None

        best = matches[0]
        similarity = best.get("similarity", 0.0)
        if similarity <= self.match_threshold:
            logger.info("tradecraft_below_threshold", query=query, similarity=similarity)
            return None

        try:
            doc = doc_from_firestore(best)
        except PydanticValidationError as e:
            logger.warning("tradecraft_doc_malformed", job_type=best.get("jobType"), error=str(e))
            return None

        logger.info(
            "tradecraft_found",
            title=doc.title,
            job_type=doc.job_type,
            similarity=similarity,
            scoping_questions=len(doc.scoping_questions or [])
        )
        return doc

    async def get_by_job_type(self, job_type: str) -> Optional[TradecraftDoc]:
        """Direct lookup by canonical job type key."""
        try:
            data = await self.firestore.get_tradecraft_doc(job_type)
        except DrewError as e:
            logger.warning("tradecraft_direct_lookup_failed", job_type=job_type, error=e.message)
            return None

        if data is None:
            logger.info("tradecraft_direct_lookup_miss", job_type=job_type)
            return None

        try:
            return doc_from_firestore(data)
        except PydanticValidationError as e:
            logger.warning("tradecraft_doc_malformed", job_type=job_type, error=str(e))
            return None

    async def get_checklist(self, job_type: str) -> Optional[List[ChecklistItem]]:
        """Ordered materials checklist for a job type, or None if absent."""
        if not job_type:
            return None

        doc = await self.get_by_job_type(job_type)
        if doc is None or not doc.materials_checklist:
            logger.info("checklist_not_found", job_type=job_type)
            return None

        logger.info("checklist_found", job_type=job_type, items=len(doc.materials_checklist))
        return doc.materials_checklist
