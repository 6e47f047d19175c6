"""Firestore service for Drew.

Read access to the tradecraft knowledge base, the shared product catalog and
per-user pricebooks, plus the upsert used by the knowledge-base loader.
"""

from typing import Dict, Any, Optional, List
import inspect
import re
import structlog

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.base_vector_query import DistanceMeasure
from google.cloud.firestore_v1.vector import Vector

from config.errors import LookupServiceError, ErrorCode

logger = structlog.get_logger()

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9/.\-]*")

# array_contains_any accepts at most 30 values
MAX_KEYWORDS_PER_QUERY = 30


def search_tokens(text: str) -> List[str]:
    """Lowercase keyword tokens used for catalog keyword matching."""
    return _TOKEN_RE.findall((text or "").lower())


class FirestoreService:
    """Service for Firestore operations.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    """

    COLLECTION_TRADECRAFT = "tradecraftDocs"
    COLLECTION_PRODUCTS = "products"
    COLLECTION_USERS = "users"
    SUBCOLLECTION_PRICEBOOK = "pricebookItems"

    VECTOR_FIELD = "embedding"
    DISTANCE_FIELD = "vectorDistance"

    def __init__(self, db=None):
        """Initialize FirestoreService.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    # ------------------------------------------------------------------
    # Tradecraft knowledge base
    # ------------------------------------------------------------------

    async def get_tradecraft_doc(self, job_type: str) -> Optional[Dict[str, Any]]:
        """Fetch an active tradecraft document by job type key.

        Args:
            job_type: Canonical job type (document ID), e.g. "panel_upgrade".

        Returns:
            Document data or None if missing or inactive.

        Raises:
            LookupServiceError: If the Firestore read fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_TRADECRAFT).document(job_type)
            doc = await self._maybe_await(doc_ref.get())

            if not doc.exists:
                return None
            data = doc.to_dict() or {}
            if data.get("isActive") is False:
                return None
            data.pop(self.VECTOR_FIELD, None)
            return {"id": doc.id, **data}

        except Exception as e:
            logger.error("tradecraft_get_failed", job_type=job_type, error=str(e))
            raise LookupServiceError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get tradecraft doc: {str(e)}",
                service="firestore",
                details={"job_type": job_type}
            )

    async def find_nearest_tradecraft(
        self,
        embedding: List[float],
        trade: Optional[str] = None,
        limit: int = 1
    ) -> List[Dict[str, Any]]:
        """Nearest-neighbour search over active tradecraft documents.

        Args:
            embedding: Query embedding vector.
            trade: Optional trade filter (e.g. "electrical").
            limit: Maximum number of documents.

        Returns:
            Documents ordered by cosine distance, each with a "similarity"
            field (1 - distance).

        Raises:
            LookupServiceError: If the vector query fails.
        """
        try:
            query = self.db.collection(self.COLLECTION_TRADECRAFT).where(
                filter=FieldFilter("isActive", "==", True)
            )
            if trade:
                query = query.where(filter=FieldFilter("trade", "==", trade))

            vector_query = query.find_nearest(
                vector_field=self.VECTOR_FIELD,
                query_vector=Vector(embedding),
                distance_measure=DistanceMeasure.COSINE,
                limit=limit,
                distance_result_field=self.DISTANCE_FIELD,
            )
            docs = await self._maybe_await(vector_query.stream())

            results: List[Dict[str, Any]] = []
            for doc in docs:
                data = doc.to_dict() or {}
                data.pop(self.VECTOR_FIELD, None)
                distance = data.pop(self.DISTANCE_FIELD, None)
                data["similarity"] = 1.0 - float(distance) if distance is not None else 0.0
                results.append({"id": doc.id, **data})
            return results

        except Exception as e:
            logger.error("tradecraft_vector_search_failed", trade=trade, error=str(e))
            raise LookupServiceError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Tradecraft vector search failed: {str(e)}",
                service="firestore",
                details={"trade": trade}
            )

    async def upsert_tradecraft_doc(
        self,
        job_type: str,
        data: Dict[str, Any],
        embedding: Optional[List[float]] = None
    ) -> None:
        """Create or replace a tradecraft document.

        Args:
            job_type: Canonical job type, used as the document ID.
            data: Document fields (title, content, trade, scopingQuestions, ...).
            embedding: Optional vector stored in the vector field.

        Raises:
            LookupServiceError: If the write fails.
        """
        try:
            doc_ref = self.db.collection(self.COLLECTION_TRADECRAFT).document(job_type)

            doc_data = {**data, "jobType": job_type}
            doc_data.setdefault("isActive", True)
            if embedding is not None:
                doc_data[self.VECTOR_FIELD] = Vector(embedding)
            doc_data["updatedAt"] = firestore.SERVER_TIMESTAMP

            await self._maybe_await(doc_ref.set(doc_data, merge=True))
            logger.info("tradecraft_doc_upserted", job_type=job_type, fields=list(doc_data.keys()))

        except Exception as e:
            logger.error("tradecraft_upsert_failed", job_type=job_type, error=str(e))
            raise LookupServiceError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to upsert tradecraft doc: {str(e)}",
                service="firestore",
                details={"job_type": job_type}
            )

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def search_pricebook(
        self,
        user_id: str,
        term: str,
        limit: int = 3
    ) -> List[Dict[str, Any]]:
        """Active pricebook items of a user whose name contains the term.

        Firestore has no substring operator, so the user's active items are
        streamed and filtered case-insensitively here.

        Raises:
            LookupServiceError: If the query fails.
        """
        needle = (term or "").strip().lower()
        try:
            query = (
                self.db
                .collection(self.COLLECTION_USERS)
                .document(user_id)
                .collection(self.SUBCOLLECTION_PRICEBOOK)
                .where(filter=FieldFilter("isActive", "==", True))
            )
            docs = await self._maybe_await(query.stream())

            results: List[Dict[str, Any]] = []
            for doc in docs:
                data = doc.to_dict() or {}
                if needle in str(data.get("name", "")).lower():
                    results.append({"id": doc.id, **data})
                    if len(results) >= limit:
                        break
            return results

        except Exception as e:
            logger.error("pricebook_search_failed", user_id=user_id, term=term, error=str(e))
            raise LookupServiceError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Pricebook search failed: {str(e)}",
                service="firestore",
                details={"user_id": user_id, "term": term}
            )

    async def search_catalog(
        self,
        term: str,
        category: Optional[str] = None,
        limit: int = 3
    ) -> List[Dict[str, Any]]:
        """Catalog products matching a search term.

        Candidates share at least one keyword with the term (via the
        product's "searchKeywords" array) and are ranked by how many of the
        term's keywords they carry.

        Args:
            term: Free-text search term, e.g. "6/3 wire".
            category: Optional product category filter, e.g. "electrical".
            limit: Maximum number of products.

        Raises:
            LookupServiceError: If the query fails.
        """
        tokens = list(dict.fromkeys(search_tokens(term)))[:MAX_KEYWORDS_PER_QUERY]
        if not tokens:
            return []

        try:
            query = self.db.collection(self.COLLECTION_PRODUCTS).where(
                filter=FieldFilter("searchKeywords", "array_contains_any", tokens)
            )
            if category:
                query = query.where(filter=FieldFilter("category", "==", category))
            docs = await self._maybe_await(query.stream())

            scored = []
            for position, doc in enumerate(docs):
                data = doc.to_dict() or {}
                keywords = set(data.get("searchKeywords") or [])
                score = sum(1 for token in tokens if token in keywords)
                scored.append((-score, position, {"id": doc.id, **data}))

            scored.sort(key=lambda entry: (entry[0], entry[1]))
            return [entry[2] for entry in scored[:limit]]

        except Exception as e:
            logger.error("catalog_search_failed", term=term, category=category, error=str(e))
            raise LookupServiceError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Catalog search failed: {str(e)}",
                service="firestore",
                details={"term": term, "category": category}
            )
