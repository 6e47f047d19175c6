"""Material search across a user's pricebook and the shared product catalog."""

from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config.settings import settings
from config.errors import DrewError
from models.catalog import PricedProduct, ProductSource
from services.firestore_service import FirestoreService

logger = structlog.get_logger()

# Job type -> product catalog category; keeps e.g. plumbing parts out of
# an electrical job.
JOB_TYPE_CATEGORIES: Dict[str, str] = {
    "panel_upgrade": "electrical",
    "ev_charger": "electrical",
    "recessed_lighting": "electrical",
    "outlet_circuit": "electrical",
}


def category_filter_for_job_type(job_type: Optional[str]) -> Optional[str]:
    """Catalog category for a job type, or None for unknown job types."""
    if not job_type:
        return None
    return JOB_TYPE_CATEGORIES.get(job_type)


def _pricebook_product(data: Dict[str, Any]) -> PricedProduct:
    return PricedProduct(
        id=data["id"],
        name=data.get("name", ""),
        price=data.get("unitPrice", 0) or 0,
        unit=data.get("unitType") or "ea",
        source=ProductSource.PRICEBOOK,
    )


def _catalog_product(data: Dict[str, Any]) -> PricedProduct:
    return PricedProduct(
        id=data["id"],
        name=data.get("name", ""),
        price=data.get("unitPrice", 0) or 0,
        unit=data.get("unit") or "ea",
        retailer=data.get("retailer") or None,
        source=ProductSource.CATALOG,
    )


class MaterialSearchService:
    """Finds priced products for search terms.

    For each term the user's pricebook is searched first, then the catalog.
    Results are deduplicated by product id; the first occurrence wins, so a
    pricebook entry shadows the same id in the catalog.
    """

    def __init__(
        self,
        firestore_service: Optional[FirestoreService] = None,
        results_per_term: Optional[int] = None
    ):
        self.firestore = firestore_service or FirestoreService()
        self.results_per_term = results_per_term or settings.material_results_per_term

    async def search(
        self,
        terms: List[str],
        user_id: Optional[str] = None,
        category_filter: Optional[str] = None
    ) -> List[PricedProduct]:
        """Search products for each term in order.

        Args:
            terms: Search terms, e.g. ["200A panel", "6/3 wire"].
            user_id: Authenticated user whose pricebook is searched first.
            category_filter: Optional catalog category.

        Returns:
            Deduplicated products; an empty list when nothing matches.
        """
        logger.info(
            "material_search",
            terms=terms,
            with_pricebook=bool(user_id),
            category=category_filter
        )

        results: List[PricedProduct] = []
        seen_ids = set()

        def _collect(rows: List[Dict[str, Any]], build) -> None:
            for row in rows:
                if row.get("id") in seen_ids:
                    continue
                try:
                    product = build(row)
                except (KeyError, PydanticValidationError) as e:
                    logger.warning("material_row_skipped", product_id=row.get("id"), error=str(e))
                    continue
                seen_ids.add(product.id)
                results.append(product)

        for term in terms:
            if user_id:
                try:
                    rows = await self.firestore.search_pricebook(
                        user_id, term, limit=self.results_per_term
                    )
                    _collect(rows, _pricebook_product)
                except DrewError as e:
                    logger.warning("pricebook_lookup_failed", term=term, error=e.message)

            try:
                rows = await self.firestore.search_catalog(
                    term, category=category_filter, limit=self.results_per_term
                )
                _collect(rows, _catalog_product)
            except DrewError as e:
                logger.warning("catalog_lookup_failed", term=term, error=e.message)

        logger.info(
            "material_search_complete",
            found=len(results),
            from_pricebook=sum(1 for p in results if p.source == ProductSource.PRICEBOOK)
        )
        return results
