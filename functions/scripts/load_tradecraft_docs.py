"""
Load tradecraft knowledge documents from a JSON file into Firestore.

Each document is validated, embedded (title + content) and upserted into
tradecraftDocs/{jobType} together with its scoping questions and materials
checklist, so semantic search and the direct job-type lookup can find it.

Input file: a JSON list of documents, or {"docs": [...]}. Each document:
  {"jobType": "panel_upgrade", "title": "...", "content": "...", "trade": "electrical",
   "scopingQuestions": [...], "materialsChecklist": [...] or {"items": [...]}}

Usage (Firestore emulator):
  export FIRESTORE_EMULATOR_HOST="127.0.0.1:8081"
  export GCLOUD_PROJECT="quotecat-dev"
  python scripts/load_tradecraft_docs.py --file tradecraft.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List

# Allow running from the functions/ directory
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import firebase_admin
from firebase_admin import firestore
from pydantic import ValidationError as PydanticValidationError

from config.errors import DrewError
from models.tradecraft import TradecraftDoc
from services.tradecraft_service import doc_from_firestore
from services.embedding_service import EmbeddingService
from services.firestore_service import FirestoreService


def read_docs(path: str) -> List[Dict[str, Any]]:
    """Read the raw document list from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("docs") or []
    if not isinstance(data, list):
        raise ValueError("Expected a JSON list of documents or {\"docs\": [...]}")
    return data


def to_firestore_fields(doc: TradecraftDoc) -> Dict[str, Any]:
    """Stored shape: camelCase fields, checklist wrapped as {"items": [...]}."""
    fields = doc.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"similarity"})
    fields.pop("jobType", None)
    if "materialsChecklist" in fields:
        fields["materialsChecklist"] = {"items": fields["materialsChecklist"]}
    return fields


def embedding_text(doc: TradecraftDoc) -> str:
    return f"{doc.title}\n\n{doc.content}"


async def load_docs(
    raw_docs: List[Dict[str, Any]],
    firestore_service: FirestoreService,
    embedding_service: EmbeddingService | None,
    dry_run: bool = False
) -> int:
    """Validate, embed and upsert each document. Returns the number written."""
    written = 0
    for index, raw in enumerate(raw_docs):
        try:
            doc = doc_from_firestore(raw)
        except PydanticValidationError as e:
            print(f"[skip] document #{index}: {e.error_count()} validation error(s)")
            continue

        if dry_run:
            print(f"[dry-run] {doc.job_type}: {doc.title}")
            continue

        embedding = None
        if embedding_service is not None:
            embedding = await embedding_service.embed_query(embedding_text(doc))

        await firestore_service.upsert_tradecraft_doc(doc.job_type, to_firestore_fields(doc), embedding)
        print(f"[ok] {doc.job_type}: {doc.title}")
        written += 1
    return written


def main() -> int:
    parser = argparse.ArgumentParser(description="Load tradecraft docs from JSON into Firestore")
    parser.add_argument("--file", required=True, help="Path to the JSON file of tradecraft documents")
    parser.add_argument(
        "--project-id",
        required=False,
        help="GCP/Firebase project id (if not set, uses GCLOUD_PROJECT / FIREBASE_PROJECT_ID)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate only; write nothing")
    parser.add_argument(
        "--skip-embeddings",
        action="store_true",
        help="Write documents without vectors (direct job-type lookup only)",
    )
    args = parser.parse_args()

    project_id = (
        args.project_id
        or os.environ.get("GCLOUD_PROJECT")
        or os.environ.get("FIREBASE_PROJECT_ID")
        or "quotecat-dev"
    )

    try:
        raw_docs = read_docs(args.file)
    except (OSError, ValueError) as e:
        print(f"Could not read {args.file}: {e}")
        return 2

    if not firebase_admin._apps:
        firebase_admin.initialize_app(options={"projectId": project_id})

    firestore_service = FirestoreService(db=firestore.client())
    embedding_service = None if (args.skip_embeddings or args.dry_run) else EmbeddingService()

    try:
        written = asyncio.run(load_docs(raw_docs, firestore_service, embedding_service, dry_run=args.dry_run))
    except DrewError as e:
        print(f"Load failed ({e.code}): {e.message}")
        return 3

    print(f"Loaded {written} of {len(raw_docs)} document(s) into tradecraftDocs")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
