"""Cloud Function entry point for the Drew quote-building agent.

Provides the HTTP endpoint for one conversation turn:
- drew_agent: (userMessage, state, userSettings) -> (message, state, display, quickReplies)

The server is stateless; the client persists the returned state and sends
it back on the next turn.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import structlog
from firebase_functions import https_fn, options
from firebase_admin import auth, initialize_app

from config.settings import settings
from config.errors import DrewError, ValidationError
from agents.orchestrator import DrewOrchestrator
from validators.request_validator import parse_drew_request

# Initialize Firebase Admin SDK
try:
    initialize_app()
except ValueError:
    # Already initialized
    pass

logger = structlog.get_logger()

# ============================================================================
# Helper Functions
# ============================================================================

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-client-info, apikey",
    "Access-Control-Max-Age": "3600"
}


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response(
        "",
        status=204,
        headers=CORS_HEADERS
    )


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""
    return https_fn.Response(
        json.dumps(data, default=str),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )


def error_response(message: str) -> Dict[str, Any]:
    """Build error response."""
    return {"error": message}


def get_request_json(req: https_fn.Request) -> Dict[str, Any]:
    """Extract JSON from request body.

    Args:
        req: HTTP request object.

    Returns:
        Parsed JSON data.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        return req.get_json(force=True) or {}
    except Exception as e:
        raise ValidationError(
            message=f"Invalid JSON in request body: {str(e)}"
        )


def get_user_id(req: https_fn.Request) -> Optional[str]:
    """Resolve the caller from a Firebase Auth bearer token.

    A missing or invalid token means an anonymous caller: the turn still
    runs, only without pricebook lookups.

    Args:
        req: HTTP request object.

    Returns:
        The Firebase uid, or None.
    """
    header = req.headers.get("Authorization") or req.headers.get("authorization") or ""
    if not header.startswith("Bearer "):
        return None

    token = header[len("Bearer "):].strip()
    if not token:
        return None

    try:
        decoded = auth.verify_id_token(token)
    except (auth.InvalidIdTokenError, auth.CertificateFetchError, ValueError) as e:
        logger.warning("auth_token_rejected", error=str(e))
        return None

    return decoded.get("uid")


# ============================================================================
# Drew Entry Point
# ============================================================================


@https_fn.on_request(
    timeout_sec=120,
    memory=options.MemoryOption.MB_512,
    region="us-central1",
    secrets=["OPENAI_API_KEY"]
)
def drew_agent(req: https_fn.Request) -> https_fn.Response:
    """Run one Drew conversation turn.

    Request body:
    {
        "userMessage": "panel upgrade",
        "state": {...},              // Optional: omitted on the first turn
        "userSettings": {"defaultLaborRate": 85, "defaultMarkupPercent": 20}
    }

    Response:
    {
        "message": "200 Amp Panel Upgrade, got it. What's the current panel size?",
        "state": {...},
        "display": {...},            // Optional
        "quickReplies": ["100A", "150A", "60A or fuse box"]
    }

    On failure: {"error": "..."}
    """
    if req.method == "OPTIONS":
        return _cors_response()

    if req.method != "POST":
        return _json_response(error_response("Method not allowed"), status=405)

    try:
        # Missing credentials are fatal before any processing
        settings.validate()

        data = get_request_json(req)
        drew_request = parse_drew_request(data)
        user_id = get_user_id(req)

        logger.info(
            "drew_request_received",
            user_id=user_id,
            phase=drew_request.state.phase if drew_request.state else None
        )

        response = asyncio.run(DrewOrchestrator().run_turn(drew_request, user_id=user_id))
        return _json_response(response.to_wire())

    except ValidationError as e:
        return _json_response(error_response(e.message), status=400)

    except DrewError as e:
        logger.error("drew_turn_failed", code=e.code, error=e.message)
        return _json_response(error_response(e.message), status=500)

    except Exception as e:
        logger.error("drew_turn_error", error=str(e), error_type=type(e).__name__)
        return _json_response(error_response(str(e)), status=500)
