"""Unified secret access for Drew Python functions.

This module provides a consistent interface for accessing secrets that works
in both local development (emulator) and production environments.

In production: Uses Google Cloud Secret Manager (Firebase Secrets)
In emulator: Falls back to environment variables

Usage:
    from config.secrets import get_openai_api_key, get_secret

    api_key = get_openai_api_key()
    custom_secret = get_secret('MY_SECRET_NAME')
"""

import os
from functools import lru_cache
from typing import Optional

import structlog
from google.cloud import secretmanager

logger = structlog.get_logger(__name__)


def is_emulator_mode() -> bool:
    """Check if running in Firebase emulator mode."""
    return (
        os.environ.get('FUNCTIONS_EMULATOR') == 'true' or
        os.environ.get('FIRESTORE_EMULATOR_HOST') is not None
    )


def get_secret(secret_id: str) -> Optional[str]:
    """
    Get secret from Firebase Secrets Manager (production) or environment (local).

    Args:
        secret_id: The name of the secret (e.g., 'OPENAI_API_KEY')

    Returns:
        The secret value, or None if not found
    """
    # Environment always wins; Firebase injects declared secrets as env vars
    value = os.environ.get(secret_id)
    if value or is_emulator_mode():
        if not value:
            logger.warning("secret_not_in_environment", secret_id=secret_id)
        return value

    try:
        client = secretmanager.SecretManagerServiceClient()
        project_id = os.environ.get('GCLOUD_PROJECT') or os.environ.get('GOOGLE_CLOUD_PROJECT', 'quotecat-dev')
        name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"

        response = client.access_secret_version(request={"name": name})
        value = response.payload.data.decode("UTF-8")
        logger.debug("secret_loaded_from_secret_manager", secret_id=secret_id)
        return value

    except Exception as e:
        logger.warning("secret_manager_lookup_failed", secret_id=secret_id, error=str(e))
        return None


@lru_cache(maxsize=1)
def get_openai_api_key() -> Optional[str]:
    """Get OpenAI API key from secrets."""
    return get_secret('OPENAI_API_KEY')


def clear_secret_cache() -> None:
    """Clear cached secrets. Useful for testing or when secrets are rotated."""
    get_openai_api_key.cache_clear()
