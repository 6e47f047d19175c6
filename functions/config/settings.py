"""Drew configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via Firebase Secrets Manager (production) or environment variables (emulator).
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from config.errors import ConfigurationError

# Load .env file for non-secret configuration (emulator hosts, feature flags, etc.)
# Secrets should come from Firebase Secrets Manager or environment variables
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Secrets (OPENAI_API_KEY) should be accessed via config.secrets module,
    not directly from this class. The openai_api_key property delegates to it.
    """

    # LLM Configuration (non-secrets)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.2")))
    llm_max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "1024")))
    llm_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("LLM_TIMEOUT_SECONDS", "30")))
    trade_agent_model: str = field(default_factory=lambda: os.getenv("TRADE_AGENT_MODEL", "gpt-4o-mini"))
    trade_agent_max_tokens: int = field(default_factory=lambda: int(os.getenv("TRADE_AGENT_MAX_TOKENS", "256")))
    embedding_model: str = field(default_factory=lambda: os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"))

    # Firebase Configuration
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: _env_flag("USE_FIREBASE_EMULATORS"))
    firestore_emulator_host: str = field(default_factory=lambda: os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8081"))

    # Agent loop
    agent_max_iterations: int = field(default_factory=lambda: int(os.getenv("AGENT_MAX_ITERATIONS", "10")))
    default_labor_rate: float = field(default_factory=lambda: float(os.getenv("DEFAULT_LABOR_RATE", "75")))

    # Lookups
    tradecraft_match_threshold: float = field(default_factory=lambda: float(os.getenv("TRADECRAFT_MATCH_THRESHOLD", "0.5")))
    material_results_per_term: int = field(default_factory=lambda: int(os.getenv("MATERIAL_RESULTS_PER_TERM", "3")))
    products_per_category: int = field(default_factory=lambda: int(os.getenv("PRODUCTS_PER_CATEGORY", "2")))

    # Feature flags
    checklist_adjustments_enabled: bool = field(default_factory=lambda: _env_flag("CHECKLIST_ADJUSTMENTS_ENABLED"))
    trade_agent_assist_enabled: bool = field(default_factory=lambda: _env_flag("TRADE_AGENT_ASSIST_ENABLED", "true"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret value (use openai_api_key property instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get OpenAI API key from Firebase Secrets Manager or environment."""
        if self._openai_api_key is None:
            from config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ConfigurationError: If the OpenAI API key is missing.
        """
        if not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured", setting="OPENAI_API_KEY")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
