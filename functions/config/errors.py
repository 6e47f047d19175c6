"""Drew error handling.

Custom exceptions and error codes for the quote-building agent.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""
    
    # Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_SCHEMA = "INVALID_SCHEMA"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    
    # Configuration Errors (2xxx)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    
    # Agent Errors (3xxx)
    AGENT_FAILED = "AGENT_FAILED"
    TOOL_FAILED = "TOOL_FAILED"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    
    # Lookup Errors (4xxx)
    FIRESTORE_ERROR = "FIRESTORE_ERROR"
    EMBEDDING_ERROR = "EMBEDDING_ERROR"
    LOOKUP_FAILED = "LOOKUP_FAILED"
    
    # LLM Errors (6xxx)
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"
    LLM_INVALID_JSON = "LLM_INVALID_JSON"


class DrewError(Exception):
    """Base exception for Drew errors.
    
    Provides structured error information for API responses.
    
    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """
    
    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize DrewError.
        
        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.
        
        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }
    
    def __repr__(self) -> str:
        return f"DrewError(code={self.code!r}, message={self.message!r})"


class ValidationError(DrewError):
    """Validation-specific error."""
    
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )


class ConfigurationError(DrewError):
    """Missing credentials or settings. Fatal at request entry."""
    
    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            details={"setting": setting} if setting else None
        )
        self.setting = setting


class LLMError(DrewError):
    """Language-model provider failure. Fatal for the current turn."""
    
    def __init__(
        self,
        message: str,
        code: str = ErrorCode.LLM_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(code=code, message=message, details=details)


class LookupServiceError(DrewError):
    """Knowledge base, checklist or catalog lookup failure."""
    
    def __init__(
        self,
        code: str,
        message: str,
        service: str,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "service": service}
        )
        self.service = service
