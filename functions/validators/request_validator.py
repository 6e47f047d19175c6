"""DrewRequest parsing and validation.

Deserializes the JSON body of a turn into a typed DrewRequest. The prior
state is decoded with the same model the server emits, so a state blob
round-tripped by the client validates unchanged.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
import structlog

from config.errors import ValidationError
from models.drew_response import DrewRequest

logger = structlog.get_logger(__name__)


@dataclass
class ValidationResult:
    """Result of DrewRequest validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    parsed: Optional[DrewRequest] = None


def _format_errors(error: PydanticValidationError) -> List[str]:
    errors = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "body"
        errors.append(f"{location}: {detail.get('msg')}")
    return errors


def validate_drew_request(data: Any) -> ValidationResult:
    """Validate a request body and return the result.

    Args:
        data: Parsed JSON body.

    Returns:
        ValidationResult with the parsed request when valid.
    """
    if not isinstance(data, dict):
        return ValidationResult(is_valid=False, errors=["body: expected a JSON object"])

    try:
        parsed = DrewRequest.model_validate(data)
    except PydanticValidationError as e:
        errors = _format_errors(e)
        logger.warning("drew_request_invalid", errors=errors)
        return ValidationResult(is_valid=False, errors=errors)

    return ValidationResult(is_valid=True, parsed=parsed)


def parse_drew_request(data: Dict[str, Any]) -> DrewRequest:
    """Parse a request body into a DrewRequest.

    Raises:
        ValidationError: If the body does not describe a valid turn.
    """
    result = validate_drew_request(data)
    if not result.is_valid:
        raise ValidationError(
            message=f"Invalid request: {'; '.join(result.errors)}",
            details={"errors": result.errors}
        )
    return result.parsed
