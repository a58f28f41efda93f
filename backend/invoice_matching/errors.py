"""
Matching Engine Errors

The engine surfaces exactly one error type to its callers. Per-record
problems (bad amounts, unparseable dates) are logged and defaulted, never
raised.

Error Body Format:
{
    "error": "matching_error",
    "parameter": "our_records",
    "message": "our_records must be a list of records",
    "received_type": "NoneType"
}
"""

from typing import Any, Dict, Optional


class MatchingError(Exception):
    """Raised when the top-level input to the engine is malformed."""

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        received_type: Optional[str] = None
    ):
        self.message = message
        self.parameter = parameter
        self.received_type = received_type
        super().__init__(message)

    @classmethod
    def invalid_collection(cls, parameter: str, value: Any) -> "MatchingError":
        """Build the error for a collection argument that is not a list."""
        return cls(
            f"{parameter} must be a list of records",
            parameter=parameter,
            received_type=type(value).__name__
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "matching_error",
            "parameter": self.parameter,
            "message": self.message,
            "received_type": self.received_type
        }
