"""
Base exceptions for the Tool Gateway.

Defines the exception hierarchy shared by all application layers.
"""

from typing import Any, Dict, Optional


class ToolGatewayError(Exception):
    """
    Base exception for all Tool Gateway errors.

    Every custom exception derives from this class so callers can catch
    application failures in one place.

    Attributes:
        message: Human readable error message
        details: Additional structured details
        error_code: Stable code identifying the error kind

    Example:
        >>> try:
        ...     raise ToolGatewayError("Something went wrong")
        ... except ToolGatewayError as e:
        ...     print(f"Error: {e}")
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the exception to a dictionary.

        Used for logging and API error bodies.

        Returns:
            Dictionary with error information
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class DomainError(ToolGatewayError):
    """
    Base exception for business rule violations.

    Example:
        >>> raise DomainError("Invalid business rule")
    """
    pass


class InfrastructureError(ToolGatewayError):
    """
    Base exception for failures of external systems.

    Database, network and transport failures end up here.

    Example:
        >>> raise InfrastructureError("Database connection failed")
    """
    pass
