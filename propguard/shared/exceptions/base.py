"""Base exception hierarchy for the application."""

from typing import Any, Dict, Optional


class PropGuardError(Exception):
    """Base exception for all PropGuard errors."""
    pass


class DomainError(PropGuardError):
    """Base exception for domain-related errors."""
    pass


class ApplicationError(PropGuardError):
    """Base exception for application layer errors."""
    pass


class InfrastructureError(PropGuardError):
    """Base exception for infrastructure-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ValidationError(DomainError):
    """Raised when domain validation fails."""
    pass


class HydrationError(DomainError):
    """Raised when a persisted record cannot be turned back into an entity."""
    pass


class EntityNotFoundError(ApplicationError):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} with ID {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ImmutableAccountFieldError(ApplicationError):
    """Raised when an update tries to change a field fixed at account creation."""

    def __init__(self, account_id: str, field_name: str) -> None:
        super().__init__(f"Account {account_id}: field '{field_name}' cannot be changed")
        self.account_id = account_id
        self.field_name = field_name


class ConfigurationError(InfrastructureError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        context = {"config_key": config_key} if config_key else {}
        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class PersistenceError(InfrastructureError):
    """Document store read/write errors."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        context = {"key": key} if key else {}
        super().__init__(message, error_code="PERSISTENCE_ERROR", context=context)
