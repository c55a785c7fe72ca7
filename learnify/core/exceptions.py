from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or missing required input (empty subject list, empty final subject set)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class Forbidden(ServiceError):
    """Caller lacks the role or ownership required for the operation."""

    def __init__(self, message: str = "Not allowed to perform this action") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFound(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class StateError(ServiceError):
    """Operation attempted from the wrong onboarding step or lifecycle state."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class AlreadyOnboarded(StateError):
    def __init__(self, message: str = "Admin already belongs to a school") -> None:
        super().__init__(message)


class InvalidTransition(ServiceError):
    def __init__(self, from_status: str, action: str) -> None:
        super().__init__(
            f"Invalid status transition: cannot {action} a user in status {from_status}",
            status.HTTP_409_CONFLICT,
        )
        self.from_status = from_status
        self.action = action


class Conflict(ServiceError):
    """Request collides with existing data and needs an explicit resolution."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
