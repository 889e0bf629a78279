"""Typed failures raised by the lifecycle services.

Routers translate these into HTTP responses; the services themselves never
log or swallow them.
"""


class LoadBoardError(Exception):
    """Base exception for load board business failures."""

    pass


class NotFoundError(LoadBoardError):
    """Raised when a referenced load or booking does not exist."""

    def __init__(self, resource: str, field: str, value) -> None:
        super().__init__(f"{resource} not found with {field}: {value}")
        self.resource = resource
        self.field = field
        self.value = value


class ConflictError(LoadBoardError):
    """Raised when an operation would violate a lifecycle rule."""

    pass
