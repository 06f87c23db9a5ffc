"""Exception types raised by the decoders and the markup driver."""


class MachoMarkError(Exception):
    """Base class for all machomark errors."""


class DecodeError(MachoMarkError, ValueError):
    """Raised when a record cannot be decoded from the available bytes."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        super().__init__(message)
        self.offset = offset


class AnnotationError(MachoMarkError):
    """Raised when an annotation action for a load command fails."""

    def __init__(self, command_name: str, cause: BaseException | str) -> None:
        self.command_name = command_name
        self.cause = cause
        super().__init__(f"Unable to create {command_name} - {cause}")
