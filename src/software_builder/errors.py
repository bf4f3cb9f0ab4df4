"""Error taxonomy shared across the store, model, client and chat layers."""


class SoftwareBuilderError(Exception):
    """Base class for all application errors."""


class ValidationError(SoftwareBuilderError):
    """Blank or malformed input (empty path, unparsable id, bad role)."""


class NotFoundError(SoftwareBuilderError):
    """An id that does not refer to a stored session, message or memory."""

    def __init__(self, kind: str, entity_id: object) -> None:
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class StorageError(SoftwareBuilderError):
    """A write or transaction failed. Nothing from the operation was applied."""


class ConfigurationError(SoftwareBuilderError):
    """Completion backend configuration is incomplete or invalid."""


class CompletionError(SoftwareBuilderError):
    """A completion request failed."""


class NetworkError(CompletionError):
    """Transport-level failure talking to the completion backend."""


class RequestTimeoutError(CompletionError):
    """The completion backend did not answer within the configured timeout."""


class UnknownCommandError(SoftwareBuilderError):
    """An interactive slash-command that is not recognized."""

    def __init__(self, command: str) -> None:
        super().__init__(f"Unknown command: {command}")
        self.command = command
