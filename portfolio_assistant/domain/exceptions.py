"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class BackendCommandError(DomainException):
    """A portfolio backend command failed or was unreachable"""

    def __init__(self, command: str, message: str):
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message


class MalformedPayloadError(DomainException):
    """Suggestion payload is not valid JSON or has the wrong shape"""

    pass


class SuggestionNotFoundError(DomainException):
    """No suggestion with the given identifier is known"""

    pass


class InvalidStatusTransitionError(DomainException):
    """Suggestion is already confirmed or declined"""

    def __init__(self, suggestion_id, current: str, requested: str):
        super().__init__(
            f"Suggestion {suggestion_id} is already {current}; cannot set {requested}"
        )
        self.suggestion_id = suggestion_id
        self.current = current
        self.requested = requested


class SuggestionBusyError(DomainException):
    """Suggestion is currently being executed"""

    pass


class MissingPortfolioError(DomainException):
    """Import contains portfolio transactions but no portfolio was selected"""

    pass


class SuggestionStoreError(DomainException):
    """Chat/suggestion persistence failed"""

    pass


class InvalidAttachmentError(DomainException):
    """Attachment is not a supported image type"""

    pass
