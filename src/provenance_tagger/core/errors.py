"""Exception hierarchy for the provenance tagger.

Skip conditions (filter rejections, missing resources, malformed events) are
not errors from the caller's point of view: the service converts them into a
SKIPPED result. Everything else raised by a gateway propagates so the trigger
can ask for redelivery of the whole event.
"""


class ProvenanceTaggerError(Exception):
    """Base error for all provenance tagger failures."""


class MalformedEventError(ProvenanceTaggerError):
    """Raised when an incoming event payload lacks required structure.

    Attributes:
        field: Dotted path of the missing or invalid payload field.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize MalformedEventError.

        Args:
            message: Error description.
            field: Optional dotted path of the offending field (e.g., data.resourceUri).
        """
        super().__init__(message)
        self.field = field


class GatewayError(ProvenanceTaggerError):
    """Base error for control-plane (tag gateway) failures.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the control plane (if available).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize GatewayError.

        Args:
            message: Error description.
            status_code: Optional HTTP status code.
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether redelivering the event may succeed."""
        return False


class ResourceNotFoundError(GatewayError):
    """Raised when the target resource cannot be located."""


class TransientGatewayError(GatewayError):
    """Raised on network, throttling, or server-side failures while reading."""

    @property
    def retryable(self) -> bool:
        return True


class TagWriteError(GatewayError):
    """Raised when a tag merge cannot be committed.

    Throttling and server errors are retryable; permission and validation
    failures are not.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        """Initialize TagWriteError.

        Args:
            message: Error description.
            status_code: Optional HTTP status code.
            retryable: Whether redelivering the event may succeed.
        """
        super().__init__(message, status_code=status_code)
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        return self._retryable
