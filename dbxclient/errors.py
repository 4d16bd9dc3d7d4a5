"""Exceptions raised by the client core."""


class ClientError(Exception):
    """Base exception for all client failures."""
    pass


class ConfigurationError(ClientError):
    """Contradictory, incomplete or missing authentication configuration.

    Never retried. The message tells the operator what to configure.
    """
    pass


class FederationError(ConfigurationError):
    """A configured cloud identity could not be exchanged for a token."""
    pass


class TransportError(ClientError):
    """HTTP failure talking to the control-plane API.

    Attributes:
        status_code: HTTP status code (0 when no response was received)
        message: Error message from the response or the network layer
        endpoint: URL that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class TransientTransportError(TransportError):
    """Retryable failure that persisted past the retry budget."""

    def __init__(self, status_code: int, message: str, endpoint: str, attempts: int):
        self.attempts = attempts
        super().__init__(status_code, message, endpoint)


class FatalTransportError(TransportError):
    """Non-retryable status or an undecodable response."""
    pass
