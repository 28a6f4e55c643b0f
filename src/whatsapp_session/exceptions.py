"""Custom exceptions for the WhatsApp session library."""


class WhatsAppClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, cause: Exception = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigurationError(WhatsAppClientError):
    """Invalid client options."""

    pass


class ConnectionError(WhatsAppClientError):
    """Connecting or setting up the socket failed."""

    pass


class NotConnectedError(WhatsAppClientError):
    """Operation requires an open connection."""

    pass


class PersistenceError(WhatsAppClientError):
    """Reading or writing auth state failed."""

    pass


class RetryExhaustedError(WhatsAppClientError):
    """Reconnection budget used up."""

    pass
