"""Exceptions raised by peerlink."""


class PeerlinkError(Exception):
    """Base class for all peerlink errors."""

    pass


class NotConnectedError(PeerlinkError):
    """Raised when pulling from a peer whose connection is not open."""

    def __init__(self, message: str = "NOT CONNECTED") -> None:
        super().__init__(message)


class PeerConnectionError(PeerlinkError):
    """Raised when the streaming connection to a peer cannot be opened."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class SendFailureError(PeerlinkError):
    """Raised when a peer does not acknowledge an outbound message."""

    def __init__(self, status_text: str, status_code: int | None = None) -> None:
        self.status_text = status_text
        self.status_code = status_code
        super().__init__(status_text)
