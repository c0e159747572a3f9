"""Relay error types, mapped to responses in relay_api."""

CLIENT_INPUT_ERROR = "messages[] required"


class RelayError(Exception):
    """Base class for errors raised while relaying a chat request."""

    status_code: int = 500


class ClientInputError(RelayError):
    """The inbound request has no usable ``messages`` list."""

    status_code = 400

    def __init__(self, message: str = CLIENT_INPUT_ERROR) -> None:
        super().__init__(message)
        self.message = message


class UpstreamHTTPError(RelayError):
    """The upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, text: str) -> None:
        super().__init__(f"Upstream error: {status_code}")
        self.status_code = status_code
        self.text = text
