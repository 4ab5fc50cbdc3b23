"""Exceptions raised by the WHEP client."""


class WhepError(Exception):
    pass


class InvalidServerURL(WhepError):
    def __init__(self, url):
        super().__init__(f"Invalid server URL: {url!r}")
        self.url = url


class InvalidSessionState(WhepError):
    pass


class ConfigError(WhepError):
    pass


class EngineError(WhepError):
    pass


class EngineSetupError(EngineError):
    pass


class OfferCreationError(EngineSetupError):
    pass


class EngineCloseError(EngineError):
    pass


class RemoteDescriptionRejected(EngineError):
    pass


class TransportError(WhepError):
    pass


class ProtocolViolation(WhepError):
    """The server answered outside of the WHEP contract."""


class UnexpectedStatus(ProtocolViolation):
    def __init__(self, status, body=""):
        super().__init__(f"Failed to connect: unexpected HTTP status {status}")
        self.status = status
        self.body = body


class MissingLocationHeader(ProtocolViolation):
    def __init__(self):
        super().__init__("No Location header in the response")


class ResourceCleanupFailed(WhepError):
    def __init__(self, resource_url, status=None, close_error=None):
        reason = f"HTTP {status}" if status is not None else "request failed"
        super().__init__(f"Failed to remove server resource {resource_url} ({reason})")
        self.resource_url = resource_url
        self.status = status
        self.close_error = close_error
