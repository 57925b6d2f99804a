"""Custom exceptions for the FaceCheck client."""


class FaceCheckError(Exception):
    """Base exception."""
    pass


class ConfigError(FaceCheckError):
    """No usable API token or unreadable config file."""
    pass


class UsageError(FaceCheckError):
    """Missing or invalid command argument."""
    pass


class APIError(FaceCheckError):
    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class TransportError(FaceCheckError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FileError(FaceCheckError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class PollTimeoutError(FaceCheckError):
    def __init__(self, id_search: str, elapsed: float):
        super().__init__(f"Search {id_search} not finished after {elapsed:.0f}s.")
        self.id_search = id_search
        self.elapsed = elapsed
