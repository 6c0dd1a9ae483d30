"""Custom exception classes for the application."""


class KrolistException(Exception):
    """Base exception for all Krolist errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(KrolistException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class ConfigurationError(KrolistException):
    """Raised when required configuration (e.g. partner credentials) is missing."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"Missing required configuration: {setting}")


class QuotaPersistenceError(KrolistException):
    """Raised when the search log cannot be read or appended."""

    def __init__(self, user_id: str, message: str):
        super().__init__(f"Search quota storage failed for user {user_id}: {message}")
