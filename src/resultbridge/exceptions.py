# src/resultbridge/exceptions.py

"""
Custom exceptions for resultbridge.

Runtime conditions of a test run (malformed records, unresolved labels,
rejected transitions) are counted and logged, never raised. These exceptions
cover setup problems and API misuse only.
"""


class ResultBridgeError(Exception):
    """Base class for all resultbridge errors."""

    pass


class ConfigurationError(ResultBridgeError):
    """Raised when the configuration file is missing, unreadable or invalid."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        full_message = message
        if path:
            full_message += f" (Config: '{path}')"
        super().__init__(full_message)


class RunnerError(ResultBridgeError):
    """Raised when the external test process cannot be started."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        details: Exception | None = None,
    ):
        self.command = command
        self.details = details
        full_message = f"[Runner] {message}"
        if command:
            full_message += f" (Command: '{' '.join(command)}')"
        super().__init__(full_message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class SessionClosedError(ResultBridgeError):
    """Raised when a finalized or cancelled run is asked to finalize again."""

    pass


class TestTreeError(ResultBridgeError):
    """Raised when a tests file cannot be read into a test tree."""

    __test__ = False

# 🔼⚙️
