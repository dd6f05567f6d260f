"""Error taxonomy shared by the dispatcher, the wizard and the collaborators."""

from __future__ import annotations

__all__ = [
    "GroupAssistantError",
    "ValidationError",
    "SessionExpired",
    "SessionExistsError",
    "TransportError",
    "CompletionError",
    "TranscriptionError",
    "PersistenceError",
    "ConfigurationError",
]


class GroupAssistantError(RuntimeError):
    """Base class for every error raised by the assistant."""


class ValidationError(GroupAssistantError):
    """User input does not match the grammar of the current wizard state."""

    def __init__(self, reply: str) -> None:
        super().__init__(reply)
        self.reply = reply


class SessionExpired(GroupAssistantError):
    """The wizard session was idle for longer than its time-to-live."""


class SessionExistsError(GroupAssistantError):
    """A wizard session is already registered for the user."""


class TransportError(GroupAssistantError):
    """The messaging transport rejected or failed a request."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class CompletionError(GroupAssistantError):
    """The AI completion backend failed."""


class TranscriptionError(GroupAssistantError):
    """The audio transcription backend failed."""


class PersistenceError(GroupAssistantError):
    """Configuration could not be written to disk."""


class ConfigurationError(GroupAssistantError):
    """A command descriptor is structurally invalid."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"Invalid command configuration for {command}: {reason}")
        self.command = command
        self.reason = reason
