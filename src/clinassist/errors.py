# Error taxonomy. Every exception's str() is a message that can be shown to a clinician as-is.

from typing import Optional


class ClinAssistError(Exception):
    """Base class for all errors surfaced on an orchestrator's error field."""


class MissingCredential(ClinAssistError):
    def __init__(self, provider_label: str = "provider") -> None:
        super().__init__(f"Add an {provider_label} API key in Settings.")
        self.provider_label = provider_label


class InvalidInput(ClinAssistError):
    """Local validation failure, reported before any network attempt."""


class InvalidFormatError(InvalidInput):
    def __init__(self) -> None:
        super().__init__("Enter weight as 52#, 52 lbs, or 23.6 kg.")


class OutOfRangeError(InvalidInput):
    def __init__(self) -> None:
        super().__init__("Weight appears outside the supported pediatric range.")


class ServerError(ClinAssistError):
    """Non-200 response to the opening request."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class StreamFault(ClinAssistError):
    """Read or decode failure after the response started streaming."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class TemplateMissing(ClinAssistError):
    def __init__(self, command: str) -> None:
        super().__init__(f"Prompt template for '{command}' is missing.")
        self.command = command


class SettingsError(ClinAssistError):
    """Secret/config store could not persist or load a value."""
