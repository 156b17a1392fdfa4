"""Error definitions for the JadeMark translator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class ErrorCategory(Enum):
    """Categorises handled errors for reporting."""

    ARGUMENT = auto()
    FILE_IO = auto()
    CONFIGURATION = auto()
    TRANSLATION = auto()
    NETWORK = auto()
    OTHER = auto()


class JadeMarkError(Exception):
    """Base exception for all custom errors."""


class UnsupportedFileTypeError(JadeMarkError):
    """Raised when a given file extension is not a Markdown or text file."""


class OverwriteRefusedError(JadeMarkError):
    """Raised when attempting to overwrite an output without consent."""


class ProviderConfigurationError(JadeMarkError):
    """Raised when the text-transformation provider is misconfigured."""


class ProviderError(JadeMarkError):
    """Raised when a text-transformation call fails."""

    def __init__(self, message: str, *, category: ErrorCategory = ErrorCategory.TRANSLATION) -> None:
        super().__init__(message)
        self.category = category


class ModelNotFoundError(ProviderError):
    """Raised when the provider reports the configured model does not exist."""

    def __init__(self, model: str, hint: str = "") -> None:
        message = (
            f"Model '{model}' not found (404). Please check the model name in your settings."
        )
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.model = model


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
