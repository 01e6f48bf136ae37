"""Shared exports for the entry summaries feature."""
from __future__ import annotations

from .errors import (
    BusyError,
    NoContentError,
    NotConfiguredError,
    NothingToExpandError,
    ServiceError,
    SummaryError,
)
from .extractor import extract_content, html_to_text
from .generation import ChatProvider, GenerationClient, Prompt
from .openrouter_client import (
    AuthenticationError,
    ChatCompletionResult,
    ClientConfigurationError,
    OpenRouterClient,
    OpenRouterError,
    RateLimitError,
    TransientError,
)
from .prompts import InstructionPair, PromptDocument, PromptLoader, PromptValidationError
from .service import SummaryStateMachine
from .storage import SummaryArchive, SummaryPathResolver, load_summary, write_summary
from .types import SummaryOptions, SummaryRecord, SummaryState


__all__ = [
    "SummaryRecord",
    "SummaryState",
    "SummaryOptions",
    "SummaryError",
    "BusyError",
    "NotConfiguredError",
    "NoContentError",
    "NothingToExpandError",
    "ServiceError",
    "extract_content",
    "html_to_text",
    "ChatProvider",
    "GenerationClient",
    "Prompt",
    "SummaryArchive",
    "SummaryPathResolver",
    "PromptLoader",
    "PromptDocument",
    "InstructionPair",
    "PromptValidationError",
    "load_summary",
    "write_summary",
    "OpenRouterClient",
    "ChatCompletionResult",
    "OpenRouterError",
    "AuthenticationError",
    "RateLimitError",
    "TransientError",
    "ClientConfigurationError",
    "SummaryStateMachine",
]
