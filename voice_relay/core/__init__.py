"""Core primitives for voice-relay."""

from .models import ClassificationResult
from .protocols import (
    ClassifierFeed,
    DisconnectCallback,
    NotifyCallback,
    ResultCallback,
    UartSession,
    UartTransport,
)
from .vocabulary import (
    LABEL_TO_CODE,
    VOCABULARY,
    CommandCode,
    VocabularyEntry,
    describe_commands,
    lookup,
    parse_command,
)

__all__ = [
    "ClassificationResult",
    "ClassifierFeed",
    "CommandCode",
    "DisconnectCallback",
    "LABEL_TO_CODE",
    "NotifyCallback",
    "ResultCallback",
    "UartSession",
    "UartTransport",
    "VOCABULARY",
    "VocabularyEntry",
    "describe_commands",
    "lookup",
    "parse_command",
]
