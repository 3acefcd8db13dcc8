"""Classification listener mapping recognised labels to relay commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .core.models import ClassificationResult
from .core.vocabulary import CommandCode, describe_commands, lookup
from .relay import CommandRelay, SendOutcome

LOGGER = logging.getLogger(__name__)

_PLACEHOLDER = "..."


@dataclass(slots=True)
class DisplayState:
    """Latest top-ranked result, as shown to the operator."""

    label: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def label_text(self) -> str:
        return f"Label: {self.label if self.label is not None else _PLACEHOLDER}"

    @property
    def confidence_text(self) -> str:
        if self.confidence is None:
            return f"Confidence: {_PLACEHOLDER}"
        return f"Confidence: {self.confidence:.2f}"

    @property
    def commands_text(self) -> str:
        return describe_commands()

    def as_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "labelText": self.label_text,
            "confidenceText": self.confidence_text,
            "commands": self.commands_text,
        }


@dataclass(frozen=True, slots=True)
class ListenerOutcome:
    code: Optional[CommandCode] = None
    send: Optional[SendOutcome] = None


class ClassificationListener:
    """Receives ranked results and forwards command words to the relay."""

    def __init__(
        self, relay: CommandRelay, display: Optional[DisplayState] = None
    ) -> None:
        self._relay = relay
        self.display = display if display is not None else DisplayState()

    async def on_result(
        self,
        error: Optional[BaseException],
        results: Sequence[ClassificationResult],
    ) -> ListenerOutcome:
        if error is not None:
            LOGGER.error("Classifier error: %s", error)
            return ListenerOutcome()

        if not results:
            LOGGER.debug("Classifier delivered an empty result set")
            return ListenerOutcome()

        top = results[0]
        self.display.label = top.label
        self.display.confidence = top.confidence

        code = lookup(top.label)
        if code is None:
            return ListenerOutcome()

        LOGGER.info("Recognised %r (%.2f) -> %s", top.label, top.confidence, code.name)
        outcome = await self._relay.send(code)
        return ListenerOutcome(code=code, send=outcome)
