"""Domain models for classification results."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    label: str
    confidence: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClassificationResult":
        """Build a result from a ``{"label", "confidence"}`` mapping.

        Raises:
            ValueError: If the label is not a string or the confidence is not
                a number within ``[0, 1]``.
        """
        label = data.get("label")
        if not isinstance(label, str):
            raise ValueError(f"result label must be a string, got {label!r}")

        confidence = data.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError(f"result confidence must be a number, got {confidence!r}")
        confidence = float(confidence)
        if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
            raise ValueError(f"result confidence out of range: {confidence}")

        return cls(label=label, confidence=confidence)
