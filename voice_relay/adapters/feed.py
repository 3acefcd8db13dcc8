"""Classifier feed adapters.

A feed stands in for the audio classifier: it turns externally produced
results (JSON lines on a stream, or JSON bodies posted over HTTP) into
``callback(error, results)`` invocations, applying the classifier's own
probability threshold first.

Accepted payloads::

    [{"label": "left", "confidence": 0.97}, {"label": "go", "confidence": 0.01}]
    {"label": "left", "confidence": 0.97}
    {"error": "microphone unavailable"}
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterable, AsyncIterator, List, Optional, TextIO

from .. import constants
from ..core.models import ClassificationResult
from ..core.protocols import ResultCallback
from ..relay import ClassifierError

LOGGER = logging.getLogger(__name__)

STDIN_SOURCE = "-"


def parse_payload(payload: Any) -> List[ClassificationResult]:
    """Parse a decoded JSON payload into results ranked by descending confidence.

    Raises:
        ClassifierError: If the payload carries an error or is malformed.
    """
    if isinstance(payload, dict):
        if "error" in payload:
            raise ClassifierError(str(payload["error"]))
        items: List[Any] = [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        raise ClassifierError(f"unsupported payload type: {type(payload).__name__}")

    results: List[ClassificationResult] = []
    for item in items:
        if not isinstance(item, dict):
            raise ClassifierError(f"result entry must be an object, got {item!r}")
        try:
            results.append(ClassificationResult.from_mapping(item))
        except ValueError as exc:
            raise ClassifierError(str(exc)) from exc

    results.sort(key=lambda result: result.confidence, reverse=True)
    return results


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What happened to one payload.

    ``delivered`` is true only when results reached the callback; rejected
    payloads are still reported to the callback as classifier errors.
    """

    delivered: bool = False
    error: Optional[ClassifierError] = None
    outcome: Any = None


class ResultDispatcher:
    """Delivers parsed payloads to a result callback."""

    def __init__(
        self,
        callback: ResultCallback,
        *,
        probability_threshold: float = constants.DEFAULT_PROBABILITY_THRESHOLD,
    ) -> None:
        self._callback = callback
        self.probability_threshold = probability_threshold

    async def dispatch_line(self, line: str) -> DispatchResult:
        text = line.strip()
        if not text:
            return DispatchResult()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            return await self._reject(ClassifierError(f"invalid JSON: {exc}"))
        return await self.dispatch_payload(payload)

    async def dispatch_payload(self, payload: Any) -> DispatchResult:
        try:
            results = parse_payload(payload)
        except ClassifierError as exc:
            return await self._reject(exc)

        if not results:
            return DispatchResult()

        if results[0].confidence < self.probability_threshold:
            LOGGER.debug(
                "Skipping %r (%.2f) below threshold %.2f",
                results[0].label,
                results[0].confidence,
                self.probability_threshold,
            )
            return DispatchResult()

        outcome = await self._callback(None, results)
        return DispatchResult(delivered=True, outcome=outcome)

    async def _reject(self, error: ClassifierError) -> DispatchResult:
        outcome = await self._callback(error, [])
        return DispatchResult(error=error, outcome=outcome)


async def iter_stream_lines(handle: TextIO) -> AsyncIterator[str]:
    """Yield lines from a blocking text stream without blocking the loop."""

    while True:
        line = await asyncio.to_thread(handle.readline)
        if not line:
            return
        yield line


class JsonLinesFeed:
    """Reads newline-delimited JSON results from a stream."""

    def __init__(
        self,
        lines: AsyncIterable[str],
        *,
        probability_threshold: float = constants.DEFAULT_PROBABILITY_THRESHOLD,
        name: str = "stream",
    ) -> None:
        self._lines = lines
        self.probability_threshold = probability_threshold
        self.name = name

    @classmethod
    def open(
        cls,
        source: str,
        *,
        probability_threshold: float = constants.DEFAULT_PROBABILITY_THRESHOLD,
    ) -> "JsonLinesFeed":
        """Create a feed for a file path, FIFO, or ``-`` for standard input."""

        if source == STDIN_SOURCE:
            return cls(
                _iter_stdin_lines(),
                probability_threshold=probability_threshold,
                name="stdin",
            )
        return cls(
            _iter_file_lines(Path(source).expanduser()),
            probability_threshold=probability_threshold,
            name=source,
        )

    async def classify(self, callback: ResultCallback) -> None:
        dispatcher = ResultDispatcher(
            callback, probability_threshold=self.probability_threshold
        )
        LOGGER.info("Reading classifier results from %s", self.name)
        async for line in self._lines:
            await dispatcher.dispatch_line(line)
        LOGGER.info("Classifier feed %s exhausted", self.name)


async def _iter_stdin_lines() -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    try:
        transport, _ = await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
        )
    except ValueError:
        # Redirected from a regular file, which cannot be watched by the loop.
        async for line in iter_stream_lines(sys.stdin):
            yield line
        return

    try:
        while True:
            line = await reader.readline()
            if not line:
                return
            yield line.decode("utf-8", errors="replace")
    finally:
        transport.close()


async def _iter_file_lines(path: Path) -> AsyncIterator[str]:
    try:
        handle = await asyncio.to_thread(path.open, "r", encoding="utf-8")
    except OSError as exc:
        raise ClassifierError(f"cannot open {path}: {exc}") from exc
    try:
        async for line in iter_stream_lines(handle):
            yield line
    finally:
        handle.close()


def build_feed(
    source: Optional[str], *, probability_threshold: float
) -> Optional[JsonLinesFeed]:
    if not source:
        return None
    return JsonLinesFeed.open(source, probability_threshold=probability_threshold)
