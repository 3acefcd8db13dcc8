"""Command vocabulary shared by the listener and the relay.

The vocabulary is a single ordered table mapping a spoken label to a
:class:`CommandCode` and the bytes written to the peripheral for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional


class CommandCode(int, Enum):
    """Command codes understood by the peripheral firmware."""

    GO = 0
    REVERSE = 1
    STOP = 2
    LEFT = 3
    RIGHT = 4

    @property
    def digit(self) -> str:
        return str(self.value)

    @property
    def payload(self) -> bytes:
        """Newline-terminated ASCII digit, exactly two bytes."""
        return f"{self.digit}\n".encode("ascii")


@dataclass(frozen=True, slots=True)
class VocabularyEntry:
    label: str
    code: CommandCode

    @property
    def payload(self) -> bytes:
        return self.code.payload


# "down" drives the vehicle in reverse.
VOCABULARY: tuple[VocabularyEntry, ...] = (
    VocabularyEntry("go", CommandCode.GO),
    VocabularyEntry("down", CommandCode.REVERSE),
    VocabularyEntry("stop", CommandCode.STOP),
    VocabularyEntry("left", CommandCode.LEFT),
    VocabularyEntry("right", CommandCode.RIGHT),
)

LABEL_TO_CODE: Mapping[str, CommandCode] = MappingProxyType(
    {entry.label: entry.code for entry in VOCABULARY}
)


def lookup(label: str) -> Optional[CommandCode]:
    """Return the command for ``label`` or ``None`` when it is not a command word."""

    return LABEL_TO_CODE.get(label)


def labels() -> Iterator[str]:
    for entry in VOCABULARY:
        yield entry.label


def parse_command(value: str) -> Optional[CommandCode]:
    """Resolve a label ("left"), digit ("3") or code name ("LEFT")."""

    text = value.strip()
    code = lookup(text.lower())
    if code is not None:
        return code
    if text.isdigit():
        try:
            return CommandCode(int(text))
        except ValueError:
            return None
    try:
        return CommandCode[text.upper()]
    except KeyError:
        return None


def describe_commands() -> str:
    """Operator hint listing the spoken commands."""

    quoted = ", ".join(f'"{label}"' for label in labels())
    return f"Commands: {quoted}"
