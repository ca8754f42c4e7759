"""
messages.py
-----------
Client-side projection of the shared message log.

A stored record becomes exactly one of two immutable variants:
  TextMessage   – typed message, no audio
  AudioMessage  – recorded message, carries the durable audio URL

Pure Python — NO network calls.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Union

DOCTOR = "doctor"
PATIENT = "patient"
ROLES = (DOCTOR, PATIENT)

# Sender role -> language the message is translated into
DEFAULT_TARGET_LANGUAGES = {
    DOCTOR: "es",
    PATIENT: "en",
}

AUDIO_PLACEHOLDER = "Audio message"


@dataclass(frozen=True)
class TextMessage:
    id: str
    text: str
    translated_text: str
    role: str
    timestamp: datetime


@dataclass(frozen=True)
class AudioMessage:
    id: str
    text: str
    translated_text: str
    role: str
    timestamp: datetime
    audio_url: str


Message = Union[TextMessage, AudioMessage]


def parse_timestamp(raw: str) -> datetime:
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def message_from_record(record: dict) -> Message:
    """Build the right variant from a message-log JSON record."""
    common = {
        "id": record["id"],
        "text": record["text"],
        "translated_text": record.get("translatedText") or "",
        "role": record["role"],
        "timestamp": parse_timestamp(record["timestamp"]),
    }
    audio_url = record.get("audioUrl")
    if audio_url:
        return AudioMessage(audio_url=audio_url, **common)
    return TextMessage(**common)


def describe(message: Message) -> str:
    """One-line rendering used by the terminal front end."""
    speaker = "Doctor" if message.role == DOCTOR else "Patient"
    if isinstance(message, AudioMessage):
        return f"{speaker}: [{message.text}] {message.audio_url}\n    {message.translated_text}"
    if isinstance(message, TextMessage):
        return f"{speaker}: {message.text}\n    {message.translated_text}"
    raise TypeError(f"unknown message type: {type(message).__name__}")


def build_transcript(messages: Iterable[Message]) -> str:
    """Render messages as "<role>: <text>" lines, in the order given."""
    return "\n".join(f"{m.role}: {m.text}" for m in messages)


def filter_messages(messages: Iterable[Message], query: str) -> list:
    """
    Case-insensitive substring match against the original or translated text.

    View-only: the input is never modified and an empty query keeps everything.
    """
    needle = (query or "").lower()
    return [
        m for m in messages
        if needle in m.text.lower() or needle in m.translated_text.lower()
    ]
