"""
session.py
----------
One participant's conversation session.

    UNSELECTED ──select_role()──▶ ACTIVE   (once; no way back)

Entering ACTIVE opens the session's single live subscription; close() ends
it. The local message list is only ever replaced by snapshots from that
subscription — sending never appends locally, a sent message shows up when
the log delivers it back.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from conversation.gateway import ApiGateway
from conversation.messages import (
    AUDIO_PLACEHOLDER,
    DEFAULT_TARGET_LANGUAGES,
    ROLES,
    Message,
    build_transcript,
    filter_messages,
    message_from_record,
)
from conversation.subscription import DEFAULT_POLL_INTERVAL, LiveSubscription

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    pass


class SessionState(Enum):
    UNSELECTED = "unselected"
    ACTIVE = "active"


class ConversationSession:
    def __init__(
        self,
        gateway: ApiGateway,
        target_languages: Optional[Dict[str, str]] = None,
        subscription_factory: Optional[Callable] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.gateway = gateway
        self.target_languages = dict(target_languages or DEFAULT_TARGET_LANGUAGES)
        missing = [r for r in ROLES if r not in self.target_languages]
        if missing:
            raise ValueError(f"no target language configured for: {', '.join(missing)}")

        self._subscription_factory = subscription_factory or (
            lambda fetch, callback: LiveSubscription(fetch, callback, interval=poll_interval)
        )
        self.state = SessionState.UNSELECTED
        self.role: Optional[str] = None
        self.messages: Tuple[Message, ...] = ()
        self.on_update: Optional[Callable[[Tuple[Message, ...]], None]] = None
        self._subscription = None

    # ------------------------------------------------------------------ #
    # Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    def select_role(self, role: str) -> None:
        if role not in ROLES:
            raise ValueError(f"role must be one of: {', '.join(ROLES)}")
        if self.state is not SessionState.UNSELECTED:
            raise SessionError(f"role already selected ({self.role})")

        # the session only becomes ACTIVE once its subscription is running
        subscription = self._subscription_factory(self.gateway.list_messages, self._on_snapshot)
        subscription.start()

        self._subscription = subscription
        self.role = role
        self.state = SessionState.ACTIVE
        logger.info("Session active as %s", role)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.stop()
            self._subscription = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def _on_snapshot(self, records) -> None:
        self.messages = tuple(message_from_record(r) for r in records)
        if self.on_update is not None:
            self.on_update(self.messages)

    def _require_active(self) -> None:
        if self.state is not SessionState.ACTIVE:
            raise SessionError("select a role first")

    # ------------------------------------------------------------------ #
    # Send / summary / search                                             #
    # ------------------------------------------------------------------ #

    @property
    def target_language(self) -> str:
        self._require_active()
        return self.target_languages[self.role]

    def send(self, text: str, audio_url: Optional[str] = None) -> Optional[Message]:
        """Translate, then append. Blank text is ignored."""
        self._require_active()
        if not text or not text.strip():
            return None

        translated = self.gateway.translate(text, self.target_language)
        record = {
            "text": text,
            "translatedText": translated,
            "role": self.role,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if audio_url:
            record["audioUrl"] = audio_url
        stored = self.gateway.append_message(record)
        return message_from_record(stored)

    def send_audio(self, buffer: bytes, captured_at: int, filename: str = "recording.webm") -> Message:
        """Upload a finished recording and post it as an audio message."""
        self._require_active()
        url = self.gateway.upload_media(buffer, captured_at, filename)
        return self.send(AUDIO_PLACEHOLDER, audio_url=url)

    def transcript(self) -> str:
        self._require_active()
        return build_transcript(self.messages)

    def summarize(self) -> str:
        return self.gateway.summarize(self.transcript())

    def search(self, query: str) -> list:
        self._require_active()
        return filter_messages(self.messages, query)
