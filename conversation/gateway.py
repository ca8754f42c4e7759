"""
gateway.py
----------
HTTP access to the conversation service.

Translation and summary responses are read whatever the status code: a 500
from those endpoints still carries a usable body (the original text, or the
fixed summary error string). Message-log and media calls raise
requests.HTTPError on failure and are left for the caller to deal with.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class ApiGateway:
    def __init__(self, base_url: str, http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def translate(self, text: str, to_lang: str) -> str:
        r = self.http.post(self._url("/api/translate"), json={"text": text, "toLang": to_lang})
        if r.status_code >= 500:
            logger.warning("translation degraded to pass-through (status %s)", r.status_code)
        return r.json()["translatedText"]

    def summarize(self, transcript: str) -> str:
        r = self.http.post(self._url("/api/summary"), json={"text": transcript})
        if r.status_code >= 500:
            logger.warning("summary failed upstream (status %s)", r.status_code)
        return r.json()["summary"]

    def append_message(self, record: Dict[str, Any]) -> Dict[str, Any]:
        r = self.http.post(self._url("/api/messages"), json=record)
        r.raise_for_status()
        return r.json()

    def list_messages(self) -> List[Dict[str, Any]]:
        r = self.http.get(self._url("/api/messages"))
        r.raise_for_status()
        return r.json()["messages"]

    def upload_media(self, buffer: bytes, captured_at: int, filename: str = "recording.webm") -> str:
        r = self.http.post(
            self._url("/api/media"),
            data={"capturedAt": str(captured_at)},
            files={"file": (filename, buffer)},
        )
        r.raise_for_status()
        return r.json()["url"]
