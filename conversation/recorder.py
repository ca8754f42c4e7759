"""
recorder.py
-----------
Audio capture as an explicit state machine:

    IDLE → CAPTURING → FINALIZING → IDLE

start() opens a capture, write() appends raw chunks, stop() finalizes them
into ONE owned bytes buffer and hands it straight back to the caller (which
uploads it). Any call made in the wrong state raises RecorderError.

FfmpegSource is the microphone side: it records a fixed-length clip with the
ffmpeg binary and returns the encoded bytes.
"""

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class RecorderError(RuntimeError):
    pass


class RecorderState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"


@dataclass(frozen=True)
class Recording:
    buffer: bytes
    captured_at: int   # epoch milliseconds at start()


class AudioRecorder:
    def __init__(self):
        self.state = RecorderState.IDLE
        self._chunks: List[bytes] = []
        self._captured_at = 0

    def start(self) -> None:
        if self.state is not RecorderState.IDLE:
            raise RecorderError(f"cannot start while {self.state.value}")
        self._chunks = []
        self._captured_at = int(time.time() * 1000)
        self.state = RecorderState.CAPTURING

    def write(self, chunk: bytes) -> None:
        if self.state is not RecorderState.CAPTURING:
            raise RecorderError(f"cannot write while {self.state.value}")
        if chunk:
            self._chunks.append(bytes(chunk))

    def stop(self) -> Recording:
        if self.state is not RecorderState.CAPTURING:
            raise RecorderError(f"cannot stop while {self.state.value}")
        self.state = RecorderState.FINALIZING
        try:
            recording = Recording(buffer=b"".join(self._chunks), captured_at=self._captured_at)
        finally:
            self._chunks = []
            self.state = RecorderState.IDLE
        logger.info("Finalized recording (%d bytes)", len(recording.buffer))
        return recording


class FfmpegSource:
    """Record a clip from the default input device via ffmpeg."""

    def __init__(self, input_format: Optional[str] = None, device: Optional[str] = None, sample_rate: int = 16000):
        self.input_format = input_format or os.getenv("AUDIO_INPUT_FORMAT", "avfoundation")
        self.device = device or os.getenv("AUDIO_DEVICE", ":0")
        self.sample_rate = sample_rate

    def command(self, seconds: int) -> List[str]:
        return [
            "ffmpeg",
            "-nostdin",
            "-loglevel", "error",
            "-f", self.input_format,
            "-i", self.device,
            "-t", str(seconds),
            "-ar", str(self.sample_rate),
            "-ac", "1",
            "-f", "webm",
            "pipe:1",
        ]

    def read(self, seconds: int) -> bytes:
        timeout_s = max(seconds + 4, 8)
        try:
            p = subprocess.run(self.command(seconds), capture_output=True, timeout=timeout_s)
        except subprocess.TimeoutExpired as exc:
            raise RecorderError(f"ffmpeg timed out after {timeout_s}s (device {self.device})") from exc
        if p.returncode != 0:
            err = (p.stderr or b"").decode(errors="replace").strip()[-800:]
            raise RecorderError(f"ffmpeg capture failed: {err or f'returncode={p.returncode}'}")
        return p.stdout


def record_clip(recorder: AudioRecorder, source: FfmpegSource, seconds: int) -> Recording:
    recorder.start()
    try:
        recorder.write(source.read(seconds))
    except Exception:
        recorder.stop()
        raise
    return recorder.stop()
