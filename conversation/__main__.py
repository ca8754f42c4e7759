"""
Terminal front end for a conversation session.

    python -m conversation --role doctor
    python -m conversation --role patient --server http://clinic:5001

Type a line to send it. Commands: /summary, /search <text>, /record <seconds>, /quit
"""

import argparse
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from conversation.gateway import ApiGateway
from conversation.messages import ROLES, describe
from conversation.recorder import AudioRecorder, FfmpegSource, RecorderError, record_clip
from conversation.session import ConversationSession


def _print_log(messages):
    print("\n--- conversation ---")
    for m in messages:
        print(describe(m))
    print("--------------------")


def handle_line(
    session: ConversationSession,
    line: str,
    recorder: Optional[AudioRecorder] = None,
    source: Optional[FfmpegSource] = None,
) -> bool:
    """Run one input line. Returns False when the user asked to quit."""
    line = line.strip()
    if not line:
        return True
    if not line.startswith("/"):
        session.send(line)
        return True

    command, _, arg = line.partition(" ")
    arg = arg.strip()
    if command == "/quit":
        return False
    if command == "/summary":
        print("\nSUMMARY:\n" + session.summarize())
        return True
    if command == "/search":
        matches = session.search(arg)
        print(f"{len(matches)} match(es)")
        for m in matches:
            print(describe(m))
        return True
    if command == "/record":
        try:
            seconds = int(arg or "5")
        except ValueError:
            print("usage: /record <seconds>")
            return True
        try:
            recording = record_clip(recorder or AudioRecorder(), source or FfmpegSource(), seconds)
        except RecorderError as e:
            print(f"recording failed: {e}")
            return True
        session.send_audio(recording.buffer, recording.captured_at)
        return True

    print(f"unknown command: {command} (try /summary, /search, /record, /quit)")
    return True


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser(prog="conversation", description="Doctor / patient translated chat")
    parser.add_argument("--role", choices=ROLES, required=True)
    parser.add_argument("--server", default=os.getenv("MEDCHAT_SERVER", "http://localhost:5001"))
    parser.add_argument("--poll", type=float, default=float(os.getenv("MEDCHAT_POLL_INTERVAL", "1.0")))
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="[%(asctime)s] %(levelname)s - %(message)s",
    )

    recorder = AudioRecorder()
    source = FfmpegSource()
    with ConversationSession(ApiGateway(args.server), poll_interval=args.poll) as session:
        session.on_update = _print_log
        session.select_role(args.role)
        print(f"Logged in as {args.role}. Commands: /summary, /search <text>, /record <seconds>, /quit")
        for line in sys.stdin:
            if not handle_line(session, line, recorder, source):
                break
    return 0


if __name__ == "__main__":
    sys.exit(main())
