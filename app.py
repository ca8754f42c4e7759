"""
MedChat Translate – Doctor / Patient Conversation Service
==========================================================

Server side of a two-party healthcare chat:
  • Translation endpoint   – every outbound message is translated before it is stored
  • Summary endpoint       – on-demand clinical summary of the whole transcript
  • Message log            – append-only, ordered by send time
  • Media store            – write-once audio blobs behind durable URLs
"""

import os
import time
import uuid
from datetime import datetime, timezone

import anthropic
from dotenv import load_dotenv
from flask import Flask, request, jsonify, send_from_directory, url_for
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from openai import OpenAI, AuthenticationError
from werkzeug.utils import secure_filename

load_dotenv()

app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///medchat.db")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["MEDIA_FOLDER"] = os.path.abspath(os.getenv("MEDIA_FOLDER", "media"))
CORS(app)
app.json.sort_keys = False

db = SQLAlchemy(app)

ROLES = ("doctor", "patient")

NO_SUMMARY = "No summary available."
SUMMARY_ERROR = "Error generating summary."

SUMMARY_SYSTEM_PROMPT = (
    "Summarize the following healthcare conversation. "
    "Highlight medically important points such as symptoms, diagnoses, "
    "medications, and follow-up actions. Keep it concise."
)

# ---------------------------------------------------------------------------
# LLM Client — supports Claude (Anthropic), Groq, OpenAI
# Priority order: ANTHROPIC_API_KEY > GROQ_API_KEY > OPENAI_API_KEY
# ---------------------------------------------------------------------------

_llm_client = None   # cached OpenAI-compatible client

# Anthropic rejects requests without max_tokens
ANTHROPIC_DEFAULT_MAX_TOKENS = 1024


def _resolve_provider():
    """Detect which provider to use based on available env vars."""
    anthropic_key = os.getenv("ANTHROPIC_API_KEY", "")
    groq_key      = os.getenv("GROQ_API_KEY", "")
    openai_key    = os.getenv("OPENAI_API_KEY", "")

    if anthropic_key:
        return {
            "type": "anthropic", "name": "Claude",
            "api_key": anthropic_key,
            "model": os.getenv("LLM_MODEL", "claude-3-5-haiku-latest"),
        }
    if groq_key:
        return {
            "type": "openai_compat", "name": "Groq",
            "api_key": groq_key,
            "base_url": "https://api.groq.com/openai/v1",
            "model": os.getenv("LLM_MODEL", "llama-3.3-70b-versatile"),
        }
    if openai_key:
        return {
            "type": "openai_compat", "name": "OpenAI",
            "api_key": openai_key,
            "base_url": None,
            "model": os.getenv("LLM_MODEL", "gpt-3.5-turbo"),
        }
    return None


def call_llm(messages, max_tokens=None, temperature=None):
    """
    Single, non-streamed chat completion against whichever provider is configured.

    Returns (text, api_key_invalid):
      - (str,  False) on success; the string may be empty
      - (None, True)  if the API key was rejected (auth error)
      - (None, False) if no provider is configured
    Raises other exceptions for transient/unexpected errors.

    max_tokens / temperature are only sent when given, so callers that pass
    nothing run with the provider defaults.
    """
    global _llm_client
    provider = _resolve_provider()
    if not provider:
        return None, False

    # ---- Anthropic Claude ----
    if provider["type"] == "anthropic":
        system_msg = next((m["content"] for m in messages if m["role"] == "system"), "")
        chat_msgs  = [m for m in messages if m["role"] != "system"]

        kwargs = {
            "model": provider["model"],
            "messages": chat_msgs,
            "max_tokens": max_tokens or ANTHROPIC_DEFAULT_MAX_TOKENS,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if system_msg:
            kwargs["system"] = system_msg

        try:
            client = anthropic.Anthropic(api_key=provider["api_key"])
            resp = client.messages.create(**kwargs)
        except anthropic.AuthenticationError:
            return None, True
        return "".join(block.text for block in resp.content if block.type == "text"), False

    # ---- OpenAI-compatible (Groq / OpenAI) ----
    oa_kwargs = {"api_key": provider["api_key"]}
    if provider.get("base_url"):
        oa_kwargs["base_url"] = provider["base_url"]
    if _llm_client is None or _llm_client.api_key != provider["api_key"]:
        _llm_client = OpenAI(**oa_kwargs)

    kwargs = {"model": provider["model"], "messages": messages}
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if temperature is not None:
        kwargs["temperature"] = temperature
    try:
        resp = _llm_client.chat.completions.create(**kwargs)
    except AuthenticationError:
        return None, True
    return resp.choices[0].message.content or "", False


# ---------------------------------------------------------------------------
# Database Models
# ---------------------------------------------------------------------------

class ConversationMessage(db.Model):
    __tablename__ = "conversation_message"

    # seq is the arrival order; it breaks ties between equal timestamps
    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    text = db.Column(db.Text, nullable=False)
    translated_text = db.Column(db.Text, nullable=False, default="")
    audio_url = db.Column(db.Text)
    role = db.Column(db.String(20), nullable=False)     # doctor | patient
    timestamp = db.Column(db.DateTime, nullable=False)  # UTC, stamped by the sender

    def to_dict(self):
        record = {
            "id": self.id,
            "text": self.text,
            "translatedText": self.translated_text,
            "role": self.role,
            "timestamp": _as_utc(self.timestamp).isoformat(),
        }
        if self.audio_url:
            record["audioUrl"] = self.audio_url
        return record


def _as_utc(value):
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(raw):
    """Parse an ISO 8601 timestamp into a naive UTC datetime for storage."""
    if raw is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    if not isinstance(raw, str):
        raise ValueError(f"timestamp must be an ISO 8601 string, got {type(raw).__name__}")
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    return _as_utc(parsed).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Prompt Builders
# ---------------------------------------------------------------------------

def _build_translation_messages(text, to_lang):
    return [
        {
            "role": "system",
            "content": f"Translate the following text to {to_lang}. Only return the translated text.",
        },
        {"role": "user", "content": text},
    ]


def _build_summary_messages(transcript):
    return [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": transcript},
    ]


# ---------------------------------------------------------------------------
# API Routes — Translation & Summary
# ---------------------------------------------------------------------------

@app.route("/api/translate", methods=["POST"])
@app.route("/translate", methods=["POST"])
def translate_text():
    """Translate one message; on any failure hand the original text back."""
    data = request.json
    text = data.get("text")
    to_lang = data.get("toLang")

    try:
        translated, api_key_invalid = call_llm(_build_translation_messages(text, to_lang))
    except Exception as e:
        app.logger.error("LLM translation error: %s", e)
        return jsonify({"translatedText": text}), 500

    if translated is None:
        app.logger.error(
            "LLM translation unavailable: %s",
            "API key rejected" if api_key_invalid else "no API key configured",
        )
        return jsonify({"translatedText": text}), 500

    return jsonify({"translatedText": translated.strip() or text})


@app.route("/api/summary", methods=["POST"])
@app.route("/summary", methods=["POST"])
def summarize_conversation():
    data = request.json
    transcript = data.get("text")

    try:
        summary, api_key_invalid = call_llm(_build_summary_messages(transcript))
    except Exception as e:
        app.logger.error("LLM summary error: %s", e)
        return jsonify({"summary": SUMMARY_ERROR}), 500

    if summary is None:
        app.logger.error(
            "LLM summary unavailable: %s",
            "API key rejected" if api_key_invalid else "no API key configured",
        )
        return jsonify({"summary": SUMMARY_ERROR}), 500

    return jsonify({"summary": summary.strip() or NO_SUMMARY})


# ---------------------------------------------------------------------------
# API Routes — Message Log (append-only)
# ---------------------------------------------------------------------------

@app.route("/api/messages", methods=["GET"])
def list_messages():
    """Full ordered snapshot of the conversation."""
    rows = ConversationMessage.query.order_by(
        ConversationMessage.timestamp, ConversationMessage.seq
    ).all()
    return jsonify({"messages": [m.to_dict() for m in rows], "count": len(rows)})


@app.route("/api/messages", methods=["POST"])
def append_message():
    data = request.get_json(silent=True) or {}

    text = data.get("text")
    role = data.get("role")
    if not isinstance(text, str) or not text:
        return jsonify({"error": "text is required"}), 400
    if role not in ROLES:
        return jsonify({"error": f"role must be one of: {', '.join(ROLES)}"}), 400
    try:
        timestamp = _parse_timestamp(data.get("timestamp"))
    except ValueError as e:
        return jsonify({"error": f"invalid timestamp: {e}"}), 400

    message = ConversationMessage(
        text=text,
        translated_text=data.get("translatedText") or "",
        audio_url=data.get("audioUrl") or None,
        role=role,
        timestamp=timestamp,
    )
    db.session.add(message)
    db.session.commit()

    app.logger.info("Appended %s message %s", role, message.id)
    return jsonify(message.to_dict()), 201


# ---------------------------------------------------------------------------
# API Routes — Media (write-once audio blobs)
# ---------------------------------------------------------------------------

@app.route("/api/media", methods=["POST"])
def upload_media():
    raw_captured = request.values.get("capturedAt")
    if raw_captured is None:
        captured_at = int(time.time() * 1000)
    else:
        try:
            captured_at = int(raw_captured)
        except ValueError:
            return jsonify({"error": "capturedAt must be epoch milliseconds"}), 400

    upload = request.files.get("file")
    if upload is not None:
        payload = upload.read()
        ext = os.path.splitext(secure_filename(upload.filename or ""))[1] or ".webm"
    else:
        payload = request.get_data()
        ext = ".webm"
    if not payload:
        return jsonify({"error": "No audio uploaded. Use form field 'file' or a raw body."}), 400

    key = secure_filename(f"audio_{captured_at}{ext}")
    folder = app.config["MEDIA_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    try:
        with open(os.path.join(folder, key), "xb") as f:
            f.write(payload)
    except FileExistsError:
        return jsonify({"error": f"media '{key}' already exists"}), 409

    app.logger.info("Stored media %s (%d bytes)", key, len(payload))
    return jsonify({"url": url_for("serve_media", key=key, _external=True), "key": key}), 201


@app.route("/media/<path:key>", methods=["GET"])
def serve_media(key):
    return send_from_directory(app.config["MEDIA_FOLDER"], key)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.route("/health", methods=["GET"])
def health():
    provider = _resolve_provider()
    return jsonify({"status": "ok", "provider": provider["name"] if provider else None})


# ---------------------------------------------------------------------------
# Init DB & Run
# ---------------------------------------------------------------------------

with app.app_context():
    db.create_all()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 5001))
    app.run(debug=True, port=port)
