import io
import os
import tempfile
from urllib.parse import urlsplit

# must be set before app is imported: the engine and media folder are read at import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MEDIA_FOLDER"] = tempfile.mkdtemp(prefix="medchat-media-")
for _key in ("ANTHROPIC_API_KEY", "GROQ_API_KEY", "OPENAI_API_KEY", "LLM_MODEL"):
    os.environ.pop(_key, None)

import pytest

import app as server


class FakeLLM:
    """Stands in for app.call_llm and records every prompt it is given."""

    def __init__(self, reply="", error=None, api_key_invalid=False):
        self.reply = reply
        self.error = error
        self.api_key_invalid = api_key_invalid
        self.calls = []

    def __call__(self, messages, max_tokens=None, temperature=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply, self.api_key_invalid


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Flask test client with an empty message log and a fresh media folder."""
    monkeypatch.setitem(server.app.config, "MEDIA_FOLDER", str(tmp_path / "media"))
    server.app.config["TESTING"] = True
    with server.app.app_context():
        server.db.session.query(server.ConversationMessage).delete()
        server.db.session.commit()
    return server.app.test_client()


@pytest.fixture
def stub_llm(monkeypatch):
    def install(**kwargs):
        fake = FakeLLM(**kwargs)
        monkeypatch.setattr(server, "call_llm", fake)
        return fake
    return install


# --- requests.Session look-alike backed by the Flask test client ----------

class _Response:
    def __init__(self, flask_response):
        self.status_code = flask_response.status_code
        self._json = flask_response.get_json(silent=True)

    def json(self):
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")


class FlaskHttp:
    def __init__(self, test_client):
        self.test_client = test_client
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append(("GET", url, kwargs))
        return _Response(self.test_client.get(urlsplit(url).path))

    def post(self, url, json=None, data=None, files=None):
        self.requests.append(("POST", url, {"json": json, "data": data, "files": files}))
        path = urlsplit(url).path
        if files:
            form = dict(data or {})
            for field, (filename, payload) in files.items():
                form[field] = (io.BytesIO(payload), filename)
            return _Response(self.test_client.post(path, data=form, content_type="multipart/form-data"))
        return _Response(self.test_client.post(path, json=json))


@pytest.fixture
def flask_http(client):
    return FlaskHttp(client)
