from conversation.__main__ import handle_line
from conversation.recorder import AudioRecorder, RecorderError


class FakeSession:
    def __init__(self):
        self.sent = []
        self.audio = []

    def send(self, text):
        self.sent.append(text)

    def send_audio(self, buffer, captured_at):
        self.audio.append(buffer)

    def summarize(self):
        return "Patient reports headache."

    def search(self, query):
        self.last_query = query
        return []


class FakeSource:
    def __init__(self, payload=b"clip", error=None):
        self.payload = payload
        self.error = error

    def read(self, seconds):
        if self.error:
            raise self.error
        return self.payload


def test_plain_line_is_sent():
    s = FakeSession()
    assert handle_line(s, "I have a headache\n") is True
    assert s.sent == ["I have a headache"]


def test_blank_line_is_ignored():
    s = FakeSession()
    assert handle_line(s, "   \n") is True
    assert s.sent == []


def test_quit():
    assert handle_line(FakeSession(), "/quit") is False


def test_summary_is_printed(capsys):
    handle_line(FakeSession(), "/summary")
    assert "Patient reports headache." in capsys.readouterr().out


def test_search_passes_query(capsys):
    s = FakeSession()
    handle_line(s, "/search Fever")
    assert s.last_query == "Fever"
    assert "0 match(es)" in capsys.readouterr().out


def test_record_sends_audio():
    s = FakeSession()
    handle_line(s, "/record 3", AudioRecorder(), FakeSource(b"clip"))
    assert s.audio == [b"clip"]
    assert s.sent == []


def test_record_failure_is_reported(capsys):
    s = FakeSession()
    handle_line(s, "/record 3", AudioRecorder(), FakeSource(error=RecorderError("no device")))
    assert s.audio == []
    assert "recording failed: no device" in capsys.readouterr().out


def test_record_bad_duration(capsys):
    s = FakeSession()
    handle_line(s, "/record soon", AudioRecorder(), FakeSource())
    assert "usage" in capsys.readouterr().out


def test_command_word_must_match_exactly(capsys):
    s = FakeSession()
    handle_line(s, "/searchfoo")
    handle_line(s, "/recordings", AudioRecorder(), FakeSource())
    out = capsys.readouterr().out
    assert out.count("unknown command") == 2
    assert not hasattr(s, "last_query")
    assert s.audio == [] and s.sent == []


def test_record_defaults_to_five_seconds():
    seen = []

    class Source(FakeSource):
        def read(self, seconds):
            seen.append(seconds)
            return b"clip"

    s = FakeSession()
    handle_line(s, "/record", AudioRecorder(), Source())
    assert seen == [5]
