from types import SimpleNamespace

import pytest

from hackernews_to_podcast import tts
from hackernews_to_podcast.config import load_config
from hackernews_to_podcast.errors import TransientUpstreamError
from hackernews_to_podcast.tts import GcpSynthesizer, build_synthesizer, split_into_chunks
from hackernews_to_podcast.tts_edge import EdgeSynthesizer, _rate_string
from hackernews_to_podcast.tts_openai import OpenAISynthesizer


@pytest.fixture
def tts_cfg(tmp_path, monkeypatch):
    monkeypatch.delenv("TTS_PROVIDER", raising=False)
    return load_config(str(tmp_path / "none.yaml")).tts


class FakeGcpClient:
    def __init__(self, failures=0, audio=b"mp3"):
        self.failures = failures
        self.audio = audio
        self.requests = []

    def synthesize_speech(self, request, timeout=None):
        self.requests.append(request)
        if self.failures:
            self.failures -= 1
            raise RuntimeError("503")
        return SimpleNamespace(audio_content=self.audio)


def test_split_into_chunks():
    chunks = split_into_chunks("一句话。第二句话！第三句？", 6)

    assert chunks == ["一句话。", "第二句话！", "第三句？"]
    assert split_into_chunks("short", 100) == ["short"]


def test_voice_selection(tts_cfg):
    synth = GcpSynthesizer(tts_cfg, client=FakeGcpClient())

    assert synth.voice_for("male") == "cmn-CN-Standard-B"
    assert synth.voice_for("female") == "cmn-CN-Standard-A"
    with pytest.raises(ValueError):
        synth.voice_for("narrator")


def test_gcp_synthesize_uses_speaker_voice(tts_cfg):
    client = FakeGcpClient()

    audio = GcpSynthesizer(tts_cfg, client=client).synthesize("你好", "male")

    assert audio == b"mp3"
    assert client.requests[0]["voice"].name == "cmn-CN-Standard-B"


def test_gcp_retries_then_fails(tts_cfg, monkeypatch):
    monkeypatch.setattr(tts.time, "sleep", lambda s: None)
    client = FakeGcpClient(failures=5)

    with pytest.raises(TransientUpstreamError):
        GcpSynthesizer(tts_cfg, client=client).synthesize("你好", "female")
    assert len(client.requests) == tts_cfg.max_retries


def test_gcp_recovers_after_retry(tts_cfg, monkeypatch):
    monkeypatch.setattr(tts.time, "sleep", lambda s: None)

    audio = GcpSynthesizer(tts_cfg, client=FakeGcpClient(failures=1)).synthesize("你好", "female")

    assert audio == b"mp3"


def test_empty_audio_is_transient(tts_cfg):
    with pytest.raises(TransientUpstreamError):
        GcpSynthesizer(tts_cfg, client=FakeGcpClient(audio=b"")).synthesize("你好", "female")


def test_empty_text_rejected(tts_cfg):
    with pytest.raises(ValueError):
        GcpSynthesizer(tts_cfg, client=FakeGcpClient()).synthesize("  ", "female")


class FakeStreamingResponse:
    def __init__(self, data):
        self.data = data

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def iter_bytes(self):
        yield from self.data


def test_openai_synthesizer(tts_cfg):
    requests = []

    def create(**kwargs):
        requests.append(kwargs)
        return FakeStreamingResponse([b"ab", b"cd"])

    speech = SimpleNamespace(with_streaming_response=SimpleNamespace(create=create))
    client = SimpleNamespace(audio=SimpleNamespace(speech=speech))

    audio = OpenAISynthesizer(tts_cfg, client=client).synthesize("hello", "female")

    assert audio == b"abcd"
    assert requests[0]["voice"] == "nova"
    assert requests[0]["response_format"] == "mp3"


def test_build_synthesizer_defaults_to_edge(tts_cfg):
    assert isinstance(build_synthesizer(tts_cfg), EdgeSynthesizer)

    tts_cfg.provider = "polly"
    assert isinstance(build_synthesizer(tts_cfg), EdgeSynthesizer)


def test_edge_rate_string():
    assert _rate_string(1.0) == "+0%"
    assert _rate_string(1.25) == "+25%"
    assert _rate_string(0.9) == "-10%"
