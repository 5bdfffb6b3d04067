"""In-memory stand-ins for the pipeline's collaborators."""

import datetime as dt
from typing import Dict, List, Tuple

import pytest

from hackernews_to_podcast.errors import StorageError, TerminalGenerationError, TransientUpstreamError
from hackernews_to_podcast.models import Item
from hackernews_to_podcast.pipeline import GenerationPipeline, PipelineSettings
from hackernews_to_podcast.storage import ArtifactStore


class MemoryStore(ArtifactStore):
    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.puts: List[Tuple[str, str]] = []
        self.fail_put_prefixes: Tuple[str, ...] = ()

    def exists(self, key):
        return key in self.objects

    def get(self, key):
        if key not in self.objects:
            raise StorageError(f"missing {key}")
        return self.objects[key]

    def put(self, key, data, content_type):
        if key.startswith(self.fail_put_prefixes) and self.fail_put_prefixes:
            raise StorageError(f"put refused for {key}")
        self.objects[key] = data
        self.puts.append((key, content_type))
        return f"mem://{key}"

    def delete(self, key):
        self.objects.pop(key, None)

    def presign(self, key, expires: dt.timedelta):
        return f"mem://{key}?expires={int(expires.total_seconds())}"


class FakeFetcher:
    def __init__(self, count=5, empty_ids=()):
        self.items = [
            Item(id=str(i), title=f"Story {i}", url=f"https://example.com/{i}",
                 discussion_url=f"https://news.ycombinator.com/item?id={i}")
            for i in range(1, count + 1)
        ]
        self.empty_ids = set(empty_ids)
        self.calls: List[tuple] = []

    def list_items(self, date, limit):
        self.calls.append(("list", date, limit))
        return self.items[:limit]

    def fetch_item_content(self, item, size_cap):
        self.calls.append(("content", item.id))
        if item.id in self.empty_ids:
            return ""
        return f"<title>\n{item.title}\n</title>"


class FakeGenerator:
    """Answers by role; story payloads listed in `fail_titles` fail terminally."""

    def __init__(self, fail_titles=(), fail_roles=()):
        self.fail_titles = set(fail_titles)
        self.fail_roles = set(fail_roles)
        self.calls: List[Tuple[str, str]] = []

    def generate(self, role, payload):
        self.calls.append((role, payload))
        if role in self.fail_roles:
            raise TerminalGenerationError(role, 3)
        if role == "story":
            title = payload.split("\n")[1]
            if title in self.fail_titles:
                raise TerminalGenerationError(role, 3)
            return f"summary of {title}"
        if role == "podcast":
            return "男: 大家好\n女：欢迎收听\n\n男: 再见"
        if role == "blog":
            return "## blog\n" + payload
        if role == "intro":
            return "本期简介"
        raise AssertionError(role)


class FakeSynthesizer:
    def __init__(self, fail_texts=()):
        self.fail_texts = set(fail_texts)
        self.calls: List[Tuple[str, str]] = []

    def synthesize(self, text, speaker):
        self.calls.append((text, speaker))
        if text in self.fail_texts:
            raise TransientUpstreamError("tts down")
        return f"[{speaker}:{text}]".encode("utf-8")


def concat_merge(segments):
    return b"".join(segments)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def make_pipeline(store, fetcher, generator, synthesizer):
    def _make(**overrides):
        kwargs = dict(
            fetcher=fetcher,
            generator=generator,
            synthesizer=synthesizer,
            store=store,
            settings=PipelineSettings(env="test", default_max_items=5, pacing_delay=0.0),
            merge=concat_merge,
            sleep=lambda s: None,
        )
        kwargs.update(overrides)
        return GenerationPipeline(**kwargs)

    return _make
