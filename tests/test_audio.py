import os
import subprocess
import tempfile

import pytest

from hackernews_to_podcast import audio
from hackernews_to_podcast.audio import merge_segments, tag_mp3
from hackernews_to_podcast.errors import MergeError


class FakeFfmpeg:
    """Concatenates the files named in the concat manifest, like `-c copy` would."""

    def __init__(self, returncode=0, write_output=True):
        self.returncode = returncode
        self.write_output = write_output
        self.cmd = None
        self.workdir = None

    def __call__(self, cmd, **kwargs):
        self.cmd = cmd
        manifest = cmd[cmd.index("-i") + 1]
        out_path = cmd[-1]
        self.workdir = os.path.dirname(manifest)
        if self.write_output and self.returncode == 0:
            with open(manifest, encoding="utf-8") as f:
                paths = [line[len("file '"):-1] for line in f.read().splitlines() if line]
            with open(out_path, "wb") as out:
                for p in paths:
                    with open(p, "rb") as seg:
                        out.write(seg.read())
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr="boom\nbad input")


def test_merge_keeps_order_and_cleans_up(monkeypatch):
    fake = FakeFfmpeg()
    monkeypatch.setattr(audio.subprocess, "run", fake)

    merged = merge_segments([b"one-", b"two-", b"three"], ffmpeg_bin="/opt/ffmpeg")

    assert merged == b"one-two-three"
    assert fake.cmd[:7] == ["/opt/ffmpeg", "-y", "-f", "concat", "-safe", "0", "-i"]
    assert fake.cmd[-3:-1] == ["-c", "copy"]
    assert not os.path.exists(fake.workdir)


def test_merge_requires_segments():
    with pytest.raises(MergeError):
        merge_segments([])


def test_merge_nonzero_exit(monkeypatch):
    fake = FakeFfmpeg(returncode=1)
    monkeypatch.setattr(audio.subprocess, "run", fake)

    with pytest.raises(MergeError, match="bad input"):
        merge_segments([b"a"])
    assert not os.path.exists(fake.workdir)


def test_merge_missing_output(monkeypatch):
    monkeypatch.setattr(audio.subprocess, "run", FakeFfmpeg(write_output=False))

    with pytest.raises(MergeError, match="no output"):
        merge_segments([b"a"])


def test_merge_ffmpeg_not_installed(monkeypatch):
    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(audio.subprocess, "run", missing)

    with pytest.raises(MergeError, match="not found"):
        merge_segments([b"a"], ffmpeg_bin="nope")


def test_merge_timeout(monkeypatch):
    def slow(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

    monkeypatch.setattr(audio.subprocess, "run", slow)

    with pytest.raises(MergeError, match="timed out"):
        merge_segments([b"a"], timeout=1)


def test_tag_mp3_keeps_payload():
    data = b"\xff\xfb\x90\x00" + b"\x00" * 64

    tagged = tag_mp3(data, title="Hacker News 每日播客 2025-04-23", artist="HN", date_str="2025-04-23")

    assert tagged.endswith(data)


def test_merge_filesystem_failure_is_merge_error(monkeypatch, tmp_path):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "missing"))

    with pytest.raises(MergeError, match="cannot prepare"):
        merge_segments([b"a", b"b"])


def test_merge_decodes_stderr_leniently(monkeypatch):
    seen = {}

    def failing(cmd, **kwargs):
        seen.update(kwargs)
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="� bad frame")

    monkeypatch.setattr(audio.subprocess, "run", failing)

    with pytest.raises(MergeError, match="bad frame"):
        merge_segments([b"a"])
    assert seen["errors"] == "replace"


def test_tag_mp3_filesystem_failure_keeps_data(monkeypatch, tmp_path):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "missing"))

    assert tag_mp3(b"raw", title="t") == b"raw"
