from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import List, Optional, Sequence

from mutagen.easyid3 import EasyID3
from mutagen.id3 import ID3, ID3NoHeaderError, WOAF

from .errors import MergeError


logger = logging.getLogger(__name__)


def merge_segments(
    segments: Sequence[bytes],
    ffmpeg_bin: str = "ffmpeg",
    timeout: Optional[float] = None,
) -> bytes:
    """Concatenate MP3 segments in the given order without re-encoding.

    Uses the ffmpeg concat demuxer with `-c copy`. The temporary directory
    holding segments, manifest and output is removed on every path. Any
    filesystem or ffmpeg failure surfaces as MergeError.
    """
    if not segments:
        raise MergeError("no audio segments to merge")

    try:
        merged = _concat_in_tempdir(segments, ffmpeg_bin, timeout)
    except OSError as e:
        raise MergeError(f"cannot prepare or read merge files: {e}") from e

    if not merged:
        raise MergeError("ffmpeg produced an empty file")
    logger.info("Merged audio segments", extra={"segments": len(segments), "bytes": len(merged)})
    return merged


def _concat_in_tempdir(segments: Sequence[bytes], ffmpeg_bin: str, timeout: Optional[float]) -> bytes:
    with tempfile.TemporaryDirectory(prefix="audio-merge-") as tmp:
        manifest = os.path.join(tmp, "filelist.txt")
        lines: List[str] = []
        for i, seg in enumerate(segments):
            seg_path = os.path.join(tmp, f"seg{i:04d}.mp3")
            with open(seg_path, "wb") as f:
                f.write(seg)
            lines.append(f"file '{seg_path}'")
        with open(manifest, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

        out_path = os.path.join(tmp, "merged.mp3")
        cmd = [ffmpeg_bin, "-y", "-f", "concat", "-safe", "0", "-i", manifest, "-c", "copy", out_path]
        try:
            proc = subprocess.run(
                cmd, capture_output=True, text=True, errors="replace", timeout=timeout, check=False
            )
        except FileNotFoundError as e:
            raise MergeError(f"ffmpeg not found: {ffmpeg_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise MergeError("ffmpeg concat timed out") from e
        if proc.returncode != 0:
            tail = (proc.stderr or "").strip().splitlines()[-3:]
            raise MergeError(f"ffmpeg concat failed ({proc.returncode}): {' | '.join(tail)}")
        if not os.path.exists(out_path):
            raise MergeError("ffmpeg produced no output file")
        with open(out_path, "rb") as f:
            return f.read()


def tag_mp3(data: bytes, title: str, artist: str = "", date_str: str = "", link: str = "") -> bytes:
    """Return `data` with ID3 title/artist/date tags; untagged bytes on failure."""
    try:
        with tempfile.TemporaryDirectory(prefix="audio-tag-") as tmp:
            path = os.path.join(tmp, "episode.mp3")
            with open(path, "wb") as f:
                f.write(data)
            try:
                tags = EasyID3(path)
            except ID3NoHeaderError:
                tags = EasyID3()
                tags.save(path)
                tags = EasyID3(path)
            tags["title"] = title
            if artist:
                tags["artist"] = artist
            if date_str:
                tags["date"] = date_str
            tags.save()
            if link:
                id3 = ID3(path)
                id3.add(WOAF(url=link))
                id3.save(v2_version=3)
            with open(path, "rb") as f:
                return f.read()
    except Exception as e:  # noqa: BLE001
        logger.warning("ID3 tagging failed; keeping untagged audio", extra={"error": str(e)})
        return data
