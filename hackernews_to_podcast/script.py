"""Podcast script parsing: tagged dialogue lines to speaker turns, plus a
rough subtitle track estimated from text length."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .models import FEMALE, MALE, ScriptTurn


MALE_LABELS = ("男", "male")
COLONS = (":", "：")

_SENTENCE_SPLIT = re.compile(r"[，。！？；,.!?;]+")


def split_label(line: str) -> Tuple[Optional[str], str]:
    """Split `label: text` at the first ASCII or full-width colon.

    Returns (label, text); label is None when the line has no colon.
    """
    positions = [p for p in (line.find(c) for c in COLONS) if p != -1]
    if not positions:
        return None, line.strip()
    idx = min(positions)
    return line[:idx].strip(), line[idx + 1 :].strip()


def speaker_for(line: str) -> str:
    stripped = line.lstrip()
    lowered = stripped.lower()
    for label in MALE_LABELS:
        if lowered.startswith(label) and stripped[len(label) : len(label) + 1] in COLONS:
            return MALE
    return FEMALE


def parse_turns(script: str) -> List[ScriptTurn]:
    turns: List[ScriptTurn] = []
    for line in (script or "").splitlines():
        if not line.strip():
            continue
        _, text = split_label(line)
        if not text:
            continue
        turns.append(ScriptTurn(index=len(turns), speaker=speaker_for(line), text=text))
    return turns


def split_sentences(text: str) -> List[str]:
    parts = [p.strip() for p in _SENTENCE_SPLIT.split(text)]
    sentences = [p for p in parts if p]
    return sentences or [text]


def format_srt_time(seconds: float) -> str:
    millis = int(round(seconds * 1000))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def build_srt(turns: List[ScriptTurn], seconds_per_char: float = 0.3) -> str:
    """Estimate an SRT track; timing is a guess from character counts."""
    cues: List[str] = []
    start = 0.0
    for turn in turns:
        for sentence in split_sentences(turn.text):
            end = start + len(sentence) * seconds_per_char
            cues.append(
                f"{len(cues) + 1}\n{format_srt_time(start)} --> {format_srt_time(end)}\n{sentence}\n"
            )
            start = end
    return "\n".join(cues)
