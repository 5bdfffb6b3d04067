from __future__ import annotations

import datetime as dt
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from dateutil import parser as dateparser

from .errors import ArtifactFormatError


MALE = "male"
FEMALE = "female"
SPEAKERS = (MALE, FEMALE)

PART_SEPARATOR = "\n\n---\n\n"


def normalize_date(value: Union[str, dt.date, None] = None) -> str:
    """Return the ISO `YYYY-MM-DD` date key for `value`.

    Empty values mean "today" (local time at invocation). Strings are parsed
    with dateutil so `2025/04/23` or `April 23, 2025` are accepted too.
    """
    if value is None or value == "":
        return dt.date.today().isoformat()
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    try:
        parsed = dateparser.parse(str(value).strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid date: {value!r}") from e
    if parsed is None:
        raise ValueError(f"invalid date: {value!r}")
    return parsed.date().isoformat()


@dataclass(frozen=True)
class Item:
    id: str
    title: str
    url: str
    discussion_url: str


@dataclass
class ItemContent:
    title: str
    article: str = ""
    comments: str = ""

    def to_payload(self) -> str:
        parts: List[str] = []
        if self.title:
            parts.append(f"<title>\n{self.title}\n</title>")
        if self.article:
            parts.append(f"<article>\n{self.article}\n</article>")
        if self.comments:
            parts.append(f"<comments>\n{self.comments}\n</comments>")
        return PART_SEPARATOR.join(parts)

    @property
    def has_body(self) -> bool:
        return bool(self.article or self.comments)


@dataclass
class ScriptTurn:
    index: int
    speaker: str
    text: str


# Older deployments wrote these key names; read both, write only the new ones.
_LEGACY_KEYS = {
    "podcastScript": "podcast",
    "blogText": "blog",
    "audioLocator": "audioUrl",
    "auxiliaryAudioLocators": "audioFiles",
}


@dataclass
class ContentArtifact:
    intro: str = ""
    podcast_script: str = ""
    blog_text: str = ""
    audio_locator: str = ""
    auxiliary_audio_locators: List[str] = field(default_factory=list)

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_locator)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intro": self.intro,
            "podcastScript": self.podcast_script,
            "blogText": self.blog_text,
            "audioLocator": self.audio_locator,
            "auxiliaryAudioLocators": list(self.auxiliary_audio_locators),
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentArtifact":
        def pick(key: str, default: Any) -> Any:
            if key in data and data[key] is not None:
                return data[key]
            legacy = _LEGACY_KEYS.get(key)
            if legacy and data.get(legacy) is not None:
                return data[legacy]
            return default

        aux = pick("auxiliaryAudioLocators", [])
        if not isinstance(aux, list):
            raise ArtifactFormatError("auxiliaryAudioLocators must be a list")
        return cls(
            intro=str(pick("intro", "")),
            podcast_script=str(pick("podcastScript", "")),
            blog_text=str(pick("blogText", "")),
            audio_locator=str(pick("audioLocator", "")),
            auxiliary_audio_locators=[str(x) for x in aux],
        )

    @classmethod
    def from_json(cls, raw: Union[bytes, str]) -> "ContentArtifact":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ArtifactFormatError(f"content record is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ArtifactFormatError("content record must be a JSON object")
        return cls.from_dict(data)


@dataclass
class RunOutcome:
    date: str
    status: str
    artifact: Optional[ContentArtifact] = None
    detail: str = ""

    # complete: nothing to do; generated: ran through synthesis;
    # rejected/aborted: see detail
    @property
    def ok(self) -> bool:
        return self.status in ("complete", "generated")
