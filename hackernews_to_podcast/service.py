from __future__ import annotations

import datetime as dt
import logging
import threading
from functools import partial
from typing import Any, Dict, Optional

from .audio import merge_segments
from .config import AppConfig
from .errors import PodcastError
from .fetcher import HackerNewsFetcher
from .llm import OpenAIChatGenerator
from .models import ContentArtifact, RunOutcome, normalize_date
from .pipeline import GenerationPipeline, PipelineSettings
from .retry import RetryingTextGenerator
from .storage import (
    ArtifactStore,
    audio_key,
    build_store,
    content_key,
    intro_audio_key,
    legacy_audio_keys,
    subtitle_key,
)
from .tts import build_synthesizer


logger = logging.getLogger(__name__)


def settings_from_config(cfg: AppConfig) -> PipelineSettings:
    return PipelineSettings(
        env=cfg.server.env,
        default_max_items=cfg.source.max_items,
        size_cap=cfg.llm.max_tokens * 4,
        pacing_delay=cfg.source.pacing_delay,
        subtitles=cfg.audio.subtitles,
        artist=cfg.audio.artist,
    )


class PodcastService:
    """What the HTTP/cron layer talks to: start runs, read back results."""

    def __init__(self, pipeline: GenerationPipeline, store: ArtifactStore, env: str,
                 presign_expiry: dt.timedelta = dt.timedelta(hours=24)) -> None:
        self.pipeline = pipeline
        self.store = store
        self.env = env
        self.presign_expiry = presign_expiry

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "PodcastService":
        store = build_store(cfg.storage)
        generator = RetryingTextGenerator(
            OpenAIChatGenerator(cfg.llm),
            max_attempts=cfg.llm.max_retries,
            base_delay=cfg.llm.retry_base_delay,
        )
        pipeline = GenerationPipeline(
            fetcher=HackerNewsFetcher(cfg.source),
            generator=generator,
            synthesizer=build_synthesizer(cfg.tts),
            store=store,
            settings=settings_from_config(cfg),
            merge=partial(merge_segments, ffmpeg_bin=cfg.audio.ffmpeg_bin),
        )
        return cls(pipeline, store, cfg.server.env)

    def run(self, date: Optional[str] = None, max_items: int = 0,
            force_content: bool = False, force_audio: bool = False) -> RunOutcome:
        return self.pipeline.run_for_date(date, max_items, force_content, force_audio)

    def start_run(self, date: Optional[str] = None, max_items: int = 0,
                  force_content: bool = False, force_audio: bool = False) -> Dict[str, Any]:
        """Launch a run on a background thread and acknowledge immediately."""
        try:
            date = normalize_date(date)
        except ValueError as e:
            return {"date": date, "accepted": False, "message": str(e)}
        # claim here so a second request is refused before the thread starts
        if not self.pipeline.registry.try_begin(date):
            return {"date": date, "accepted": False, "message": "already in progress for this date"}
        thread = threading.Thread(
            target=self.pipeline.run_claimed,
            args=(date, max_items, force_content, force_audio),
            name=f"podcast-run-{date}",
            daemon=True,
        )
        thread.start()
        return {"date": date, "accepted": True, "message": "processing started"}

    def status(self, date: Optional[str] = None) -> Dict[str, Any]:
        return self.pipeline.status(date)

    def _load(self, date: str) -> ContentArtifact:
        return ContentArtifact.from_json(self.store.get(content_key(self.env, date)))

    def get_podcast(self, date: Optional[str] = None) -> Dict[str, Any]:
        date = normalize_date(date)
        content = self._load(date)
        audio_url = ""
        if content.has_audio:
            try:
                audio_url = self.store.presign(audio_key(date), self.presign_expiry)
            except PodcastError as e:
                logger.warning("Presign failed; using stored locator", extra={"date": date, "error": str(e)})
                audio_url = content.audio_locator
        return {
            "date": date,
            "title": f"Hacker News 每日播客 {date}",
            "intro": content.intro,
            "content": content.podcast_script,
            "audioUrl": audio_url,
        }

    def get_blog(self, date: Optional[str] = None) -> Dict[str, Any]:
        date = normalize_date(date)
        content = self._load(date)
        return {
            "date": date,
            "title": f"Hacker News 每日博客 {date}",
            "content": content.blog_text,
        }

    def delete_content(self, date: str) -> Dict[str, Any]:
        """Remove the record and every audio object of a date; missing ones are fine."""
        date = normalize_date(date)
        keys = [
            content_key(self.env, date),
            audio_key(date),
            intro_audio_key(date),
            subtitle_key(date),
            *legacy_audio_keys(self.env, date),
        ]
        deleted = []
        for key in keys:
            try:
                if not self.store.exists(key):
                    continue
                self.store.delete(key)
                deleted.append(key)
            except PodcastError as e:
                logger.warning("Delete failed", extra={"key": key, "error": str(e)})
        logger.info("Content deleted", extra={"date": date, "deleted": deleted})
        return {"date": date, "deleted": deleted}
