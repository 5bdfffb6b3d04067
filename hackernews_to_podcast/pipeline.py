"""Daily generation pipeline.

One run for one date: decide what is missing, generate the texts, narrate
the podcast script turn by turn, merge and store. A run never raises; what
happened is reported by the returned RunOutcome and by the stored record.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .audio import merge_segments, tag_mp3
from .errors import MergeError, PodcastError, TerminalGenerationError, UnitSkippedError
from .llm import join_summaries
from .models import MALE, ContentArtifact, Item, RunOutcome, normalize_date
from .prompts import ROLE_BLOG, ROLE_INTRO, ROLE_PODCAST, ROLE_STORY
from .runs import RunRegistry
from .script import build_srt, parse_turns
from .storage import ArtifactStore, audio_key, content_key, intro_audio_key, subtitle_key


logger = logging.getLogger(__name__)

JSON_TYPE = "application/json"
MP3_TYPE = "audio/mpeg"
SRT_TYPE = "application/x-subrip"


@dataclass
class PipelineSettings:
    env: str = "production"
    default_max_items: int = 10
    # characters per article/discussion part
    size_cap: int = 16384
    pacing_delay: float = 2.0
    subtitles: bool = True
    artist: str = "Hacker News 每日播客"


class _Abort(Exception):
    """Ends the current run early; carries the reason for the outcome."""


class GenerationPipeline:
    def __init__(
        self,
        *,
        fetcher,
        generator,
        synthesizer,
        store: ArtifactStore,
        settings: Optional[PipelineSettings] = None,
        registry: Optional[RunRegistry] = None,
        merge: Callable[[Sequence[bytes]], bytes] = merge_segments,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.generator = generator
        self.synthesizer = synthesizer
        self.store = store
        self.settings = settings or PipelineSettings()
        self.registry = registry or RunRegistry()
        self._merge = merge
        self._sleep = sleep

    # -- entry points -------------------------------------------------

    def run_for_date(
        self,
        date: Optional[str] = None,
        max_items: int = 0,
        force_content: bool = False,
        force_audio: bool = False,
    ) -> RunOutcome:
        try:
            date = normalize_date(date)
        except ValueError as e:
            logger.error("Rejected run: bad date", extra={"date": str(date), "error": str(e)})
            return RunOutcome(date=str(date), status="rejected", detail=str(e))

        if not self.registry.try_begin(date):
            logger.warning("Run already in progress for this date", extra={"date": date})
            return RunOutcome(date=date, status="rejected", detail="already in progress for this date")
        return self.run_claimed(date, max_items, force_content, force_audio)

    def run_claimed(
        self,
        date: str,
        max_items: int = 0,
        force_content: bool = False,
        force_audio: bool = False,
    ) -> RunOutcome:
        """Run a date the caller already claimed with `registry.try_begin`."""
        if max_items <= 0:
            max_items = self.settings.default_max_items
        outcome = RunOutcome(date=date, status="aborted", detail="unexpected error")
        try:
            outcome = self._run(date, max_items, force_content, force_audio)
        except _Abort as e:
            logger.error("Run aborted", extra={"date": date, "reason": str(e)})
            outcome = RunOutcome(date=date, status="aborted", detail=str(e))
        except Exception:  # noqa: BLE001
            logger.exception("Run failed unexpectedly", extra={"date": date})
        finally:
            self.registry.finish(date, outcome.status)
        logger.info("Run finished", extra={"date": date, "status": outcome.status})
        return outcome

    def status(self, date: Optional[str] = None) -> dict:
        if date is not None:
            date = normalize_date(date)
            snap = self.registry.snapshot()
            return {"date": date, **snap.get(date, {"state": "idle"})}
        last = self.registry.last_completed()
        return {
            "isProcessing": self.registry.is_running(),
            "lastProcessed": last.isoformat() if last else None,
            "runs": self.registry.snapshot(),
        }

    # -- stages -------------------------------------------------------

    def _run(self, date: str, max_items: int, force_content: bool, force_audio: bool) -> RunOutcome:
        key = content_key(self.settings.env, date)
        logger.info(
            "Run started",
            extra={"date": date, "max_items": max_items, "force": force_content, "force_audio": force_audio},
        )

        if force_content or not self._exists(key):
            artifact = self._generate(date, max_items)
            self._write_artifact(key, artifact)
            logger.info("Content stored", extra={"date": date, "key": key})
        else:
            artifact = self._load(key)
            if artifact.has_audio and not force_audio:
                logger.info("Audio already exists", extra={"date": date, "audio": artifact.audio_locator})
                return RunOutcome(date=date, status="complete", artifact=artifact)
            logger.info("Content exists; (re)generating audio", extra={"date": date})

        self._synthesize(date, artifact)
        try:
            self._write_artifact(key, artifact)
        except _Abort as e:
            return RunOutcome(date=date, status="aborted", artifact=artifact, detail=str(e))
        return RunOutcome(date=date, status="generated", artifact=artifact)

    def _exists(self, key: str) -> bool:
        try:
            return self.store.exists(key)
        except PodcastError as e:
            logger.warning("Existence check failed; treating as absent", extra={"key": key, "error": str(e)})
            return False

    def _load(self, key: str) -> ContentArtifact:
        try:
            return ContentArtifact.from_json(self.store.get(key))
        except PodcastError as e:
            raise _Abort(f"cannot load existing content: {e}") from e

    def _write_artifact(self, key: str, artifact: ContentArtifact) -> None:
        try:
            self.store.put(key, artifact.to_json(), JSON_TYPE)
        except PodcastError as e:
            raise _Abort(f"cannot store content: {e}") from e

    def _generate(self, date: str, max_items: int) -> ContentArtifact:
        try:
            items = self.fetcher.list_items(date, max_items)
        except PodcastError as e:
            raise _Abort(f"listing stories failed: {e}") from e
        if not items:
            raise _Abort("no stories found")
        logger.info("Stories listed", extra={"date": date, "count": len(items)})

        summaries = self._summarize(items)
        if not summaries:
            raise _Abort("no story could be summarized")

        joined = join_summaries(summaries)
        podcast = self._generate_text(ROLE_PODCAST, joined)
        blog = self._generate_text(ROLE_BLOG, joined)
        intro = self._generate_text(ROLE_INTRO, podcast)
        return ContentArtifact(intro=intro, podcast_script=podcast, blog_text=blog)

    def _summarize(self, items: List[Item]) -> List[str]:
        summaries: List[str] = []
        for i, item in enumerate(items, start=1):
            logger.info("Processing story", extra={"index": i, "total": len(items), "title": item.title})
            try:
                summaries.append(self._summarize_one(item))
            except UnitSkippedError as e:
                logger.warning("Story skipped", extra={"item_id": item.id, "reason": e.reason})
                continue
            # pacing between upstream calls
            if i < len(items):
                self._sleep(self.settings.pacing_delay)
        logger.info("Stories summarized", extra={"kept": len(summaries), "total": len(items)})
        return summaries

    def _summarize_one(self, item: Item) -> str:
        # one bad story must not end the run, whatever it raised
        try:
            payload = self.fetcher.fetch_item_content(item, self.settings.size_cap)
        except Exception as e:  # noqa: BLE001
            raise UnitSkippedError(f"story {item.id}", f"fetch failed: {e}") from e
        if not payload:
            raise UnitSkippedError(f"story {item.id}", "no content fetched")
        try:
            return self.generator.generate(ROLE_STORY, payload)
        except Exception as e:  # noqa: BLE001
            raise UnitSkippedError(f"story {item.id}", str(e)) from e

    def _generate_text(self, role: str, payload: str) -> str:
        logger.info("Generating text", extra={"role": role})
        try:
            return self.generator.generate(role, payload)
        except TerminalGenerationError as e:
            raise _Abort(f"{role} generation failed: {e}") from e

    def _synthesize(self, date: str, artifact: ContentArtifact) -> None:
        turns = parse_turns(artifact.podcast_script)
        logger.info("Narrating script", extra={"date": date, "turns": len(turns)})

        segments: List[bytes] = []
        spoken = []
        for turn in turns:
            try:
                segments.append(self._narrate(turn.text, turn.speaker, f"turn {turn.index}"))
                spoken.append(turn)
            except UnitSkippedError as e:
                logger.warning("Turn skipped", extra={"date": date, "turn": turn.index, "reason": e.reason})

        # A forced audio rerun must not keep pointing at stale files.
        artifact.audio_locator = ""
        artifact.auxiliary_audio_locators = []

        if segments:
            try:
                merged = self._merge(segments)
                merged = tag_mp3(
                    merged,
                    title=f"Hacker News 每日播客 {date}",
                    artist=self.settings.artist,
                    date_str=date,
                )
                artifact.audio_locator = self.store.put(audio_key(date), merged, MP3_TYPE)
                logger.info(
                    "Podcast audio stored",
                    extra={"date": date, "segments": len(segments), "turns": len(turns)},
                )
            except MergeError as e:
                logger.error("Audio merge failed", extra={"date": date, "error": str(e)})
            except PodcastError as e:
                logger.error("Audio upload failed", extra={"date": date, "error": str(e)})
        else:
            logger.error("No narration turn succeeded", extra={"date": date, "turns": len(turns)})

        if artifact.intro:
            try:
                intro_audio = self._narrate(artifact.intro, MALE, "intro")
                artifact.auxiliary_audio_locators = [
                    self.store.put(intro_audio_key(date), intro_audio, MP3_TYPE)
                ]
            except UnitSkippedError as e:
                logger.warning("Intro narration skipped", extra={"date": date, "reason": e.reason})
            except PodcastError as e:
                logger.warning("Intro upload failed", extra={"date": date, "error": str(e)})

        if self.settings.subtitles and spoken and artifact.audio_locator:
            try:
                self.store.put(subtitle_key(date), build_srt(spoken).encode("utf-8"), SRT_TYPE)
            except PodcastError as e:
                logger.warning("Subtitle upload failed", extra={"date": date, "error": str(e)})

    def _narrate(self, text: str, speaker: str, unit: str) -> bytes:
        try:
            return self.synthesizer.synthesize(text, speaker)
        except Exception as e:  # noqa: BLE001
            raise UnitSkippedError(unit, str(e)) from e
