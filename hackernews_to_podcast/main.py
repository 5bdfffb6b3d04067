from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import AppConfig, load_config, validate_config
from .errors import PodcastError
from .logger import gha_notice, setup_logging
from .models import normalize_date


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hackernews-podcast",
        description="Generate the Hacker News daily podcast, blog and narration",
    )
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the pipeline for one date")
    run.add_argument("--date", help="YYYY-MM-DD (default: today)")
    run.add_argument("--max-items", type=int, default=0, help="Stories to include (default: config)")
    run.add_argument("--force", action="store_true", help="Regenerate text even if it exists")
    run.add_argument("--force-audio", action="store_true", help="Regenerate audio even if it exists")

    status = sub.add_parser("status", help="Show run state")
    status.add_argument("--date")

    show = sub.add_parser("show", help="Print the stored podcast or blog")
    show.add_argument("--date")
    show.add_argument("--blog", action="store_true", help="Print the blog instead of the podcast")

    delete = sub.add_parser("delete", help="Delete stored content and audio of a date")
    delete.add_argument("--date", required=True)

    tts = sub.add_parser("tts", help="Synthesize one line of text to an MP3 file")
    tts.add_argument("--text", required=True)
    tts.add_argument("--speaker", choices=["male", "female"], default="female")
    tts.add_argument("--out", default="tts.mp3")
    return parser


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def run_command(cfg: AppConfig, args: argparse.Namespace) -> int:
    if args.command == "tts":
        from .tts import build_synthesizer

        audio = build_synthesizer(cfg.tts).synthesize(args.text, args.speaker)
        with open(args.out, "wb") as f:
            f.write(audio)
        logger.info("Wrote audio", extra={"path": args.out, "bytes": len(audio)})
        return 0

    from .service import PodcastService

    service = PodcastService.from_config(cfg)

    if args.command == "run":
        outcome = service.run(args.date, args.max_items, args.force, args.force_audio)
        _print_json({"date": outcome.date, "status": outcome.status, "detail": outcome.detail})
        if not outcome.ok:
            gha_notice("ERROR", f"Run {outcome.status} for {outcome.date}: {outcome.detail}")
            return 1
        return 0
    if args.command == "status":
        _print_json(service.status(normalize_date(args.date) if args.date else None))
        return 0
    if args.command == "show":
        _print_json(service.get_blog(args.date) if args.blog else service.get_podcast(args.date))
        return 0
    if args.command == "delete":
        _print_json(service.delete_content(args.date))
        return 0
    raise ValueError(f"unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(cfg.logging.level, json_output=cfg.logging.json)
    for msg in validate_config(cfg):
        logger.warning("Config warning: %s", msg)
    try:
        code = run_command(cfg, args)
    except (PodcastError, RuntimeError, ValueError) as e:
        gha_notice("ERROR", f"{args.command} failed: {e}")
        logger.exception("Command failed", extra={"command": args.command})
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
