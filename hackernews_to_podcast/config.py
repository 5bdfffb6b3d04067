from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml


@dataclass
class ServerConfig:
    env: str


@dataclass
class SourceConfig:
    front_url: str
    item_url: str
    max_items: int
    pacing_delay: float
    timeout: float
    user_agent: str


@dataclass
class LLMConfig:
    provider: str
    model: str
    base_url: str
    api_key_env: str
    max_tokens: int
    intro_max_tokens: int
    temperature: float
    timeout: float
    max_retries: int
    retry_base_delay: float
    # role -> path of a file that replaces the built-in system prompt
    prompt_files: Dict[str, str] = field(default_factory=dict)


@dataclass
class TTSConfig:
    provider: str
    timeout: float
    # speaker ("male"/"female") -> provider voice name
    edge_voices: Dict[str, str]
    openai_model: str
    openai_voices: Dict[str, str]
    openai_api_key_env: str
    gcp_language_code: str
    gcp_voices: Dict[str, str]
    speaking_rate: float
    max_chars_per_chunk: int
    max_retries: int
    initial_retry_delay: float


@dataclass
class StorageConfig:
    backend: str
    endpoint: str
    bucket: str
    region: str
    access_key_env: str
    secret_key_env: str
    presign_expiry_hours: int
    local_root: str


@dataclass
class AudioConfig:
    ffmpeg_bin: str
    subtitles: bool
    artist: str


@dataclass
class LoggingConfig:
    level: str
    json: bool


@dataclass
class AppConfig:
    server: ServerConfig
    source: SourceConfig
    llm: LLMConfig
    tts: TTSConfig
    storage: StorageConfig
    audio: AudioConfig
    logging: LoggingConfig


DEFAULT_EDGE_VOICES = {"male": "zh-CN-YunxiNeural", "female": "zh-CN-XiaoxiaoNeural"}
DEFAULT_OPENAI_VOICES = {"male": "onyx", "female": "nova"}
DEFAULT_GCP_VOICES = {"male": "cmn-CN-Standard-B", "female": "cmn-CN-Standard-A"}

TTS_PROVIDERS = {"edge", "openai", "gcp"}

DEFAULT_MAX_ITEMS = 10


def _env(name: str, default: Any) -> Any:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, default))
    except (TypeError, ValueError):
        return default


def _positive(value: int, default: int) -> int:
    # 0 or less would mean "the whole front page"
    return value if value > 0 else default


def load_config(path: str = "config.yaml") -> AppConfig:
    data: Dict[str, Any] = {}
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    server = data.get("server", {}) or {}
    source = data.get("source", {}) or {}
    llm = data.get("llm", {}) or {}
    tts = data.get("tts", {}) or {}
    storage = data.get("storage", {}) or {}
    audio = data.get("audio", {}) or {}
    logging_cfg = data.get("logging", {}) or {}

    return AppConfig(
        server=ServerConfig(env=_env("WORKER_ENV", server.get("env", "production"))),
        source=SourceConfig(
            front_url=source.get("front_url", "https://news.ycombinator.com/front"),
            item_url=source.get("item_url", "https://news.ycombinator.com/item"),
            max_items=_positive(
                _env_int("MAX_ITEMS", int(source.get("max_items", DEFAULT_MAX_ITEMS))), DEFAULT_MAX_ITEMS
            ),
            pacing_delay=float(source.get("pacing_delay", 2.0)),
            timeout=float(source.get("timeout", 30.0)),
            user_agent=source.get(
                "user_agent",
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
            ),
        ),
        llm=LLMConfig(
            provider=llm.get("provider", "openai"),
            model=_env("OPENAI_MODEL", llm.get("model", "deepseek-chat")),
            base_url=_env("OPENAI_BASE_URL", llm.get("base_url", "https://api.deepseek.com/v1")),
            api_key_env=llm.get("api_key_env", "OPENAI_API_KEY"),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", int(llm.get("max_tokens", 4096))),
            intro_max_tokens=int(llm.get("intro_max_tokens", 300)),
            temperature=float(llm.get("temperature", 0.7)),
            timeout=float(llm.get("timeout", 120.0)),
            max_retries=int(llm.get("max_retries", 3)),
            retry_base_delay=float(llm.get("retry_base_delay", 2.0)),
            prompt_files=dict(llm.get("prompt_files", {}) or {}),
        ),
        tts=TTSConfig(
            provider=_env("TTS_PROVIDER", tts.get("provider", "edge")).lower(),
            timeout=float(tts.get("timeout", 30.0)),
            edge_voices={**DEFAULT_EDGE_VOICES, **(tts.get("edge_voices", {}) or {})},
            openai_model=tts.get("openai_model", "gpt-4o-mini-tts"),
            openai_voices={**DEFAULT_OPENAI_VOICES, **(tts.get("openai_voices", {}) or {})},
            openai_api_key_env=tts.get("openai_api_key_env", "OPENAI_TTS_API_KEY"),
            gcp_language_code=tts.get("gcp_language_code", "cmn-CN"),
            gcp_voices={**DEFAULT_GCP_VOICES, **(tts.get("gcp_voices", {}) or {})},
            speaking_rate=float(tts.get("speaking_rate", 1.0)),
            max_chars_per_chunk=int(tts.get("max_chars_per_chunk", 1500)),
            max_retries=int(tts.get("max_retries", 2)),
            initial_retry_delay=float(tts.get("initial_retry_delay", 1.0)),
        ),
        storage=StorageConfig(
            backend=storage.get("backend", "s3"),
            endpoint=_env("BUCKET_URL", storage.get("endpoint", "http://localhost:9000")),
            bucket=_env("BUCKET_NAME", storage.get("bucket", "hacker-news")),
            region=storage.get("region", "us-east-1"),
            access_key_env=storage.get("access_key_env", "BUCKET_ACCESS_KEY"),
            secret_key_env=storage.get("secret_key_env", "BUCKET_SECRET_KEY"),
            presign_expiry_hours=int(storage.get("presign_expiry_hours", 168)),
            local_root=storage.get("local_root", os.path.join("data", "store")),
        ),
        audio=AudioConfig(
            ffmpeg_bin=audio.get("ffmpeg_bin", "ffmpeg"),
            subtitles=bool(audio.get("subtitles", True)),
            artist=audio.get("artist", "Hacker News 每日播客"),
        ),
        logging=LoggingConfig(
            level=logging_cfg.get("level", "INFO"),
            json=bool(logging_cfg.get("json", True)),
        ),
    )


def validate_config(cfg: AppConfig) -> List[str]:
    """Lightweight config validation that returns warnings instead of failing."""
    warnings: List[str] = []

    if not os.environ.get(cfg.llm.api_key_env):
        warnings.append(f"LLM api key env var '{cfg.llm.api_key_env}' not set")

    provider = cfg.tts.provider
    if provider not in TTS_PROVIDERS:
        warnings.append(f"tts.provider '{provider}' not in {sorted(TTS_PROVIDERS)}; falling back to edge")
    if provider == "openai" and not (
        os.environ.get(cfg.tts.openai_api_key_env) or os.environ.get(cfg.llm.api_key_env)
    ):
        warnings.append(f"OpenAI TTS selected but env var '{cfg.tts.openai_api_key_env}' not set")

    if cfg.storage.backend == "s3":
        for env_name in (cfg.storage.access_key_env, cfg.storage.secret_key_env):
            if not os.environ.get(env_name):
                warnings.append(f"storage credentials env var '{env_name}' not set")
    elif cfg.storage.backend != "local":
        warnings.append(f"storage.backend '{cfg.storage.backend}' not in ['s3','local']")

    return warnings
