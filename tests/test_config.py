from hackernews_to_podcast.config import load_config, validate_config


def test_defaults_without_file(tmp_path, monkeypatch):
    for name in ("WORKER_ENV", "MAX_ITEMS", "OPENAI_MODEL", "TTS_PROVIDER", "BUCKET_NAME"):
        monkeypatch.delenv(name, raising=False)

    cfg = load_config(str(tmp_path / "missing.yaml"))

    assert cfg.server.env == "production"
    assert cfg.source.max_items == 10
    assert cfg.llm.max_retries == 3
    assert cfg.tts.provider == "edge"
    assert cfg.tts.edge_voices["male"] == "zh-CN-YunxiNeural"
    assert cfg.storage.bucket == "hacker-news"


def test_yaml_and_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "server:\n  env: staging\n"
        "source:\n  max_items: 3\n"
        "tts:\n  provider: gcp\n  gcp_voices:\n    female: cmn-CN-Wavenet-A\n"
        "storage:\n  backend: local\n  local_root: /tmp/x\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MAX_ITEMS", "7")
    monkeypatch.setenv("TTS_PROVIDER", "OpenAI")
    monkeypatch.delenv("WORKER_ENV", raising=False)

    cfg = load_config(str(path))

    assert cfg.server.env == "staging"
    assert cfg.source.max_items == 7
    assert cfg.tts.provider == "openai"
    assert cfg.tts.gcp_voices == {"male": "cmn-CN-Standard-B", "female": "cmn-CN-Wavenet-A"}
    assert cfg.storage.backend == "local"


def test_bad_int_env_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("MAX_ITEMS", "lots")

    assert load_config(str(tmp_path / "none.yaml")).source.max_items == 10


def test_validate_reports_missing_keys(tmp_path, monkeypatch):
    for name in ("OPENAI_API_KEY", "BUCKET_ACCESS_KEY", "BUCKET_SECRET_KEY", "TTS_PROVIDER"):
        monkeypatch.delenv(name, raising=False)
    cfg = load_config(str(tmp_path / "none.yaml"))
    cfg.tts.provider = "polly"

    warnings = validate_config(cfg)

    assert any("OPENAI_API_KEY" in w for w in warnings)
    assert any("BUCKET_ACCESS_KEY" in w for w in warnings)
    assert any("polly" in w for w in warnings)


def test_non_positive_max_items_uses_default(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("source:\n  max_items: 0\n", encoding="utf-8")
    monkeypatch.delenv("MAX_ITEMS", raising=False)

    assert load_config(str(path)).source.max_items == 10

    monkeypatch.setenv("MAX_ITEMS", "-3")
    assert load_config(str(path)).source.max_items == 10
