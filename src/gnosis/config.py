"""Gnosis configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (GNOSIS_BUCKET, GNOSIS_EMBEDDING_MODEL, ...)
  3. Per-project gnosis.yaml
  4. Global ~/.gnosis/config.yaml
  5. Hardcoded defaults

Config files must never contain credentials; object-store keys and embedding
API keys are read from environment variables only.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_PATH: Path = Path.home() / ".gnosis" / "config.yaml"
_PROJECT_CONFIG_NAME: str = "gnosis.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s), access_key_id, secret_access_key.
# Does NOT match max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential"
    r"|access[_\-]?key",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "database", "embedding", "chunking", "retrieval", "refresh", "logging"]
)

_RETRIEVAL_BACKENDS: frozenset[str] = frozenset(["database", "memory"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Object store holding the knowledge corpus (gnosis.yaml: storage:)."""

    bucket: str = "web-chatbot-docs"
    endpoint_url: str | None = None  # e.g. https://<account>.r2.cloudflarestorage.com
    region: str = "us-east-1"


@dataclass
class DatabaseCfg:
    """SQLite database holding chunks, vectors and fingerprints."""

    path: str = ".gnosis.db"


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (gnosis.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Vector length produced by *model*.
        batch_size: Number of chunk texts sent per embedding request.
        num_retries: LiteLLM retries on transient errors (0 = fail fast).
    """

    model: str = "openai/text-embedding-3-large"
    dimensions: int = 3072
    batch_size: int = 64
    num_retries: int = 0


@dataclass
class ChunkingCfg:
    """Sentence chunker budget (gnosis.yaml: chunking:)."""

    max_tokens: int = 150
    overlap_ratio: float = 0.2


@dataclass
class RetrievalCfg:
    """Retrieval defaults (gnosis.yaml: retrieval:).

    Attributes:
        top_k: Chunks returned per query.
        min_score: Minimum cosine similarity; candidates with distance
            above ``1 - min_score`` are filtered unless too few remain.
        backend: 'database' (sqlite-vec KNN) or 'memory' (in-process mirror).
    """

    top_k: int = 5
    min_score: float = 0.75
    backend: str = "database"


@dataclass
class RefreshCfg:
    """Periodic re-synchronisation (gnosis.yaml: refresh:)."""

    interval_minutes: float = 60.0


@dataclass
class LoggingCfg:
    level: str = "INFO"
    json: bool = False


@dataclass
class GnosisConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    refresh: RefreshCfg = field(default_factory=RefreshCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: GnosisConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    if not cfg.storage.bucket:
        raise ConfigError("storage.bucket must not be empty")
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.embedding.batch_size < 1:
        raise ConfigError(f"embedding.batch_size must be >= 1, got {cfg.embedding.batch_size}")
    if cfg.embedding.num_retries < 0:
        raise ConfigError("embedding.num_retries must be >= 0")
    if cfg.chunking.max_tokens < 1:
        raise ConfigError(f"chunking.max_tokens must be >= 1, got {cfg.chunking.max_tokens}")
    if not 0.0 <= cfg.chunking.overlap_ratio < 1.0:
        raise ConfigError("chunking.overlap_ratio must be in [0.0, 1.0)")
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if not 0.0 <= cfg.retrieval.min_score <= 1.0:
        raise ConfigError("retrieval.min_score must be in [0.0, 1.0]")
    if cfg.retrieval.backend not in _RETRIEVAL_BACKENDS:
        raise ConfigError(
            f"retrieval.backend must be one of {sorted(_RETRIEVAL_BACKENDS)}, "
            f"got '{cfg.retrieval.backend}'"
        )
    if cfg.refresh.interval_minutes <= 0:
        raise ConfigError("refresh.interval_minutes must be > 0")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> GnosisConfig:
    """Build a *GnosisConfig* from a merged raw YAML dict."""
    cfg = GnosisConfig()

    try:
        if "storage" in data:
            s = data["storage"] or {}
            cfg.storage = StorageCfg(
                bucket=str(s.get("bucket", cfg.storage.bucket)),
                endpoint_url=s.get("endpoint_url") or cfg.storage.endpoint_url,
                region=str(s.get("region", cfg.storage.region)),
            )

        if "database" in data:
            d = data["database"] or {}
            cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
                num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            )

        if "chunking" in data:
            c = data["chunking"] or {}
            cfg.chunking = ChunkingCfg(
                max_tokens=int(c.get("max_tokens", cfg.chunking.max_tokens)),
                overlap_ratio=float(c.get("overlap_ratio", cfg.chunking.overlap_ratio)),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            cfg.retrieval = RetrievalCfg(
                top_k=int(r.get("top_k", cfg.retrieval.top_k)),
                min_score=float(r.get("min_score", cfg.retrieval.min_score)),
                backend=str(r.get("backend", cfg.retrieval.backend)),
            )

        if "refresh" in data:
            rf = data["refresh"] or {}
            cfg.refresh = RefreshCfg(
                interval_minutes=float(
                    rf.get("interval_minutes", cfg.refresh.interval_minutes)
                ),
            )

        if "logging" in data:
            lg = data["logging"] or {}
            cfg.logging = LoggingCfg(
                level=str(lg.get("level", cfg.logging.level)).upper(),
                json=bool(lg.get("json", cfg.logging.json)),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: GnosisConfig) -> GnosisConfig:
    """Apply GNOSIS_* environment variable overrides."""
    if bucket := os.environ.get("GNOSIS_BUCKET"):
        cfg.storage.bucket = bucket
    if endpoint := os.environ.get("GNOSIS_S3_ENDPOINT"):
        cfg.storage.endpoint_url = endpoint
    if db_path := os.environ.get("GNOSIS_DB_PATH"):
        cfg.database.path = db_path
    if model := os.environ.get("GNOSIS_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if dims := os.environ.get("GNOSIS_EMBEDDING_DIMENSIONS"):
        try:
            cfg.embedding.dimensions = int(dims)
        except ValueError as exc:
            raise ConfigError(f"GNOSIS_EMBEDDING_DIMENSIONS must be an integer: {dims!r}") from exc
    if minutes := os.environ.get("GNOSIS_REFRESH_MINUTES"):
        try:
            cfg.refresh.interval_minutes = float(minutes)
        except ValueError as exc:
            raise ConfigError(f"GNOSIS_REFRESH_MINUTES must be a number: {minutes!r}") from exc
    if level := os.environ.get("GNOSIS_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> GnosisConfig:
    """Load and return a merged *GnosisConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *gnosis.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *GnosisConfig*.

    Raises:
        ConfigError: If a config file contains credential-like keys or a
            value the pipeline cannot run with.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / _PROJECT_CONFIG_NAME):
        if not path.exists():
            continue
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config '{path}' must be a YAML mapping")
        _check_no_api_keys(raw, path)
        _warn_unknown_keys(raw, path)
        merged = _deep_merge(merged, raw)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
