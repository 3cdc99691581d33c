from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from docqa.domain.errors import InvalidInput

DEFAULT_SETTINGS_FILE = Path("settings.toml")
ENV_PREFIX = "DOCQA_"


@dataclass(frozen=True)
class Embeddings:
    backend: str = "openai"  # "openai" | "hashing"
    model: str = "text-embedding-3-small"
    dim: int = 256           # hashing backend only
    batch_size: int = 64


@dataclass(frozen=True)
class LLM:
    model: str = "gpt-4o-mini"
    temperature: float = 0.2


@dataclass(frozen=True)
class VectorIndexSettings:
    backend: str = "chroma"  # "chroma" | "memory"
    chroma_path: Optional[str] = "./data/chroma"
    chroma_host: Optional[str] = None
    chroma_port: int = 8000
    collection: str = "documents"


@dataclass(frozen=True)
class Documents:
    backend: str = "sqlite"  # "sqlite" | "memory"
    sqlite_path: str = "./data/documents.sqlite3"


@dataclass(frozen=True)
class Retrieval:
    default_top_k: int = 5
    min_score: float = 0.2


@dataclass(frozen=True)
class Synthesis:
    context_budget_chars: int = 6000


@dataclass(frozen=True)
class Providers:
    api_key: str = ""
    base_url: Optional[str] = None
    max_attempts: int = 3
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 8.0
    request_timeout_s: float = 30.0
    pool_size: int = 10


@dataclass(frozen=True)
class Service:
    host: str = "127.0.0.1"
    port: int = 8080
    request_deadline_s: float = 60.0
    log_level: str = "INFO"
    trace_dir: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    embeddings: Embeddings = field(default_factory=Embeddings)
    llm: LLM = field(default_factory=LLM)
    vector_index: VectorIndexSettings = field(default_factory=VectorIndexSettings)
    documents: Documents = field(default_factory=Documents)
    retrieval: Retrieval = field(default_factory=Retrieval)
    synthesis: Synthesis = field(default_factory=Synthesis)
    providers: Providers = field(default_factory=Providers)
    service: Service = field(default_factory=Service)


_BACKENDS = {
    "embeddings.backend": {"openai", "hashing"},
    "vector_index.backend": {"chroma", "memory"},
    "documents.backend": {"sqlite", "memory"},
}

_POSITIVE = {
    "embeddings.dim",
    "embeddings.batch_size",
    "retrieval.default_top_k",
    "synthesis.context_budget_chars",
    "providers.max_attempts",
    "providers.request_timeout_s",
    "providers.pool_size",
    "service.request_deadline_s",
}


def _coerce(key: str, raw: Any, default: Any) -> Any:
    """Convert a TOML/env value to the type of the field's default."""
    if raw is None:
        return None
    try:
        if isinstance(default, bool):
            if isinstance(raw, bool):
                return raw
            lowered = str(raw).strip().lower()
            if lowered in {"1", "true", "yes", "on"}:
                return True
            if lowered in {"0", "false", "no", "off"}:
                return False
            raise ValueError(raw)
        if isinstance(default, int):
            if isinstance(raw, bool):
                raise ValueError(raw)
            return int(raw)
        if isinstance(default, float):
            if isinstance(raw, bool):
                raise ValueError(raw)
            return float(raw)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Invalid config value for {key}: {raw!r}") from e
    if raw == "":
        return None if default is None else raw
    return str(raw)


def _apply(section: Any, prefix: str, values: Mapping[str, Any]) -> Any:
    updates: dict[str, Any] = {}
    for f in fields(section):
        if f.name not in values:
            continue
        updates[f.name] = _coerce(f"{prefix}.{f.name}", values[f.name], getattr(section, f.name))
    return replace(section, **updates) if updates else section


def _validate(settings: Settings) -> None:
    for key, allowed in _BACKENDS.items():
        group, name = key.split(".")
        value = getattr(getattr(settings, group), name)
        if value not in allowed:
            raise InvalidInput(f"Invalid config value for {key}: {value!r} (expected one of {sorted(allowed)})")
    for key in _POSITIVE:
        group, name = key.split(".")
        value = getattr(getattr(settings, group), name)
        if value is None or value <= 0:
            raise InvalidInput(f"Invalid config value for {key}: {value!r} (must be > 0)")
    if settings.providers.initial_backoff_s < 0 or settings.providers.max_backoff_s < 0:
        raise InvalidInput("Invalid config value: backoff durations must be >= 0")


def _env_values(env: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """
    DOCQA_<GROUP>__<FIELD> sets one field, e.g. DOCQA_RETRIEVAL__MIN_SCORE=0.3.
    OPENAI_API_KEY / OPENAI_BASE_URL fill the provider credentials.
    """
    out: dict[str, dict[str, str]] = {}
    for name, value in env.items():
        if not name.startswith(ENV_PREFIX) or "__" not in name:
            continue
        group, _, key = name[len(ENV_PREFIX):].lower().partition("__")
        out.setdefault(group, {})[key] = value

    providers = out.setdefault("providers", {})
    if "api_key" not in providers and env.get("OPENAI_API_KEY"):
        providers["api_key"] = env["OPENAI_API_KEY"]
    if "base_url" not in providers and env.get("OPENAI_BASE_URL"):
        providers["base_url"] = env["OPENAI_BASE_URL"]
    return out


def load_settings(
    path: str | Path | None = None,
    *,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build Settings once at startup: defaults, then the TOML file, then env vars.

    An explicitly given path must exist; without one, ./settings.toml is used
    when present. When env is None the process environment is used after
    loading .env.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    raw: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Missing config file: {path}")
    elif DEFAULT_SETTINGS_FILE.exists():
        path = DEFAULT_SETTINGS_FILE

    if path is not None:
        with Path(path).open("rb") as f:
            raw = tomllib.load(f)

    settings = Settings()
    for layer in (raw, _env_values(env)):
        updates: dict[str, Any] = {}
        for f in fields(settings):
            values = layer.get(f.name)
            if not isinstance(values, Mapping):
                continue
            section = getattr(settings, f.name)
            if is_dataclass(section):
                updates[f.name] = _apply(section, f.name, values)
        if updates:
            settings = replace(settings, **updates)

    _validate(settings)
    return settings
