"""herdsafe configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (HERDSAFE_GENERATION_MODEL, HERDSAFE_EMBEDDING_MODEL)
  3. Per-project herdsafe.yaml
  4. Global ~/.herdsafe/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".herdsafe"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "herdsafe.yaml"

# Fields that suggest an API key; rejected in global config.
# Does NOT match legitimate config keys like max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "retrieval", "chunking", "knowledge_base", "storage", "biosafety"]
)


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (herdsafe.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string.
        timeout: Seconds before a single embedding call is abandoned.
        num_retries: LiteLLM transport retries per call.
        batch_delay_ms: Pause between sequential calls for user uploads.
        bootstrap_delay_ms: Slower pause used when loading the reference document.
    """

    model: str = "huggingface/sentence-transformers/all-MiniLM-L6-v2"
    timeout: float = 30.0
    num_retries: int = 0
    batch_delay_ms: int = 1_000
    bootstrap_delay_ms: int = 1_200


@dataclass
class GenerationCfg:
    """Text generation configuration (herdsafe.yaml: generation:)."""

    answer_model: str = "huggingface/mistralai/Mistral-7B-Instruct-v0.2"
    answer_fallback_model: str = "huggingface/google/flan-t5-large"
    diagnosis_model: str = "huggingface/HuggingFaceH4/zephyr-7b-beta"
    diagnosis_fallback_model: str = "huggingface/gpt2"
    timeout: float = 60.0
    num_retries: int = 0


@dataclass
class RetrievalCfg:
    """Retrieval configuration (herdsafe.yaml: retrieval:)."""

    top_k: int = 3
    diagnosis_top_k: int = 5


@dataclass
class ChunkingCfg:
    """Text segmentation in characters (herdsafe.yaml: chunking:)."""

    chunk_size: int = 1_500
    overlap: int = 200


@dataclass
class KnowledgeBaseCfg:
    """Shared reference document (herdsafe.yaml: knowledge_base:)."""

    path: str = "reference/livestock.pdf"
    filename: str = "livestock.pdf"
    title: str = "Livestock Health Knowledge Base"
    description: str = "System knowledge base for livestock disease diagnosis"


@dataclass
class StorageCfg:
    """Local storage locations (herdsafe.yaml: storage:)."""

    database: str = ".herdsafe.db"
    uploads_dir: str = ".herdsafe/uploads"
    max_upload_mb: float = 10.0


@dataclass
class BioSafetyCfg:
    """Bio-safety gate settings (herdsafe.yaml: biosafety:).

    Attributes:
        sweep_interval_minutes: How often an external scheduler should run
            ``herdsafe animals sweep``. The gate also unlocks lazily.
    """

    sweep_interval_minutes: int = 15


@dataclass
class HerdsafeConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    knowledge_base: KnowledgeBaseCfg = field(default_factory=KnowledgeBaseCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    biosafety: BioSafetyCfg = field(default_factory=BioSafetyCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
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


def _validate(cfg: HerdsafeConfig) -> None:
    if cfg.chunking.chunk_size < 1:
        raise ConfigError(f"chunking.chunk_size must be >= 1, got {cfg.chunking.chunk_size}")
    if not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {cfg.chunking.overlap}"
        )
    if cfg.retrieval.top_k < 1 or cfg.retrieval.diagnosis_top_k < 1:
        raise ConfigError("retrieval.top_k and retrieval.diagnosis_top_k must be >= 1")
    if cfg.embedding.batch_delay_ms < 0 or cfg.embedding.bootstrap_delay_ms < 0:
        raise ConfigError("embedding delays must be >= 0 ms")


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


def _cfg_from_dict(data: dict[str, Any]) -> HerdsafeConfig:
    """Build a *HerdsafeConfig* from a merged raw YAML dict."""
    cfg = HerdsafeConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            batch_delay_ms=int(e.get("batch_delay_ms", cfg.embedding.batch_delay_ms)),
            bootstrap_delay_ms=int(
                e.get("bootstrap_delay_ms", cfg.embedding.bootstrap_delay_ms)
            ),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            answer_model=str(g.get("answer_model", cfg.generation.answer_model)),
            answer_fallback_model=str(
                g.get("answer_fallback_model", cfg.generation.answer_fallback_model)
            ),
            diagnosis_model=str(g.get("diagnosis_model", cfg.generation.diagnosis_model)),
            diagnosis_fallback_model=str(
                g.get("diagnosis_fallback_model", cfg.generation.diagnosis_fallback_model)
            ),
            timeout=float(g.get("timeout", cfg.generation.timeout)),
            num_retries=int(g.get("num_retries", cfg.generation.num_retries)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            diagnosis_top_k=int(r.get("diagnosis_top_k", cfg.retrieval.diagnosis_top_k)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunking.overlap)),
        )

    if "knowledge_base" in data:
        k = data["knowledge_base"] or {}
        cfg.knowledge_base = KnowledgeBaseCfg(
            path=str(k.get("path", cfg.knowledge_base.path)),
            filename=str(k.get("filename", cfg.knowledge_base.filename)),
            title=str(k.get("title", cfg.knowledge_base.title)),
            description=str(k.get("description", cfg.knowledge_base.description)),
        )

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(
            database=str(s.get("database", cfg.storage.database)),
            uploads_dir=str(s.get("uploads_dir", cfg.storage.uploads_dir)),
            max_upload_mb=float(s.get("max_upload_mb", cfg.storage.max_upload_mb)),
        )

    if "biosafety" in data:
        b = data["biosafety"] or {}
        cfg.biosafety = BioSafetyCfg(
            sweep_interval_minutes=int(
                b.get("sweep_interval_minutes", cfg.biosafety.sweep_interval_minutes)
            ),
        )

    return cfg


def _apply_env_overrides(cfg: HerdsafeConfig) -> HerdsafeConfig:
    """Apply HERDSAFE_* environment variable overrides."""
    if model := os.environ.get("HERDSAFE_GENERATION_MODEL"):
        cfg.generation.answer_model = model
        cfg.generation.diagnosis_model = model
    if model := os.environ.get("HERDSAFE_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> HerdsafeConfig:
    """Load and return a merged *HerdsafeConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *herdsafe.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or if a
            chunking/retrieval value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def write_project_config(project_dir: Path) -> Path:
    """Write a commented herdsafe.yaml template into *project_dir* if missing."""
    target = project_dir / PROJECT_CONFIG_NAME
    if target.exists():
        return target
    defaults = HerdsafeConfig()
    content = (
        "# herdsafe project configuration.\n"
        "# NEVER store API keys here — use environment variables:\n"
        "#   export HUGGINGFACE_API_KEY=hf_...\n"
        "\n"
        "embedding:\n"
        f"  model: {defaults.embedding.model}\n"
        f"  batch_delay_ms: {defaults.embedding.batch_delay_ms}\n"
        "\n"
        "generation:\n"
        f"  answer_model: {defaults.generation.answer_model}\n"
        f"  answer_fallback_model: {defaults.generation.answer_fallback_model}\n"
        f"  diagnosis_model: {defaults.generation.diagnosis_model}\n"
        f"  diagnosis_fallback_model: {defaults.generation.diagnosis_fallback_model}\n"
        "\n"
        "knowledge_base:\n"
        f"  path: {defaults.knowledge_base.path}\n"
        "\n"
        "storage:\n"
        f"  database: {defaults.storage.database}\n"
        f"  uploads_dir: {defaults.storage.uploads_dir}\n"
    )
    target.write_text(content, encoding="utf-8")
    return target
