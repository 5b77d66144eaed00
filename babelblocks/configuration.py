"""Prepper-backed configuration loader for BabelBlocks."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping, Optional, Sequence

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import ConfigurationError
from .providers import DEFAULT_PROMPT, DEFAULT_TIMEOUT, TranslationClient, build_client
from .structures import DEFAULT_CHUNK_THRESHOLD, PipelineConfig, TranslationStrategy

APP_NAME = "BabelBlocks"

PROVIDER_SYNONYMS = {
    "gpt": "openai",
    "open_ai": "openai",
    "anthropic": "claude",
    "google": "gemini",
    "mock": "echo",
    "noop": "echo",
}


class BabelBlocksConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    LLM_PROVIDER: Literal["openai", "claude", "gemini", "echo"] = Field(
        default="openai",
        description="Translation provider selection.",
    )
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    CLAUDE_API_KEY: str | None = Field(default=None, secret=True)
    CLAUDE_MODEL: str = Field(default="claude-3-5-sonnet-20241022")
    GEMINI_API_KEY: str | None = Field(default=None, secret=True)
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash")
    TRANSLATION_PROMPT: str = Field(
        default=DEFAULT_PROMPT,
        description="Instruction template; {target_language} is replaced.",
    )
    CHUNK_THRESHOLD: int = Field(default=DEFAULT_CHUNK_THRESHOLD)
    TRANSLATION_STRATEGY: Literal["segment", "chunk"] = Field(default="segment")
    MAX_WORKERS: int = Field(default=1)
    META_FIELDS: str = Field(
        default="_yoast_wpseo_title,_yoast_wpseo_metadesc,_excerpt",
        description="Comma separated meta keys translated alongside the document.",
    )
    REQUEST_TIMEOUT: float = Field(default=DEFAULT_TIMEOUT)
    BABELBLOCKS_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                normalized = PROVIDER_SYNONYMS.get(normalized, normalized)
                if normalized not in {"openai", "claude", "gemini", "echo"}:
                    normalized = "openai"
                data["LLM_PROVIDER"] = normalized
            raw_strategy = data.get("TRANSLATION_STRATEGY")
            if isinstance(raw_strategy, str):
                data["TRANSLATION_STRATEGY"] = raw_strategy.strip().lower()
        return data


Layer = tuple[str, Mapping[str, Any]]


def _file_layers(app_dir: Path) -> list[Layer]:
    """Discovered YAML files as ``(source, values)`` pairs, lowest priority first."""

    layers: list[Layer] = []
    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=app_dir, extra_paths=None):
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(f"{path} must hold a mapping of settings at its top level.")
        layers.append((_path_to_source(label, "yaml", path), parsed))
    return layers


def _env_layers(app_dir: Path) -> list[Layer]:
    """One layer per known key set in ``.env``, then in the process environment."""

    origins: list[tuple[str, Mapping[str, Any]]] = []
    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        origins.append((".env", dotenv_values(dotenv_path)))
    origins.append(("process", os.environ))

    known = sorted(BabelBlocksConfig.__field_infos__)
    return [
        (f"env:{origin}:{key}", {key: values[key]})
        for origin, values in origins
        for key in known
        if isinstance(values.get(key), str)
    ]


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Merge every configuration layer and validate the result once."""

    base_dir = app_dir or Path.cwd()
    provenance = ProvenanceRecorder()
    combined: dict[str, Any] = {}
    try:
        for source, values in _file_layers(base_dir):
            merge_layer(combined, values, provenance=provenance, source=source, layer="file")
        for source, values in _env_layers(base_dir):
            merge_layer(combined, values, provenance=provenance, source=source, layer="env")
        if not combined:
            raise ConfigNotFound("No configuration sources were found.")
        model = BabelBlocksConfig.validate(combined, provenance=provenance)
    except ConfigNotFound as exc:
        raise ConfigurationError(
            "No settings found. Set LLM_PROVIDER and a provider API key in a "
            "config.yaml, a .env file or the environment."
        ) from exc
    except IoError as exc:
        raise ConfigurationError(f"Could not read configuration: {exc}") from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Invalid configuration schema: {exc}") from exc
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_errors(exc.to_dict())) from exc

    _validate_provider_settings(model)
    return ConfigInstance(
        model=model,
        provenance=provenance,
        env_prefix=None,
        schema_cls=BabelBlocksConfig,
    )


API_KEY_FIELDS = {
    "openai": "OPENAI_API_KEY",
    "claude": "CLAUDE_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

MODEL_FIELDS = {
    "openai": "OPENAI_MODEL",
    "claude": "CLAUDE_MODEL",
    "gemini": "GEMINI_MODEL",
}


def _bullet_list(issues: Iterable[str]) -> str:
    return "Configuration validation errors detected:\n" + "\n".join(
        f"- {issue}" for issue in issues
    )


def _validate_provider_settings(settings: BabelBlocksConfig) -> None:
    provider = settings.LLM_PROVIDER
    issues: list[str] = []

    key_field = API_KEY_FIELDS.get(provider)
    if key_field and not getattr(settings, key_field):
        issues.append(f"{key_field} is required when LLM_PROVIDER is '{provider}'.")
    if settings.CHUNK_THRESHOLD < 1:
        issues.append("CHUNK_THRESHOLD must be a positive number of characters.")
    if settings.MAX_WORKERS < 1:
        issues.append("MAX_WORKERS must be at least 1.")
    if "{target_language}" not in settings.TRANSLATION_PROMPT:
        issues.append("TRANSLATION_PROMPT must contain the {target_language} placeholder.")

    if issues:
        raise ConfigurationError(_bullet_list(issues))


def _describe_issue(entry: Mapping[str, Any]) -> str:
    path = entry.get("path") or ()
    if isinstance(path, (list, tuple)):
        location = ".".join(str(part) for part in path if part not in (None, ""))
    else:
        location = str(path)
    text = str(entry.get("message") or entry.get("msg") or "Invalid value")
    if location:
        text = f"{location}: {text}"
    if entry.get("source"):
        text += f" (source: {entry['source']})"
    return text


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    return _bullet_list(_describe_issue(entry) for entry in entries)



def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> BabelBlocksConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def parse_meta_fields(raw: str) -> tuple[str, ...]:
    return tuple(key.strip() for key in raw.split(",") if key.strip())


def to_pipeline_config(settings: BabelBlocksConfig) -> PipelineConfig:
    """Convert loaded settings into the explicit value the orchestrator takes."""

    return PipelineConfig(
        chunk_threshold=settings.CHUNK_THRESHOLD,
        strategy=TranslationStrategy(settings.TRANSLATION_STRATEGY),
        max_workers=settings.MAX_WORKERS,
        meta_fields=parse_meta_fields(settings.META_FIELDS),
    )


def build_client_from_settings(
    settings: BabelBlocksConfig,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    debug: bool = False,
) -> TranslationClient:
    """Create the translation client selected by settings or explicit overrides."""

    name = (provider or settings.LLM_PROVIDER).strip().lower()
    name = PROVIDER_SYNONYMS.get(name, name)
    key_field = API_KEY_FIELDS.get(name)
    model_field = MODEL_FIELDS.get(name)
    return build_client(
        name,
        api_key=getattr(settings, key_field) if key_field else None,
        model=model or (getattr(settings, model_field) if model_field else None),
        timeout=settings.REQUEST_TIMEOUT,
        prompt_template=settings.TRANSLATION_PROMPT,
        debug=debug or settings.BABELBLOCKS_PROVIDER_DEBUG,
    )
