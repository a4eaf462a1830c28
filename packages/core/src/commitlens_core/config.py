import os
from pathlib import Path
from typing import Optional

import yaml

from commitlens_core.models import AdapterDescriptor, Mode

DEFAULT_CONFIG: dict = {
    "locale": "en",
    "generate": 1,
    "type": "",  # "" | "conventional" | "gitmoji"
    "exclude": [],  # fnmatch patterns or directory names left out of the diff
    "code_review": False,  # enables review mode for every provider
    "timeout": 10,
    "temperature": 0.7,
    "max_tokens": 1024,
    "prompt": None,
    "system_prompt_path": None,  # None = built-in prompt; commit messages only
    "providers": {},
}

PROVIDER_KINDS = ("openai", "anthropic", "ollama")

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
}

_DEFAULT_OLLAMA_HOST = "http://localhost:11434"


def load_config(config_path: str = ".commitlens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .commitlens.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"]), "providers": {}}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Environment credentials win over keys committed to the config file, and
    # a key in the environment is enough to enable that provider.
    providers = {name: dict(settings or {}) for name, settings in (config.get("providers") or {}).items()}
    for name, env_var in API_KEY_ENV.items():
        key = os.environ.get(env_var)
        if key:
            providers.setdefault(name, {})["key"] = key
    config["providers"] = providers

    return config


def validate_config(config: dict) -> None:
    """Raise ValueError for settings no run could succeed with."""
    generate = config.get("generate", 1)
    if not isinstance(generate, int) or generate < 1:
        raise ValueError(f"'generate' must be a positive integer, got {generate!r}.")
    for name in config.get("providers") or {}:
        if name not in PROVIDER_KINDS:
            raise ValueError(f"Unknown provider: {name!r}. Choose from {', '.join(PROVIDER_KINDS)}.")


def load_system_prompt(config: dict) -> str | None:
    """
    Load a custom system prompt.

    If ``system_prompt_path`` is set in config, loads from that path (relative
    to cwd). Otherwise returns None and providers use their built-in prompt.
    The custom prompt replaces the commit-message prompt only, never the
    review prompt.
    """
    custom_path = config.get("system_prompt_path")
    if not custom_path:
        return None
    p = Path(custom_path)
    if not p.exists():
        raise FileNotFoundError(f"System prompt file not found: {custom_path}")
    return p.read_text()


def build_descriptors(config: dict) -> list[AdapterDescriptor]:
    """Turn the ``providers`` section into the typed descriptor list the core consumes."""
    validate_config(config)
    system_prompt = load_system_prompt(config)
    descriptors: list[AdapterDescriptor] = []

    for kind, settings in (config.get("providers") or {}).items():
        common = dict(
            provider=kind,
            enabled=not settings.get("disabled", False),
            temperature=float(settings.get("temperature", config["temperature"])),
            timeout=float(settings.get("timeout", config["timeout"])),
            max_tokens=int(settings.get("max_tokens", config["max_tokens"])),
            system_prompt=system_prompt,
            code_review=bool(config.get("code_review") or settings.get("code_review", False)),
            review_per_file=bool(settings.get("review_per_file", False)),
        )

        if kind == "ollama":
            models = settings.get("model") or []
            if isinstance(models, str):
                models = [models]
            host = settings.get("host", _DEFAULT_OLLAMA_HOST)
            for model in models:
                descriptors.append(
                    AdapterDescriptor(name=f"ollama/{model}", model=model, available=True, host=host, **common)
                )
            continue

        key = settings.get("key")
        descriptors.append(
            AdapterDescriptor(
                name=kind,
                model=settings.get("model") or DEFAULT_MODELS[kind],
                available=bool(key),
                api_key=key,
                host=settings.get("host"),
                **common,
            )
        )

    return descriptors


def eligible_descriptors(descriptors: list[AdapterDescriptor], mode: Mode) -> list[AdapterDescriptor]:
    """Filter to backends that may run in ``mode``.

    Review mode additionally requires the backend's code_review flag, so a
    backend configured only for commit messages never receives review calls.
    """
    eligible = [d for d in descriptors if d.enabled and d.available]
    if mode is Mode.REVIEW:
        eligible = [d for d in eligible if d.code_review]
    return eligible
