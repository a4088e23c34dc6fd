"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ProviderConfig:
    name: str
    sdk: str
    api_key_env: str
    timeout_sec: int
    base_url: str | None = None


@dataclass
class ModelInfo:
    model_id: str
    provider: str
    api_model: str
    display_name: str
    max_tokens: int
    debater: bool = True
    judge: bool = True
    system_prompt: str | None = None


@dataclass
class PromptsConfig:
    system: str
    round_instructions: dict[str, str]
    judge_system: str
    panel_judge_system: str
    styles: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    data_dir: Path
    format: str
    positions: tuple[str, str] = ("For", "Against")
    stream: bool = False


@dataclass
class RetryConfig:
    max_retries: int = 3
    base_delay_sec: float = 1.0


@dataclass
class RatingsConfig:
    default_rating: int = 1500
    k_factor: int = 32
    rate_draws: bool = False


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[str, ProviderConfig]
    models: dict[str, ModelInfo]
    prompts: PromptsConfig
    retry: RetryConfig = field(default_factory=RetryConfig)
    ratings: RatingsConfig = field(default_factory=RatingsConfig)
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a model
    references a provider that is not declared.
    Logs warnings for missing API keys but does not raise — callers check
    available_providers count.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    positions = defaults_raw.get("positions", ["For", "Against"])
    defaults = DefaultsConfig(
        data_dir=Path(defaults_raw["data_dir"]),
        format=str(defaults_raw["format"]),
        positions=(str(positions[0]), str(positions[1])),
        stream=bool(defaults_raw.get("stream", False)),
    )

    retry_raw = raw.get("retry", {})
    retry = RetryConfig(
        max_retries=int(retry_raw.get("max_retries", 3)),
        base_delay_sec=float(retry_raw.get("base_delay_sec", 1.0)),
    )

    ratings_raw = raw.get("ratings", {})
    ratings = RatingsConfig(
        default_rating=int(ratings_raw.get("default_rating", 1500)),
        k_factor=int(ratings_raw.get("k_factor", 32)),
        rate_draws=bool(ratings_raw.get("rate_draws", False)),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        system=prompts_raw["system"],
        round_instructions={k: str(v) for k, v in prompts_raw["round_instructions"].items()},
        judge_system=prompts_raw["judge_system"],
        panel_judge_system=prompts_raw["panel_judge_system"],
        styles={k: str(v) for k, v in raw.get("styles", {}).items()},
    )
    if "default" not in prompts.round_instructions:
        raise ValueError("prompts.round_instructions must define a 'default' entry")

    providers: dict[str, ProviderConfig] = {}
    available_providers: set[str] = set()

    for provider_name, provider_raw in raw["providers"].items():
        providers[provider_name] = ProviderConfig(
            name=provider_name,
            sdk=provider_raw["sdk"],
            api_key_env=provider_raw["api_key_env"],
            timeout_sec=int(provider_raw["timeout_sec"]),
            base_url=provider_raw.get("base_url"),
        )

        api_key = os.environ.get(provider_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s — set %s in .env",
                provider_name,
                provider_raw["api_key_env"],
            )

    models: dict[str, ModelInfo] = {}
    for model_id, model_raw in raw["models"].items():
        if model_raw["provider"] not in providers:
            raise ValueError(f"Model '{model_id}' references unknown provider '{model_raw['provider']}'")
        models[model_id] = ModelInfo(
            model_id=model_id,
            provider=model_raw["provider"],
            api_model=model_raw["api_model"],
            display_name=model_raw["display_name"],
            max_tokens=int(model_raw["max_tokens"]),
            debater=bool(model_raw.get("debater", True)),
            judge=bool(model_raw.get("judge", True)),
            system_prompt=model_raw.get("system_prompt"),
        )

    return AppConfig(
        defaults=defaults,
        providers=providers,
        models=models,
        prompts=prompts,
        retry=retry,
        ratings=ratings,
        available_providers=available_providers,
    )
