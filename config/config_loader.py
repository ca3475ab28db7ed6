"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

AGENT_ROLES = ("proponent", "opponent", "moderator", "analyst", "solution")


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    templates: dict[str, str]
    personas: dict[str, str] = field(default_factory=dict)

    def render(self, name: str, **values: object) -> str:
        """Format the named template. Raises KeyError for unknown templates."""
        return self.templates[name].format(**values)


@dataclass
class DefaultsConfig:
    rounds: int
    max_rounds: int
    db_path: Path
    output_dir: Path
    solutions_per_problem: int = 3


@dataclass
class GenerationConfig:
    max_retries: int = 2
    backoff_sec: float = 1.0
    call_timeout_sec: float = 90.0
    fallback_provider: str | None = None
    rate_limit_per_minute: int = 0  # 0 disables the limiter


@dataclass
class EvidenceConfig:
    max_claims: int = 3
    max_gathered: int = 2
    min_sentence_length: int = 30
    default_confidence: int = 75
    default_relevance: int = 80
    snippet_chars: int = 500
    hedge_phrases: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    agents: dict[str, str]
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    evidence: EvidenceConfig = field(default_factory=EvidenceConfig)
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if the
    agent mapping names an unknown role or model.
    Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        rounds=int(defaults_raw["rounds"]),
        max_rounds=int(defaults_raw["max_rounds"]),
        db_path=Path(defaults_raw["db_path"]),
        output_dir=Path(defaults_raw["output_dir"]),
        solutions_per_problem=int(defaults_raw.get("solutions_per_problem", 3)),
    )
    if not 1 <= defaults.rounds <= defaults.max_rounds:
        raise ValueError(
            f"defaults.rounds must be between 1 and max_rounds ({defaults.max_rounds}), got {defaults.rounds}"
        )

    gen_raw = raw.get("generation", {})
    generation = GenerationConfig(
        max_retries=int(gen_raw.get("max_retries", 2)),
        backoff_sec=float(gen_raw.get("backoff_sec", 1.0)),
        call_timeout_sec=float(gen_raw.get("call_timeout_sec", 90)),
        fallback_provider=gen_raw.get("fallback_provider"),
        rate_limit_per_minute=int(gen_raw.get("rate_limit_per_minute", 0)),
    )

    ev_raw = raw.get("evidence", {})
    evidence = EvidenceConfig(
        max_claims=int(ev_raw.get("max_claims", 3)),
        max_gathered=int(ev_raw.get("max_gathered", 2)),
        min_sentence_length=int(ev_raw.get("min_sentence_length", 30)),
        default_confidence=int(ev_raw.get("default_confidence", 75)),
        default_relevance=int(ev_raw.get("default_relevance", 80)),
        snippet_chars=int(ev_raw.get("snippet_chars", 500)),
        hedge_phrases=[str(p) for p in ev_raw.get("hedge_phrases", [])],
    )

    prompts = PromptsConfig(
        templates={k: str(v) for k, v in raw["prompts"].items()},
        personas={k: str(v).strip() for k, v in raw.get("personas", {}).items()},
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    agents = {str(k): str(v) for k, v in raw.get("agents", {}).items()}
    for role, provider_name in agents.items():
        if role not in AGENT_ROLES:
            raise ValueError(f"Unknown agent role in settings: {role}")
        if provider_name not in models:
            raise ValueError(f"Agent '{role}' uses unknown model '{provider_name}'")

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        agents=agents,
        generation=generation,
        evidence=evidence,
        available_providers=available_providers,
    )
