"""Provider/runtime configuration for the generation backend and engine.

Architectural role:
    Centralizes endpoint selection, credential lookup, polling limits and the
    style preset table consumed by `figurine.image.client` and
    `figurine.core.engine`.

Resolution:
    Values are read from the process environment (after `load_dotenv()`) by
    `GenerationConfig.from_env`. Direct construction is used by tests and by
    embedding hosts that own their own configuration.

Failure behavior:
    Missing credentials and out-of-range values raise `ConfigError`; the
    front-ends log it and refuse to start.
"""

import json
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from figurine.core.errors import ConfigError

load_dotenv()


IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "yunwu")

IMAGE_PROVIDERS = {

    "yunwu": {
        "submit_url": "https://yunwu.ai/fal-ai/nano-banana",
        "status_url": "https://yunwu.ai/fal-ai/auto/requests/",
        "key_file": "config/yunwu.key"
    },

}

DEFAULT_PRESETS = (
    "figurine, anime figure, detailed, high quality, professional photography, studio lighting",
    "chibi figurine, cute, kawaii style, pastel colors, soft lighting, collectible",
    "realistic figurine, premium quality, museum display, dramatic lighting, detailed craftsmanship",
    "fantasy figurine, magical, mystical atmosphere, ethereal lighting, enchanted",
)

MIN_IMAGE_COUNT = 1
MAX_IMAGE_COUNT = 4


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/yunwu.key` -> `YUNWU_API_KEY`).
        2. Raw file contents at `path`.

    Edge cases:
        - `None` path returns `None`.
        - Missing file returns `None`.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value.strip()
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_presets(name: str) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return DEFAULT_PRESETS
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{name} must be a JSON list of strings: {e}") from e
    if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
        raise ConfigError(f"{name} must be a JSON list of strings")
    return tuple(p.strip() for p in data)


def _check_range(name: str, value: int | float, low: int | float, high: int | float) -> None:
    if not low <= value <= high:
        raise ConfigError(f"{name} must be between {low} and {high}, got {value}")


@dataclass(frozen=True)
class GenerationConfig:
    """Runtime configuration consumed by the engine and the HTTP backend.

    Relevant environment variables:
        - `YUNWU_API_KEY` (or key file `config/yunwu.key`)
        - `FIGURINE_COOLDOWN_SECONDS`
        - `FIGURINE_API_TIMEOUT_SECONDS`
        - `FIGURINE_STATUS_TIMEOUT_SECONDS`
        - `FIGURINE_POLL_INTERVAL_SECONDS`
        - `FIGURINE_MAX_POLL_ATTEMPTS`
        - `FIGURINE_ENABLE_LOG`
        - `FIGURINE_MAX_IMAGE_SIZE_MB`
        - `FIGURINE_PRESETS` (JSON list)
        - `FIGURINE_DEFAULT_STYLE`
        - `FIGURINE_SUBMIT_URL` / `FIGURINE_STATUS_URL`
    """

    api_key: str
    cooldown_seconds: int = 30
    api_timeout_seconds: int = 120
    status_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 3.0
    max_poll_attempts: int = 40
    enable_log: bool = True
    max_image_size_mb: int = 10
    presets: tuple[str, ...] = field(default=DEFAULT_PRESETS)
    default_style: int = 1
    submit_url: str = IMAGE_PROVIDERS["yunwu"]["submit_url"]
    status_url: str = IMAGE_PROVIDERS["yunwu"]["status_url"]
    progress_every: int = 5

    def __post_init__(self):
        if not self.api_key or not self.api_key.strip():
            raise ConfigError("API key is not configured")
        _check_range("cooldown_seconds", self.cooldown_seconds, 5, 300)
        _check_range("api_timeout_seconds", self.api_timeout_seconds, 30, 600)
        _check_range("poll_interval_seconds", self.poll_interval_seconds, 1, 10)
        _check_range("max_poll_attempts", self.max_poll_attempts, 10, 100)
        _check_range("max_image_size_mb", self.max_image_size_mb, 1, 50)
        if self.status_timeout_seconds <= 0:
            raise ConfigError("status_timeout_seconds must be positive")
        if self.progress_every < 1:
            raise ConfigError("progress_every must be at least 1")
        if not self.presets or not all(p for p in self.presets):
            raise ConfigError("At least one non-empty style preset is required")
        _check_range("default_style", self.default_style, 1, len(self.presets))

    @property
    def style_count(self) -> int:
        return len(self.presets)

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls, provider: str | None = None) -> "GenerationConfig":
        """Build configuration from environment variables and key files.

        Raises:
            ConfigError: Unknown provider, missing key or out-of-range value.
        """
        provider = provider or IMAGE_PROVIDER
        provider_config = IMAGE_PROVIDERS.get(provider)
        if not provider_config:
            raise ConfigError(f"Unknown image provider: {provider}")

        api_key = load_key(provider_config.get("key_file"))
        if not api_key:
            raise ConfigError(
                f"API key for {provider} is not set (env or {provider_config.get('key_file')})"
            )

        return cls(
            api_key=api_key,
            cooldown_seconds=_env_int("FIGURINE_COOLDOWN_SECONDS", 30),
            api_timeout_seconds=_env_int("FIGURINE_API_TIMEOUT_SECONDS", 120),
            status_timeout_seconds=_env_float("FIGURINE_STATUS_TIMEOUT_SECONDS", 10.0),
            poll_interval_seconds=_env_float("FIGURINE_POLL_INTERVAL_SECONDS", 3.0),
            max_poll_attempts=_env_int("FIGURINE_MAX_POLL_ATTEMPTS", 40),
            enable_log=_env_bool("FIGURINE_ENABLE_LOG", True),
            max_image_size_mb=_env_int("FIGURINE_MAX_IMAGE_SIZE_MB", 10),
            presets=_env_presets("FIGURINE_PRESETS"),
            default_style=_env_int("FIGURINE_DEFAULT_STYLE", 1),
            submit_url=os.getenv("FIGURINE_SUBMIT_URL", provider_config["submit_url"]),
            status_url=os.getenv("FIGURINE_STATUS_URL", provider_config["status_url"]),
        )
