"""Configuration helpers for the Wardrobe Exchange service."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_DATABASE_PATH = "data/exchange.db"
PLATFORM_COMMISSION_RATE = 10


@dataclass
class ExchangeConfig:
    """Configuration values for the exchange service.

    Secrets (payment, identity and pseudonym keys) are expected to come from
    the runtime environment; everything else may also be provided through an
    environment specific YAML file.
    """

    database_path: str = DEFAULT_DATABASE_PATH
    environment: str | None = None
    app_base_url: str = "http://localhost:3000"
    platform_commission_rate: float = PLATFORM_COMMISSION_RATE
    currency: str = "usd"
    stripe_secret_key: Optional[str] = None
    stripe_api_base: str = "https://api.stripe.com"
    whop_api_key: Optional[str] = None
    whop_api_base: str = "https://api.whop.com"
    gemini_model: str = DEFAULT_GEMINI_MODEL
    history_pseudonym_secret: str = "local-development-secret"
    default_item_weight_oz: float = 8.0
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return (self.environment or "").lower() in {"development", "dev", "local"}

    @classmethod
    def from_env(cls) -> "ExchangeConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default. Environment variables always win over file values.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("EXCHANGE_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        return cls(
            database_path=str(get_value("database_path", DEFAULT_DATABASE_PATH)),
            environment=env_name or yaml_config.get("environment"),
            app_base_url=str(get_value("app_base_url", "http://localhost:3000")),
            platform_commission_rate=float(
                get_value("platform_commission_rate", str(PLATFORM_COMMISSION_RATE))
            ),
            currency=str(get_value("currency", "usd")).lower(),
            stripe_secret_key=get_value("stripe_secret_key"),
            stripe_api_base=str(get_value("stripe_api_base", "https://api.stripe.com")),
            whop_api_key=get_value("whop_api_key"),
            whop_api_base=str(get_value("whop_api_base", "https://api.whop.com")),
            gemini_model=str(get_value("gemini_model", DEFAULT_GEMINI_MODEL)),
            history_pseudonym_secret=str(
                get_value("history_pseudonym_secret", "local-development-secret")
            ),
            default_item_weight_oz=float(get_value("default_item_weight_oz", "8")),
            log_level=str(get_value("log_level", "INFO")),
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a flat ``key: value`` YAML file."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
