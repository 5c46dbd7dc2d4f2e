"""
Configuration management for cost analysis.

Uses dynaconf for flexible configuration with YAML files and environment overrides.
"""

import logging
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf, Validator

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Initialize dynaconf with multiple configuration sources
settings = Dynaconf(
    envvar_prefix="COSTANALYSIS",
    settings_files=[
        str(CONFIG_DIR / "config.yaml"),        # Base configuration
        str(CONFIG_DIR / "config.local.yaml"),  # Local overrides (git-ignored)
        str(CONFIG_DIR / ".secrets.yaml"),      # Secrets file (git-ignored)
    ],
    environments=False,
    load_dotenv=True,
    merge_enabled=True,
    envvar_separator="__",  # Support nested config via COSTANALYSIS__API__BASE_URL=...
    validators=[
        Validator("api.base_url", must_exist=True, default="http://localhost:5000/api"),
        Validator("api.verify_ssl", default=True),
        Validator("query.default_preset", default="lastMonth"),
        Validator("query.default_granularity", is_in=["None", "Daily"], default="Daily"),
        Validator("query.default_grouping", default=["ResourceId"]),
        Validator("query.include_previous_period", default=True),
        Validator("query.aggregation_metric", default="PreTaxCost"),
        Validator("anonymization.activation_key", len_eq=1, default="a"),
        Validator("anonymization.window_seconds", gt=0, default=2.0),
        Validator("anonymization.required_presses", gte=2, default=3),
        Validator("display.default_currency", len_eq=3, default="USD"),
    ],
)


class AnalysisConfig:
    """Configuration wrapper for cost analysis settings."""

    def __init__(self):
        self.settings = settings
        self._validate_config()

    def _validate_config(self):
        """Validate the configuration on initialization."""
        try:
            self.settings.validators.validate()
        except Exception as e:
            logger.warning(f"Configuration validation warning: {e}")

    @property
    def api(self) -> dict[str, Any]:
        """Billing backend API settings."""
        return self.settings.get("api", {})

    @property
    def query(self) -> dict[str, Any]:
        """Defaults applied to a new query."""
        return self.settings.get("query", {})

    @property
    def anonymization(self) -> dict[str, Any]:
        return self.settings.get("anonymization", {})

    @property
    def display(self) -> dict[str, Any]:
        return self.settings.get("display", {})

    @property
    def default_currency(self) -> str:
        return str(self.display.get("default_currency", "USD")).upper()

    def get_backend_config(self) -> dict[str, Any]:
        """Configuration passed to the billing backend."""
        return {
            "base_url": self.api.get("base_url"),
            "token": self.api.get("token"),
            "verify_ssl": self.api.get("verify_ssl", True),
            "default_currency": self.default_currency,
        }

    def override_from_cli(self, cli_args: dict[str, Any]):
        """Override configuration with CLI arguments."""
        cli_mapping = {
            "base_url": "api.base_url",
            "token": "api.token",
        }

        for cli_key, config_path in cli_mapping.items():
            if cli_args.get(cli_key) is not None:
                self.settings.set(config_path, cli_args[cli_key])

        # Re-validate after overrides
        self._validate_config()


# Global configuration instance
config = AnalysisConfig()


def get_config() -> AnalysisConfig:
    """Get the global configuration instance."""
    return config


def reload_config() -> AnalysisConfig:
    """Reload configuration from files."""
    global config
    settings.reload()
    config = AnalysisConfig()
    return config
