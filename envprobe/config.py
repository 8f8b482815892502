"""Configuration system for the environment probe."""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, Mapping, Union
import yaml
from pydantic import BaseModel, Field, field_validator, ConfigDict, ValidationError

from .exceptions import ConfigError
from .models import Credentials, EnvironmentConfig, LoginLocators

logger = logging.getLogger(__name__)


class ProbeSettings(BaseModel):
    """Execution strategy settings."""
    strategy: str = "auto"
    headless: bool = True
    browser: str = "chromium"

    model_config = ConfigDict(from_attributes=True)

    @field_validator('strategy')
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        allowed = {'auto', 'browser', 'static'}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"strategy must be one of {allowed}")
        return v_lower

    @field_validator('browser')
    @classmethod
    def validate_browser(cls, v: str) -> str:
        allowed = {'chromium', 'firefox', 'webkit'}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"browser must be one of {allowed}")
        return v_lower


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file_path: str = "data/envprobe.log"
    console_enabled: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper


class HistoryConfig(BaseModel):
    """Run history settings."""
    enabled: bool = True
    db_path: str = "data/envprobe.db"
    history_limit: int = 50

    model_config = ConfigDict(from_attributes=True)

    @field_validator('history_limit')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("history_limit must be positive")
        return v


class LLMConfig(BaseModel):
    """Ollama settings for the narrative report analysis."""
    enabled: bool = True
    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout: int = 60

    model_config = ConfigDict(from_attributes=True)

    @field_validator('temperature')
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("temperature must be between 0 and 2")
        return v


class EnvironmentSettings(BaseModel):
    """A named environment as stored in the config file.

    Field names follow the form the settings are entered in; camelCase keys
    (``baseUrl``, ``selectorUser``...) are accepted as aliases.
    """
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    api_endpoint: Optional[str] = Field(default=None, alias="apiEndpoint")
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    dashboard_url: Optional[str] = Field(default=None, alias="dashboardUrl")
    selector_user: Optional[str] = Field(default=None, alias="selectorUser")
    selector_pass: Optional[str] = Field(default=None, alias="selectorPass")
    selector_btn: Optional[str] = Field(default=None, alias="selectorBtn")
    error_msg: Optional[str] = Field(default=None, alias="errorMsg")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @property
    def is_empty(self) -> bool:
        return not any(self.model_dump().values())

    def to_archive_dict(self) -> Dict[str, Any]:
        """Settings for archiving, with the password masked."""
        data = self.model_dump()
        if data.get("password"):
            data["password"] = "********"
        return data


class AppConfig(BaseModel):
    """Main application configuration."""
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    environments: Dict[str, EnvironmentSettings] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

    @field_validator('environments', mode='before')
    @classmethod
    def empty_environments(cls, v: Any) -> Any:
        # "Dev:" with no body in YAML loads as None
        if isinstance(v, dict):
            return {name: settings or {} for name, settings in v.items()}
        return v or {}

    def get_environment(self, name: str) -> EnvironmentSettings:
        """Look up a named environment, case-insensitively."""
        if name in self.environments:
            return self.environments[name]
        for env_name, settings in self.environments.items():
            if env_name.lower() == name.lower():
                return settings
        raise ConfigError(f"Unknown environment: {name}. Known: {', '.join(self.environments) or 'none'}")


class ConfigLoader:
    """Load and validate configuration from YAML files."""

    @staticmethod
    def load_config(
        config_path: str,
        local_override_path: Optional[str] = None
    ) -> AppConfig:
        """Load configuration with optional local overrides.

        Args:
            config_path: Path to main config file
            local_override_path: Optional path to local override file

        Returns:
            Validated AppConfig

        Raises:
            ConfigError: If config loading or validation fails
        """
        try:
            config_dict = ConfigLoader._load_yaml(config_path)

            if local_override_path and Path(local_override_path).exists():
                logger.info(f"Loading local config overrides from {local_override_path}")
                override_dict = ConfigLoader._load_yaml(local_override_path)
                config_dict = ConfigLoader.merge_configs(config_dict, override_dict)

            config = AppConfig(**config_dict)
            ConfigLoader.validate_paths(config)

            logger.info("Configuration loaded successfully")
            return config

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigError(f"Failed to load configuration: {e}")

    @staticmethod
    def _load_yaml(path: str) -> dict:
        """Load YAML file."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
                return data if data else {}
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

    @staticmethod
    def merge_configs(base: dict, override: dict) -> dict:
        """Deep merge two configuration dictionaries.

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigLoader.merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def validate_paths(config: AppConfig):
        """Create the directories the configuration points at."""
        Path(config.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
        if config.history.enabled:
            Path(config.history.db_path).parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def save_config(config: Union[AppConfig, Dict[str, Any]], output_path: str):
        """Save configuration to YAML file.

        Args:
            config: Configuration, or a partial configuration dict such as an override
            output_path: Output file path
        """
        try:
            if isinstance(config, AppConfig):
                config_dict = config.model_dump(exclude_none=True)
            else:
                config_dict = config

            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

            logger.info(f"Configuration saved to {output_path}")
        except Exception as e:
            logger.error(f"Failed to save configuration: {e}")
            raise ConfigError(f"Failed to save configuration: {e}")

    @staticmethod
    def save_environment(name: str, settings: EnvironmentSettings, override_path: str):
        """Write one named environment into the local override file.

        Fields already in the override that ``settings`` leaves unset are kept.
        The rest of the override file is preserved.

        Raises:
            ConfigError: The override file is invalid or cannot be written
        """
        override = ConfigLoader._load_yaml(override_path) if Path(override_path).exists() else {}
        update = {"environments": {name: settings.model_dump(exclude_none=True)}}
        ConfigLoader.save_config(ConfigLoader.merge_configs(override, update), override_path)
        logger.info(f"Environment {name} saved to {override_path}")


def get_default_config() -> AppConfig:
    """Get default configuration."""
    return AppConfig()


# Process environment variables consulted as a last resort, per settings field.
ENVIRONMENT_VARIABLES = {
    "base_url": "BASE_URL",
    "api_endpoint": "API_ENDPOINT",
    "username": "LOGIN_USERNAME",
    "password": "LOGIN_PASSWORD",
    "dashboard_url": "DASHBOARD_URL",
    "selector_user": "SELECTOR_USERNAME",
    "selector_pass": "SELECTOR_PASSWORD",
    "selector_btn": "SELECTOR_LOGIN_BTN",
    "error_msg": "ERROR_MSG",
}


def _first_set(*values: Optional[str]) -> Optional[str]:
    # Blank counts as unset; the chosen value is passed through untouched.
    for value in values:
        if value is not None and str(value).strip():
            return value
    return None


def resolve_environment(
    settings: Optional[EnvironmentSettings] = None,
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    environ: Optional[Mapping[str, str]] = None,
    name: Optional[str] = None,
) -> EnvironmentConfig:
    """Build the immutable EnvironmentConfig for one run.

    This is the only place ambient process settings are read. Precedence per
    field: explicit override, then the named environment, then ``environ``.

    Args:
        settings: Named environment from the config file
        overrides: Values given directly (e.g. CLI options), keyed by settings field
        environ: Process environment mapping; nothing is read when omitted
        name: Environment name recorded on the result

    Returns:
        EnvironmentConfig

    Raises:
        ConfigError: No target URL could be resolved, or values are invalid
    """
    settings = settings or EnvironmentSettings()
    overrides = overrides or {}
    environ = environ or {}

    values = {}
    for field, variable in ENVIRONMENT_VARIABLES.items():
        values[field] = _first_set(
            overrides.get(field),
            getattr(settings, field),
            environ.get(variable),
        )

    if not values["base_url"]:
        raise ConfigError(
            "No target URL configured. Set base_url for the environment, pass --url, or export BASE_URL."
        )

    credentials = None
    if values["username"] and values["password"]:
        credentials = Credentials(username=values["username"], password=values["password"])

    locators = LoginLocators(
        user=values["selector_user"],
        password=values["selector_pass"],
        submit=values["selector_btn"],
    )

    try:
        return EnvironmentConfig(
            name=name,
            target_url=values["base_url"],
            api_endpoint=values["api_endpoint"],
            credentials=credentials,
            dashboard_url=values["dashboard_url"],
            locators=locators if locators.any_set else None,
            expected_error_text=values["error_msg"],
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid environment configuration: {e}") from e
