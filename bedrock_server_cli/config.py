import json
import os
import logging
from pathlib import Path
from typing import Optional
from pydantic import ValidationError
from dotenv import dotenv_values, set_key

from .schemas import AppConfig
from .display import Display

log = logging.getLogger(__name__)

CONFIG_HOME_ENV_VAR = "BEDROCK_SERVER_HOME"
CONFIG_FILE_NAME = "bedrock-server.json"
ENV_FILE_NAME = ".env"
BOT_TOKEN_KEY = "TELEGRAM_BOT_TOKEN"


def get_default_config_dir() -> Path:
    """Returns the configuration directory, honouring BEDROCK_SERVER_HOME."""
    override = os.environ.get(CONFIG_HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".bedrock-server"


def get_default_config_file() -> Path:
    return get_default_config_dir() / CONFIG_FILE_NAME


def get_default_env_file() -> Path:
    return get_default_config_dir() / ENV_FILE_NAME


def _apply_env_values(app_config: AppConfig, env_path: Path) -> AppConfig:
    """Merges secrets from the .env file into a copy of the config."""
    env_vars = dotenv_values(env_path)
    token = env_vars.get(BOT_TOKEN_KEY)
    if not token:
        return app_config
    notifications = app_config.notifications.model_copy(update={"bot_token": token})
    return app_config.model_copy(update={"notifications": notifications})


def load_config(
    display: Display,
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> tuple[AppConfig, bool]:
    """
    Loads the application configuration from JSON and .env files.
    If they don't exist, it creates default configurations.

    Returns:
        tuple: (AppConfig, fell_back_to_defaults)
    """
    config_path = config_path or get_default_config_file()
    env_path = env_path or get_default_env_file()

    if not config_path.exists() or not env_path.exists():
        log.info(f"Creating default configuration files in {config_path.parent}")
        app_config = AppConfig()
        if config_path.exists():
            # Keep an existing JSON file, only the .env file is missing
            try:
                with open(config_path, "r") as f:
                    app_config = AppConfig(**json.load(f))
            except (json.JSONDecodeError, ValidationError) as e:
                log.debug(f"Config fallback: {type(e).__name__}")
                return AppConfig(), True
        save_config(display, app_config, config_path, env_path)
        return app_config, False

    try:
        with open(config_path, "r") as f:
            data = json.load(f)
        app_config = AppConfig(**data)
        return _apply_env_values(app_config, env_path), False
    except (json.JSONDecodeError, ValidationError) as e:
        log.debug(f"Config fallback: {type(e).__name__}")
        return _apply_env_values(AppConfig(), env_path), True


def save_config(
    display: Display,
    config: AppConfig,
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
):
    """Saves the configuration; the bot token goes to the .env file only."""
    config_path = config_path or get_default_config_file()
    env_path = env_path or get_default_env_file()
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            f.write(config.model_dump_json(indent=4, exclude={"notifications": {"bot_token"}}))

        env_path.touch(exist_ok=True)
        if config.notifications.bot_token:
            set_key(env_path, BOT_TOKEN_KEY, config.notifications.bot_token)

    except IOError:
        log.error(f"Could not save configuration to {config_path}.", exc_info=True)


class Config:
    """A configuration manager that handles loading and accessing app configuration."""

    def __init__(self, display: Display, config_path: Optional[Path] = None, env_path: Optional[Path] = None):
        self._display = display
        self._config_path = config_path or get_default_config_file()
        self._env_path = env_path or get_default_env_file()
        self._app_config, self._fell_back_to_defaults = load_config(display, self._config_path, self._env_path)

    @property
    def app_config(self) -> AppConfig:
        """Returns the loaded AppConfig object."""
        return self._app_config

    @property
    def fell_back_to_defaults(self) -> bool:
        """Returns True if the config fell back to defaults due to loading errors."""
        return self._fell_back_to_defaults

    @property
    def config_path(self) -> Path:
        return self._config_path

    def save(self):
        """Save the current configuration to file."""
        save_config(self._display, self._app_config, self._config_path, self._env_path)
