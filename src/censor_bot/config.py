"""Configuration loading and validation."""

from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class IOTQQConfig(BaseModel):
    """IOTQQ bridge configuration."""

    web_api: str = "http://127.0.0.1:8888/v1"
    ws_api: str = "http://127.0.0.1:8888"
    web_api_user: str | None = None
    web_api_password: SecretStr | None = None
    login_qq: int = 0  # The bot's own QQ id
    report_qq: int = 0  # Operator QQ id; receives reports and may issue commands
    call_timeout: Annotated[int, Field(ge=1)] = 10  # Passed to LuaApiCaller


class BaiduConfig(BaseModel):
    """Baidu AIP text censor credentials."""

    app_id: str = ""
    api_key: SecretStr | None = None
    secret_key: SecretStr | None = None
    base_url: str = "https://aip.baidubce.com"


class HTTPConfig(BaseModel):
    """Outbound HTTP client settings shared by all adapters."""

    proxy: str | None = None
    verify_ssl: bool = True
    timeout_seconds: Annotated[float, Field(gt=0.0)] = 5.0


class ModerationConfig(BaseModel):
    """Moderation behavior that is not operator-mutable at runtime."""

    settings_path: Path = Path("./data/settings.json")
    # Reason substrings that allow retraction when censor_all is off
    revoke_signatures: list[str] = Field(default_factory=lambda: ["恶意推广"])
    # IOTQQ RevokeMsg "No message meets the requirements"
    not_retractable_code: int = 1001


class DebugConfig(BaseModel):
    """Debug server configuration."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: Annotated[int, Field(ge=1, le=65535)] = 8080
    trace_db_path: Path = Path("./data/traces.db")


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CENSOR_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    iotqq: IOTQQConfig = Field(default_factory=IOTQQConfig)
    baidu: BaiduConfig = Field(default_factory=BaiduConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (CENSOR_* prefix)
    2. YAML config file
    3. Default values

    Args:
        config_path: Path to YAML config file. If None, tries ./config.yaml

    Returns:
        Validated configuration object
    """
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    yaml_config: dict = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

    # Filter out None values from YAML (e.g., "baidu:" with no values parses as None)
    yaml_config = {k: v for k, v in yaml_config.items() if v is not None}

    return Config(**yaml_config)


def get_protected_ids(config: Config) -> tuple[int, int]:
    """Ids that must never leave the whitelist: the operator and the bot itself."""
    return (config.iotqq.report_qq, config.iotqq.login_qq)
