"""Application state and configuration."""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from fipscheck.core.base import TEMPLATE_KEY, BaseConfig, BaseState
from fipscheck.core.log import Logger
from fipscheck.core.result import RunSummary
from fipscheck.core.yaml_settings import YamlWithIncludesSettingsSource
from fipscheck.image.battery import Probe

# Modules available for template substitution in YAML files
# Usage: {platformdirs.user_log_dir}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

PFX_PASSWORD_ENV = "PFX_PASSWORD"


# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class CryptoConfig(BaseConfig):
    """In-process primitive battery settings."""

    payload: str = Field(
        default="fips-compliance-test-data",
        description="Plaintext fed to every primitive",
    )
    hmac_key: str = Field(
        default="test-key",
        description="Key for the HMAC-SHA256 check",
    )
    certificate_dir: Path = Field(
        default=Path("certs"),
        description="Directory scanned (non-recursively) for PKCS#12 files",
    )
    certificate_extensions: list[str] = Field(
        default_factory=lambda: [".pfx", ".p12"],
        description="File suffixes treated as PKCS#12 containers",
    )
    pfx_password: str | None = Field(
        default=None,
        description=(
            f"Container password. If not set, {PFX_PASSWORD_ENV} is "
            "used, else the empty string"
        ),
        json_schema_extra={TEMPLATE_KEY: False},
    )

    def resolved_password(self) -> str:
        if self.pfx_password is not None:
            return self.pfx_password
        return os.environ.get(PFX_PASSWORD_ENV, "")


class ImageConfig(BaseConfig):
    """Container image probe settings."""

    name: str = Field(
        default="dotnet-aspnet-fips",
        description="Image reference to test",
    )
    engine: str = Field(
        default="docker",
        description="Container engine executable",
    )
    timeout: int = Field(
        default=120,
        description="Timeout per engine command in seconds",
    )
    fips_version: str = Field(
        default="3.0.9",
        description="Expected FIPS provider version",
    )
    fips_certificate: str = Field(
        default="4282",
        description="Expected CMVP certificate number",
    )
    probes: list[Probe] = Field(
        default_factory=list,
        description="Ordered probes (defaults come from default.yaml)",
    )


class ReportConfig(BaseConfig):
    """PASS/FAIL report output."""

    colors: str = Field(
        default="auto",
        description="Color mode: auto, always, never",
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance",
    )
    crypto: CryptoConfig = Field(
        default_factory=CryptoConfig,
        description="In-process battery settings",
    )
    image: ImageConfig = Field(
        default_factory=ImageConfig,
        description="Image probe settings",
    )
    report: ReportConfig = Field(
        default_factory=ReportConfig,
        description="Report output settings",
    )
    log_level: str = Field(
        default="warn",
        alias="log-level",
        description=(
            "Console log level: 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "fipscheck"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def _setup_logger(self) -> Config:
        """Initialize the global logger once config has loaded."""
        from fipscheck.core.log import ConsoleSink, setup_logger

        if self.logger is None:
            self.logger = Logger(console=ConsoleSink(level=self.log_level))

        setup_logger(
            log_root=self.log_root,
            run_name="fipscheck",
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
        )
        return self

    def close(self):
        """Close the global logger, then the other children."""
        from fipscheck.core.log import logger
        logger.close()
        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable during a run)
# ============================================================

class CryptoState(BaseState):
    """In-process battery runtime state."""

    summary: RunSummary = Field(default_factory=RunSummary)


class ImageState(BaseState):
    """Image battery runtime state."""

    summary: RunSummary = Field(default_factory=RunSummary)
    image_found: bool | None = Field(
        default=None,
        description="Result of the pre-flight gate, once run",
    )


class Runtime(BaseModel):
    """All runtime state organized by command."""

    crypto: CryptoState = Field(default_factory=CryptoState)
    image: ImageState = Field(default_factory=ImageState)


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Complete application state: configuration and runtime.

    Loads from CLI arguments, YAML files, .env and environment
    variables (FIPSCHECK_CONFIG__IMAGE__NAME=...), in that priority.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates during a run)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="fipscheck.yaml",
        env_file=".env",
        env_prefix="FIPSCHECK_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init args, YAML, .env, environment, secrets."""
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.config.close()
        return False

    @model_validator(mode="after")
    def substitute_templates(self) -> State:
        """Replace {config.*} style templates in every string field."""
        self._substitute_recursive(self.config)
        return self

    def _substitute_recursive(self, obj: Any, escape=None) -> None:
        if isinstance(obj, BaseModel):
            for field_name, field in obj.__class__.model_fields.items():
                mode = (field.json_schema_extra or {}).get(TEMPLATE_KEY)
                if mode is False:
                    continue
                value = getattr(obj, field_name)
                new_value = self._substitute_value(
                    value, re.escape if mode == "regex" else None
                )
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key], escape)
        elif isinstance(obj, list):
            for i in range(len(obj)):
                obj[i] = self._substitute_value(obj[i], escape)

    def _substitute_value(self, value: Any, escape=None) -> Any:
        # str-based enums such as Polarity are values, not templates
        if isinstance(value, Enum):
            return value
        if isinstance(value, str):
            return self._substitute_string(value, escape)
        if isinstance(value, Path):
            return Path(self._substitute_string(str(value)))
        if isinstance(value, (BaseModel, dict, list)):
            if not isinstance(value, Logger):
                self._substitute_recursive(value, escape)
        return value

    def _substitute_string(self, value: str, escape=None) -> str:
        """Replace {field.path} templates with actual field values.

        Examples:
            "version: {config.image.fips_version}" -> "version: 3.0.9"
            "{platformdirs.user_log_dir}" -> "~/.local/state/fipscheck/log"

        Anything that does not resolve is left as written, so regexes
        and Go templates pass through untouched. With an escape function
        (re.escape for regex fields) each substituted value is escaped.
        """
        def replace_template(match):
            parts = match.group(1).split(".")

            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = obj('fipscheck', appauthor=False)
            except (AttributeError, TypeError):
                return match.group(0)
            text = str(obj)
            return escape(text) if escape else text

        return re.sub(r'\{([a-z._]+)\}', replace_template, value)


__all__ = ["State", "Config", "BaseConfig", "BaseState"]
