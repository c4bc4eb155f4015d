"""Configuration management for the font asset pipeline."""

import os
from pathlib import Path

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigurationError,
    EmptyConfigFileError,
    EmptyCredentialError,
    InvalidEndpointUrlError,
    InvalidYamlError,
    ShortCredentialError,
)
from .models import FormatCode


class ConverterConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CONVERTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    """Format converter configuration."""

    woff2_transform_glyf: bool = Field(
        True, description="Apply the WOFF2 glyf/loca transform (smaller files)"
    )
    svg_font_id: str | None = Field(None, description="id attribute of generated SVG fonts")


class StylesheetConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STYLESHEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    """@font-face rendering options."""

    include_legacy_formats: bool = Field(False, description="Also reference eot, otf and svg")
    font_display: str | None = Field(None, description="font-display descriptor value")
    minify: bool = Field(False, description="Emit the rule on a single line")
    emit_axis_comments: bool = Field(True, description="Comment non-weight variation axes")

    @field_validator("font_display")
    @classmethod
    def validate_font_display(cls, v):
        if v is not None and v not in {"auto", "block", "swap", "fallback", "optional"}:
            raise ValueError(f"Unsupported font-display value: {v}")
        return v


class PipelineConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    """Lifecycle reconciler configuration."""

    pregenerate_formats: list[FormatCode] = Field(
        default_factory=lambda: [FormatCode.WOFF, FormatCode.TTF],
        description="Formats derived from a woff2 upload",
    )
    regenerate_existing: bool = Field(
        False, description="Overwrite occupied slots when deriving formats"
    )
    max_workers: int = Field(4, ge=1, le=16, description="Parallel conversion workers")
    use_slug_filenames: bool = Field(True, description="Name uploads <slug>.<ext>")
    cdn_base_url: str | None = Field(None, description="Base URL for stylesheet src entries")

    @field_validator("pregenerate_formats")
    @classmethod
    def validate_pregenerate_formats(cls, v):
        if FormatCode.CSS in v or FormatCode.WOFF2 in v:
            raise ValueError("pregenerate_formats cannot contain css or woff2")
        return v


class R2Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="R2_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    """Cloudflare R2 storage configuration."""

    endpoint_url: str = Field(..., description="R2 endpoint URL")
    access_key_id: str = Field(..., description="Access key ID", repr=False)
    secret_access_key: str = Field(..., description="Secret access key", repr=False)
    bucket_name: str = Field(..., description="Bucket name")
    region: str = Field("auto", description="Region")
    key_prefix: str = Field("fonts", description="Object key prefix")

    @field_validator("access_key_id", "secret_access_key")
    @classmethod
    def validate_credentials(cls, v):
        """Validate credentials are not empty and meet basic requirements."""
        if not v or len(v.strip()) == 0:
            raise EmptyCredentialError()
        if len(v.strip()) < 8:
            raise ShortCredentialError()
        return v.strip()

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v):
        """Validate endpoint URL format."""
        if not v.startswith(("https://", "http://")):
            raise InvalidEndpointUrlError()
        return v

    def __repr__(self) -> str:
        """Custom repr that masks sensitive fields."""
        return f"R2Config(endpoint_url='{self.endpoint_url}', bucket_name='{self.bucket_name}', region='{self.region}', access_key_id='***', secret_access_key='***')"

    def to_safe_dict(self) -> dict:
        """Export configuration with sensitive fields masked."""
        config_dict = self.model_dump()
        config_dict["access_key_id"] = "***MASKED***"
        config_dict["secret_access_key"] = "***MASKED***"
        return config_dict


class LoggingConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    """Logging configuration."""

    level: str = Field("INFO", description="Log level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log format"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()


class AppConfig(BaseSettings):
    """Main application configuration that loads from multiple sources."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(
        "development", description="Environment (development, staging, production)"
    )
    storage_backend: str = Field("local", description="Blob store backend (local, memory, r2)")
    storage_dir: Path = Field(Path("./.fontasset"), description="Local store directory")

    converter: ConverterConfig = Field(default_factory=ConverterConfig)
    stylesheet: StylesheetConfig = Field(default_factory=StylesheetConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    r2: R2Config | None = Field(default_factory=lambda: None)

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        if v not in {"local", "memory", "r2"}:
            raise ValueError(f"Unknown storage backend: {v}")
        return v

    def model_post_init(self, __context) -> None:
        """Reload nested configs so their own env prefixes are honoured."""
        env_file = getattr(self, "_env_file", ".env")
        env_file = env_file if env_file and Path(env_file).exists() else None

        nested = {
            "converter": ("CONVERTER_", ConverterConfig),
            "stylesheet": ("STYLESHEET_", StylesheetConfig),
            "pipeline": ("PIPELINE_", PipelineConfig),
            "logging": ("LOG_", LoggingConfig),
        }
        for field_name, (prefix, config_class) in nested.items():
            # explicitly passed sections win over the environment
            if field_name in self.model_fields_set:
                continue
            if any(key.upper().startswith(prefix) for key in os.environ):
                setattr(self, field_name, config_class(_env_file=env_file))

        if self.r2 is None and any(key.upper().startswith("R2_") for key in os.environ):
            self.r2 = R2Config(_env_file=env_file)

        if self.storage_backend == "r2" and self.r2 is None:
            raise ConfigurationError("storage_backend 'r2' requires R2_* settings")


def load_config_from_yaml(config_path: str | Path, config_class: type) -> BaseSettings:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(str(config_path))

    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidYamlError(str(config_path), str(e)) from e

    if config_data is None:
        raise EmptyConfigFileError(str(config_path))

    try:
        if issubclass(config_class, BaseSettings):
            # YAML values win; do not merge a .env file into them
            class TempConfig(config_class):
                model_config = SettingsConfigDict(
                    env_file=None,
                    case_sensitive=False,
                    extra="ignore",
                )

            return TempConfig(**config_data)
        return config_class(**config_data)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigLoadError(str(e)) from e


def _add_yaml_methods():
    """Add YAML loading methods to configuration classes."""

    @classmethod
    def from_yaml(cls, config_path: str | Path):
        """Load configuration from YAML file."""
        return load_config_from_yaml(config_path, cls)

    @classmethod
    def from_env_and_yaml(cls, yaml_path: str | Path | None = None, env_file: str = ".env"):
        """Load configuration from environment variables and optionally override with YAML."""
        if yaml_path and Path(yaml_path).exists():
            return cls.from_yaml(yaml_path)
        return cls(_env_file=env_file if Path(env_file).exists() else None)

    for config_class in [
        ConverterConfig,
        StylesheetConfig,
        PipelineConfig,
        R2Config,
        LoggingConfig,
        AppConfig,
    ]:
        config_class.from_yaml = from_yaml
        config_class.from_env_and_yaml = from_env_and_yaml


_add_yaml_methods()
