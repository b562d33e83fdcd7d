import logging.config
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from swupdate_server.models.image import FilenameLayout
from swupdate_server.store import CatalogMode


class ConfigError(ValueError):
    """Settings are missing or invalid; the server cannot start."""


class ServerSettings(BaseModel):
    images_directory: Path = Field(..., description="Directory holding the update images")
    listen_ip: str = Field(default="0.0.0.0", description="Interface to listen on")
    listen_port: int = Field(default=8080, ge=1, le=65535, description="Port to listen on")

    # Filename schema, field positions are zero-based
    filename_fields_separator: str = Field(default="_", min_length=1)
    filename_field_image_identifier: int = Field(default=0, ge=0)
    filename_field_device_type: int = Field(default=1, ge=0)
    filename_field_version: int = Field(default=2, ge=0)

    catalog_mode: CatalogMode = CatalogMode.RESCAN
    log_config: Path = Path("config/logging.yaml")

    @field_validator("images_directory")
    @classmethod
    def _existing_directory(cls, value: Path) -> Path:
        if not value.is_dir():
            raise ValueError(f"images directory does not exist: {value}")
        return value

    @model_validator(mode="after")
    def _valid_layout(self) -> "ServerSettings":
        try:
            self.layout
        except ValidationError as e:
            raise ValueError("; ".join(error["msg"] for error in e.errors())) from e
        return self

    @property
    def layout(self) -> FilenameLayout:
        return FilenameLayout(
            separator=self.filename_fields_separator,
            image_id_field=self.filename_field_image_identifier,
            device_type_field=self.filename_field_device_type,
            version_field=self.filename_field_version,
        )


class ConfigManager:
    @staticmethod
    def setup_logging(config_path: Path = Path("config/logging.yaml")):
        """Initialize logging from YAML config."""
        if config_path.exists():
            with open(config_path, "r") as f:
                logging.config.dictConfig(yaml.safe_load(f))
        else:
            logging.basicConfig(level=logging.INFO)

    @staticmethod
    def load_config(config_file: Optional[Path] = None,
                    overrides: Optional[Dict[str, Any]] = None) -> ServerSettings:
        """
        Build server settings from an optional YAML file plus overrides.

        Overrides (command line values) win over the file; None values
        are ignored so unset flags fall through to the file or defaults.

        Raises:
            ConfigError: if the file cannot be read or the settings are invalid
        """
        data: Dict[str, Any] = {}
        if config_file is not None:
            try:
                with open(config_file, "r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
            if not isinstance(loaded, dict):
                raise ConfigError(f"Config file {config_file} must contain a mapping")
            data.update(loaded)

        data.update({key: value for key, value in (overrides or {}).items() if value is not None})

        try:
            settings = ServerSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        return settings
