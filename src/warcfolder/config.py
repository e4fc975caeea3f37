"""
Configuration management for warcfolder.
"""
import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "warcfolder.yaml"


class ToolConfig(BaseModel):
    """
    Validates and provides defaults for all warcfolder.yaml settings.
    """
    # gitignore-style patterns the directory scanner skips
    ignore: List[str] = Field(default_factory=list)
    scan_workers: int = Field(default=8, ge=1, le=64)
    # Directory inside a WACZ holding the WARC files
    archive_dir: str = "archive"
    watch_debounce: float = Field(default=0.5, gt=0.0)


def load_config(config_path: Optional[str] = None) -> ToolConfig:
    """
    Loads and validates a warcfolder.yaml file.
    A missing file yields the defaults; an explicitly requested missing file is an error.
    """
    explicit = config_path is not None
    path = config_path or DEFAULT_CONFIG_NAME

    if not os.path.exists(path):
        if explicit:
            raise ConfigError(f"Config file not found at {path}")
        return ToolConfig()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        # Handle empty file
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        return ToolConfig.model_validate(data)

    except yaml.YAMLError as exc:
        raise ConfigError(f"Error parsing YAML file {path}: {exc}")
    except ValidationError as e:
        errors = []
        for err in e.errors():
            loc = '.'.join(str(x) for x in err['loc'])
            msg = err['msg']
            errors.append(f"  - {loc}: {msg}")
        error_details = '\n'.join(errors)
        raise ConfigError(f"Config validation failed:\n{error_details}")
