import os
from dataclasses import dataclass
from typing import Any, Dict

import yaml

DB_URL_ENV = "BANK_RESPONSE_DB_URL"


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    preprocessing: Dict[str, Any]
    sampling: Dict[str, Any]
    model: Dict[str, Any]
    evaluation: Dict[str, Any]
    output: Dict[str, Any]

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        config = cls(**cfg)
        if os.environ.get(DB_URL_ENV):
            config.data["url"] = os.environ[DB_URL_ENV]
        return config
