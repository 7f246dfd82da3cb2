from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from change_tracker.src.diff import DiffOptions


@dataclasses.dataclass
class PostmanConfig:
    api_key: Optional[str] = None
    base_url: str = "https://api.getpostman.com"
    timeout_seconds: int = 30
    max_retries: int = 5


@dataclasses.dataclass
class AppConfig:
    poll_interval_seconds: int = 300
    collections: List[str] = dataclasses.field(default_factory=list)
    state_dir: Path = Path("state")
    audit_log_file: str = "audit.log"
    postman: PostmanConfig = dataclasses.field(default_factory=PostmanConfig)
    diff: DiffOptions = dataclasses.field(default_factory=DiffOptions)

    @staticmethod
    def _env_list(value: Optional[str]) -> List[str]:
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]

    @classmethod
    def from_env(cls) -> "AppConfig":
        defaults = DiffOptions()
        return cls(
            poll_interval_seconds=int(os.getenv("POLL_INTERVAL_SECONDS", "300")),
            collections=cls._env_list(os.getenv("COLLECTIONS")),
            state_dir=Path(os.getenv("STATE_DIR", "state")),
            audit_log_file=os.getenv("AUDIT_LOG_FILE", "audit.log"),
            postman=PostmanConfig(
                api_key=os.getenv("POSTMAN_API_KEY"),
                base_url=os.getenv("POSTMAN_BASE_URL", "https://api.getpostman.com"),
            ),
            diff=DiffOptions(
                max_depth=int(os.getenv("DIFF_MAX_DEPTH", str(defaults.max_depth))),
                max_changes=int(os.getenv("DIFF_MAX_CHANGES", str(defaults.max_changes))),
                ignore_paths=cls._env_list(os.getenv("DIFF_IGNORE_PATHS")),
                hash_threshold=int(os.getenv("DIFF_HASH_THRESHOLD", str(defaults.hash_threshold))),
                opaque_threshold=int(os.getenv("DIFF_OPAQUE_THRESHOLD", str(defaults.opaque_threshold))),
            ),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        postman = data.get("postman") or {}
        diff = data.get("diff") or {}
        defaults = DiffOptions()
        return cls(
            poll_interval_seconds=int(data.get("poll_interval_seconds", 300)),
            collections=list(data.get("collections", [])),
            state_dir=Path(data.get("state_dir", "state")),
            audit_log_file=data.get("audit_log_file", "audit.log"),
            postman=PostmanConfig(
                api_key=postman.get("api_key"),
                base_url=postman.get("base_url", "https://api.getpostman.com"),
                timeout_seconds=int(postman.get("timeout_seconds", 30)),
                max_retries=int(postman.get("max_retries", 5)),
            ),
            diff=DiffOptions(
                max_depth=int(diff.get("max_depth", defaults.max_depth)),
                max_changes=int(diff.get("max_changes", defaults.max_changes)),
                ignore_paths=list(diff.get("ignore_paths", [])),
                hash_threshold=int(diff.get("hash_threshold", defaults.hash_threshold)),
                opaque_threshold=int(diff.get("opaque_threshold", defaults.opaque_threshold)),
                compact=bool(diff.get("compact", False)),
            ),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        data: Dict[str, Any] = {}
        if path.exists():
            data = yaml.safe_load(path.read_text()) or {}
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path) -> "AppConfig":
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        if path.suffix in {".yaml", ".yml"}:
            return cls.from_yaml(path)
        return cls.from_dict(json.loads(path.read_text()))

    @classmethod
    def load(cls) -> "AppConfig":
        config_path = os.getenv("CONFIG_PATH")
        if config_path:
            return cls.from_yaml(Path(config_path))
        return cls.from_env()
