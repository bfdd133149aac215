"""Configuration for the ideaflow client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ListNames:
    """Names of the backing lists on the content platform."""
    ideas: str = "innovative_ideas"
    tasks: str = "ino_ideas_tasks"
    discussions: str = "innovative_idea_discussions"
    idea_trail: str = "innovative_idea_trail"


@dataclass
class BackendConfig:
    """
    Where the list platform lives and how to talk to it.

    Can be set via:
    - Constructor arguments
    - Environment variables (IDEAFLOW_*)
    - Config file
    """
    base_url: str = field(
        default_factory=lambda: os.environ.get("IDEAFLOW_BASE_URL", "http://localhost:36156")
    )

    # Request timeout (seconds)
    timeout: float = field(
        default_factory=lambda: float(os.environ.get("IDEAFLOW_TIMEOUT", "30"))
    )

    # Extra headers sent on every call (session cookies, proxies, etc.)
    headers: dict[str, str] = field(default_factory=dict)

    lists: ListNames = field(default_factory=ListNames)


@dataclass
class GatewayConfig:
    """Retry, spacing and token settings for the secure gateway."""
    max_retries: int = 3
    retry_base_delay: float = 1.0       # attempt N waits N * base delay
    retry_client_errors: bool = True    # False = don't retry 4xx (except 408/429)
    rate_limit_delay: float = 0.1       # spacing between calls to the same resource
    token_cache_seconds: float = 0.0    # 0 = fetch a fresh digest for every mutating call


@dataclass
class WorkflowConfig:
    """Reconciliation engine settings."""
    reconcile_delay_seconds: float = 1.0
    approver_group: str = "Innovative Ideas - Approvers"


@dataclass
class LoggingConfig:
    """Logging configuration (applied by the CLI)."""
    level: str = field(
        default_factory=lambda: os.environ.get("IDEAFLOW_LOG_LEVEL", "INFO")
    )
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Config:
    """Main configuration container."""
    backend: BackendConfig = field(default_factory=BackendConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        backend_data = dict(data.get("backend", {}))
        lists = ListNames(**backend_data.pop("lists", {}))
        return cls(
            backend=BackendConfig(lists=lists, **backend_data),
            gateway=GatewayConfig(**data.get("gateway", {})),
            workflow=WorkflowConfig(**data.get("workflow", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
