from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import DEFAULT_EXPECTED_DURATION_DAYS, DEFAULT_TEMPLATE


class ProviderConfig(BaseModel):
    """Connection settings for one external provider."""

    base_url: Optional[str] = None
    api_key: Optional[str] = None


class IntegrationsConfig(BaseModel):
    """Integration adapter settings."""

    backend: Literal["mock", "http"] = "mock"
    timeout_seconds: Optional[float] = 30.0
    docusign: ProviderConfig = ProviderConfig()
    background_check: ProviderConfig = ProviderConfig()
    doc_search: ProviderConfig = ProviderConfig()


class WorkflowConfig(BaseModel):
    """Defaults applied when workflows are initiated."""

    expected_duration_days: int = DEFAULT_EXPECTED_DURATION_DAYS
    default_template: str = DEFAULT_TEMPLATE


class OnboardflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    employees_file: Optional[str] = None
    integrations: IntegrationsConfig = IntegrationsConfig()
    workflow: WorkflowConfig = WorkflowConfig()


def load_config(path: Optional[str] = None) -> OnboardflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ONBOARDFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("ONBOARDFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = OnboardflowConfig(**data)
    else:
        config = OnboardflowConfig()

    env_db_url = os.getenv("ONBOARDFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_backend = os.getenv("ONBOARDFLOW_INTEGRATIONS_BACKEND")
    if env_backend:
        config.integrations.backend = env_backend.lower()
    return config
