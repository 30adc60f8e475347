# certflow/config.py
"""
Service configuration.

Values come from the process environment (a local `.env` file is loaded
first when present). Secrets are read from a mounted file `/<KEY>/value`
before falling back to the environment variable of the same name.
"""
from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from certflow.infra.flow import RetryPolicy

logger = logging.getLogger(__name__)

SECRETS_ROOT = Path("/")


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


def read_secret(key: str, environ: Optional[Mapping[str, str]] = None, root: Path = SECRETS_ROOT) -> Optional[str]:
    """
    Read a secret from its mounted file, falling back to the environment.

    Args:
        key: Secret name, e.g. "DIRECTUS_CMS_API_KEY"
        environ: Environment mapping (default: os.environ)
        root: Directory under which secrets are mounted as `<KEY>/value`

    Returns:
        The secret value, or None if it is set nowhere
    """
    environ = os.environ if environ is None else environ
    path = root / key / "value"
    try:
        value = path.read_text(encoding="utf-8").strip()
    except OSError:
        value = ""
    if value:
        return value
    return environ.get(key)


class Settings(BaseModel):
    """Typed view of the service configuration."""

    port: int = 8080
    api_key: Optional[str] = None
    log_level: str = "INFO"
    log_json: bool = False

    # Directus CMS
    cms_base_url: str
    directus_cms_api_key: str

    # COC pipeline
    coc_data_api_url: str
    coc_data_api_key: Optional[str] = None
    coc_viewer_base_url: str
    pdf_render_url: str
    coc_pdf_folder_id: Optional[str] = None

    # Email (SMTP)
    email_from_address: str
    email_smtp_host: str = "smtp.resend.com"
    email_smtp_port: int = 587
    email_smtp_user: str = "resend"
    email_smtp_password: Optional[str] = None

    # Scheduling
    run_timeout_seconds: float = Field(default=120.0, gt=0)
    task_retries: int = Field(default=2, ge=0)
    task_retry_delay_seconds: float = Field(default=5.0, ge=0)

    # Run-event log
    event_store_url: str = "sqlite://"

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(retries=self.task_retries, delay=timedelta(seconds=self.task_retry_delay_seconds))

    @classmethod
    def from_env(
            cls,
            environ: Optional[Mapping[str, str]] = None,
            *,
            secrets_root: Path = SECRETS_ROOT,
            dotenv: bool = True,
    ) -> Settings:
        """
        Build settings from environment variables and mounted secrets.

        Args:
            environ: Environment mapping (default: os.environ)
            secrets_root: Root directory of mounted secrets
            dotenv: Load a `.env` file into os.environ first

        Returns:
            Validated settings

        Raises:
            ConfigError: If a required value is missing or a value is invalid
        """
        if dotenv and environ is None:
            load_dotenv()
        environ = os.environ if environ is None else environ

        secret_keys = {"API_KEY", "DIRECTUS_CMS_API_KEY", "COC_DATA_API_KEY", "EMAIL_SMTP_PASSWORD"}
        values: Dict[str, str] = {}
        for field_name in cls.model_fields:
            key = field_name.upper()
            value = read_secret(key, environ, secrets_root) if key in secret_keys else environ.get(key)
            if value not in (None, ""):
                values[field_name] = value

        missing = [
            name.upper()
            for name, field in cls.model_fields.items()
            if field.is_required() and name not in values
        ]
        if missing:
            raise ConfigError(f"missing required configuration: {', '.join(missing)}")

        try:
            settings = cls(**values)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}") from e

        logger.info(
            f"Configuration loaded: port={settings.port}, auth_enabled={settings.api_key is not None}, "
            f"cms_base_url={settings.cms_base_url}, run_timeout={settings.run_timeout_seconds}s"
        )
        return settings
