"""
Credentials for the Compute API.

Uses a service-account JSON key when one is configured and falls back
to Application Default Credentials otherwise. The token exchange
itself is handled by google-auth.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Tuple

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.oauth2 import service_account

from .errors import ConfigError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/compute",
    "https://www.googleapis.com/auth/devstorage.full_control",
]

# Scopes granted to the temporary instance so it can push the disk
# archive to Cloud Storage.
INSTANCE_SCOPES = [
    "https://www.googleapis.com/auth/compute.readonly",
    "https://www.googleapis.com/auth/devstorage.full_control",
]


def load_credentials(account_file: Optional[Path] = None) -> Tuple[Any, Optional[str]]:
    """Load credentials for the Compute API.

    Args:
        account_file: Service-account JSON key. ``None`` uses ADC.

    Returns:
        Tuple of (credentials, project id the credentials belong to or None).

    Raises:
        ConfigError: If no usable credentials are found.
    """
    if account_file is not None:
        path = Path(account_file).expanduser()
        try:
            creds = service_account.Credentials.from_service_account_file(
                str(path), scopes=SCOPES,
            )
        except (OSError, ValueError) as exc:
            raise ConfigError([f"Failed loading account_file {path}: {exc}"]) from exc
        logger.debug("Using service account %s", creds.service_account_email)
        return creds, creds.project_id

    try:
        creds, project = google.auth.default(scopes=SCOPES)
    except DefaultCredentialsError as exc:
        raise ConfigError([
            "No Google credentials found. Set account_file or run "
            f"'gcloud auth application-default login' ({exc})"
        ]) from exc
    logger.debug("Using application default credentials (project=%s)", project)
    return creds, project
