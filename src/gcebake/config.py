"""
Build configuration: loading and validation of build YAML files.

A build file is a flat mapping:

    project_id: my-project
    zone: us-central1-a
    source_image: debian-9
    bucket_name: my-images
    image_name: web-{{timestamp}}
    provisioners:
      - apt-get update
      - apt-get install -y nginx

Every problem found in the file is collected and raised as one
ConfigError, so users see the whole list instead of fixing one field
per run.
"""

from __future__ import annotations

import math
import os
import re
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

REQUIRED_FIELDS = ("project_id", "zone", "source_image", "bucket_name")

# GCE resource names: lowercase letter, then letters/digits/dashes, max 63.
_RESOURCE_NAME = re.compile(r"^[a-z](?:[-a-z0-9]{0,61}[a-z0-9])?$")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """Parse a Go-style duration string such as ``"5m"`` or ``"1h30m"``.

    Bare numbers are taken as seconds.

    Args:
        value: Duration string, number of seconds, or timedelta.

    Returns:
        The parsed timedelta.

    Raises:
        ValueError: If the value is not a valid, finite, representable
            duration.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"duration must not be negative: {value}")
        return _seconds(value)

    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return _seconds(float(text))

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {text!r}")
    return _seconds(seconds)


def _seconds(seconds: Union[int, float]) -> timedelta:
    # Only ValueError reaches the aggregated validation report.
    if isinstance(seconds, float) and not math.isfinite(seconds):
        raise ValueError(f"duration must be finite: {seconds}")
    try:
        return timedelta(seconds=seconds)
    except OverflowError as exc:
        raise ValueError(f"duration out of range: {seconds}") from exc


def render_image_name(template: str, now: Optional[float] = None) -> str:
    """Expand ``{{timestamp}}`` in an image name template."""
    stamp = str(int(now if now is not None else time.time()))
    return re.sub(r"\{\{\s*timestamp\s*\}\}", stamp, template)


class BuildConfig(BaseModel):
    """Settings consumed by the build pipeline."""

    model_config = ConfigDict(extra="forbid")

    project_id: str = Field(default="", description="Project that owns the build")
    zone: str = Field(default="", description="Zone the temporary instance runs in")
    source_image: str = Field(default="", description="Image the instance boots from")
    bucket_name: str = Field(default="", description="Bucket receiving the disk archive")

    account_file: Optional[Path] = Field(
        default=None,
        description="Service-account JSON key; Application Default Credentials if unset",
    )
    machine_type: str = "n1-standard-1"
    network: str = "default"
    image_name: str = Field(default="gcebake-{{timestamp}}", validate_default=True)
    image_description: str = "Created by gcebake"
    image_fallback_projects: List[str] = Field(
        default_factory=lambda: ["debian-cloud"],
        description="Public projects searched when source_image is not in project_id",
    )

    ssh_username: str = "root"
    ssh_port: int = Field(default=22, ge=1, le=65535)
    ssh_timeout: timedelta = Field(default=timedelta(minutes=5))
    state_timeout: timedelta = Field(default=timedelta(minutes=5))

    metadata: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    provisioners: List[str] = Field(
        default_factory=list,
        description="Shell commands run on the instance before capture",
    )
    update_gsutil: bool = True
    debug: bool = False

    @field_validator("ssh_timeout", "state_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> timedelta:
        return parse_duration(value)

    @field_validator("image_name")
    @classmethod
    def _render_image_name(cls, value: str) -> str:
        name = render_image_name(value)
        if not _RESOURCE_NAME.match(name):
            raise ValueError(
                f"{name!r} is not a valid image name "
                "(lowercase letters, digits and dashes, max 63 characters)"
            )
        return name

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, value: List[str]) -> List[str]:
        bad = [t for t in value if not _RESOURCE_NAME.match(t)]
        if bad:
            raise ValueError(f"invalid network tags: {', '.join(bad)}")
        return value

    def file_errors(self) -> List[str]:
        """Check that referenced files exist.

        Returns:
            A list of problems; empty when everything is readable.
        """
        errors: List[str] = []
        if self.account_file is not None:
            path = self.account_file.expanduser()
            if not path.is_file():
                errors.append(f"account_file not found: {path}")
        return errors


def _format_validation_error(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
        msg = err.get("msg", "invalid value")
        if err.get("type") == "extra_forbidden":
            msg = "unknown configuration key"
        messages.append(f"{loc}: {msg}")
    return messages


def _apply_env_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(data)
    if not merged.get("project_id"):
        env_project = (
            os.environ.get("GOOGLE_CLOUD_PROJECT")
            or os.environ.get("GCLOUD_PROJECT")
        )
        if env_project:
            merged["project_id"] = env_project
    if not merged.get("zone") and os.environ.get("CLOUDSDK_COMPUTE_ZONE"):
        merged["zone"] = os.environ["CLOUDSDK_COMPUTE_ZONE"]
    return merged


def validate_config(raw: Dict[str, Any]) -> BuildConfig:
    """Build a BuildConfig from a raw mapping, collecting every problem.

    Args:
        raw: Parsed YAML (or any mapping of settings).

    Returns:
        The validated configuration.

    Raises:
        ConfigError: Listing all problems found.
    """
    data = _apply_env_defaults(raw or {})
    errors: List[str] = []

    for key in REQUIRED_FIELDS:
        if not data.get(key):
            errors.append(f"a {key} must be specified")

    config: Optional[BuildConfig] = None
    try:
        config = BuildConfig.model_validate(data)
    except ValidationError as exc:
        errors.extend(_format_validation_error(exc))

    if config is not None:
        errors.extend(config.file_errors())

    if errors:
        raise ConfigError(errors)
    return config


def load_config(path: Union[str, Path]) -> BuildConfig:
    """Load and validate a build YAML file.

    Args:
        path: Path to the build file.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file is missing, unparsable, or invalid.
    """
    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise ConfigError([f"Configuration file not found: {config_path}"])

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError([f"Invalid YAML syntax: {exc}"]) from exc

    if raw is None:
        raise ConfigError(["Configuration file is empty"])
    if not isinstance(raw, dict):
        raise ConfigError(["Configuration file must contain a mapping"])
    return validate_config(raw)
