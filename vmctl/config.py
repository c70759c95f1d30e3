"""Configuration: credentials from the environment, defaults from YAML."""

import logging
import os
import socket
from dataclasses import dataclass
from pathlib import Path

import yaml

from vmctl.errors import ConfigurationError
from vmctl.provisioning import aws, digitalocean
from vmctl.provisioning.types import CREATE_POLICY, RetryPolicy
from vmctl.redact import register_secret

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/vmctl/config.yaml"
DEFAULT_NAME_PREFIX = "vmctl"

DIGITALOCEAN_TOKEN_VARS = ("DIGITALOCEAN_TOKEN", "NCSU_DOTOKEN")

# Built-in defaults per provider; the config file and CLI flags override these
PROVIDER_DEFAULTS = {
    "digitalocean": {
        "region": digitalocean.DEFAULT_REGION,
        "image": digitalocean.DEFAULT_IMAGE,
        "size": digitalocean.DEFAULT_SIZE,
        "ssh_key": "",
    },
    "aws": {
        "region": aws.DEFAULT_REGION,
        "image": "",
        "size": aws.DEFAULT_INSTANCE_TYPE,
        "ssh_key": "",
    },
}


@dataclass(frozen=True)
class DigitalOceanCredentials:
    token: str

    def __repr__(self):
        return f"DigitalOceanCredentials(token='{self.token[:4]}...')"


@dataclass(frozen=True)
class AWSCredentials:
    access_key_id: str
    secret_access_key: str
    region: str
    session_token: str | None = None

    def __repr__(self):
        return f"AWSCredentials(access_key_id='{self.access_key_id}', region='{self.region}')"


# ── Credentials ───────────────────────────────────────────────────


def load_digitalocean_credentials(token=None, environ=None) -> DigitalOceanCredentials:
    """Return the DigitalOcean token from *token* or the environment.

    Raises:
        ConfigurationError: no token available.
    """
    environ = os.environ if environ is None else environ
    if not token:
        token = next((environ[var] for var in DIGITALOCEAN_TOKEN_VARS if environ.get(var)), None)
    if not token:
        raise ConfigurationError(
            f"{DIGITALOCEAN_TOKEN_VARS[0]} is not defined! "
            "Please set your environment variables with appropriate token. "
            "You may need to refresh your shell in order for your changes to take place."
        )
    register_secret(token)
    logger.info(f"Your token is: {token[:4]}...")
    return DigitalOceanCredentials(token=token)


def load_aws_credentials(region, environ=None) -> AWSCredentials:
    """Return the AWS access key pair from the environment, bound to *region*.

    Raises:
        ConfigurationError: access key id or secret is missing.
    """
    environ = os.environ if environ is None else environ
    missing = [var for var in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY") if not environ.get(var)]
    if missing:
        raise ConfigurationError(f"{', '.join(missing)} not defined! Please export your AWS access key pair.")
    register_secret(environ["AWS_SECRET_ACCESS_KEY"])
    register_secret(environ.get("AWS_SESSION_TOKEN"))
    return AWSCredentials(
        access_key_id=environ["AWS_ACCESS_KEY_ID"],
        secret_access_key=environ["AWS_SECRET_ACCESS_KEY"],
        region=region,
        session_token=environ.get("AWS_SESSION_TOKEN") or None,
    )


# ── Config file ───────────────────────────────────────────────────


def load_config(config_path=None) -> dict:
    """Load the YAML config file.

    Lookup order: *config_path*, ``$VMCTL_CONFIG``, then
    ``~/.config/vmctl/config.yaml`` if it exists. An explicitly named file
    must exist; the implicit default may be absent (returns ``{}``).
    """
    explicit = config_path or os.environ.get("VMCTL_CONFIG")
    path = Path(os.path.expanduser(explicit or DEFAULT_CONFIG_PATH))

    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Config file '{path}' not found.")
        return {}

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML config '{path}': {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file '{path}': {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a mapping at the top level.")
    logger.debug(f"Loaded config from {path}")
    return config


def provider_settings(config, provider, overrides=None) -> dict:
    """Merge built-in defaults, the provider's config section and CLI overrides.

    ``None`` values in *overrides* mean "not given" and do not override.
    For AWS the region also falls back to ``$AWS_DEFAULT_REGION``.
    """
    settings = dict(PROVIDER_DEFAULTS[provider])
    if provider == "aws" and os.environ.get("AWS_DEFAULT_REGION"):
        settings["region"] = os.environ["AWS_DEFAULT_REGION"]

    section = config.get(provider) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{provider}' must be a mapping.")
    settings.update({k: v for k, v in section.items() if v is not None})
    settings.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return settings


def default_instance_name(config) -> str:
    """``<name_prefix>-<hostname>``, lower-cased to satisfy provider naming rules."""
    prefix = config.get("name_prefix") or DEFAULT_NAME_PREFIX
    return f"{prefix}-{socket.gethostname()}".lower()


def poll_policy(config) -> RetryPolicy:
    """Build the create-polling RetryPolicy from the ``poll`` config section."""
    section = config.get("poll") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("Config section 'poll' must be a mapping.")
    try:
        interval = float(section.get("interval", CREATE_POLICY.min_interval))
        return RetryPolicy(
            max_attempts=int(section.get("max_attempts", CREATE_POLICY.max_attempts)),
            min_interval=interval,
            max_interval=interval,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid 'poll' config: {e}") from e
