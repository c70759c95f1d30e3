"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest

from vmctl.config import AWSCredentials, DigitalOceanCredentials
from vmctl.provisioning.types import RetryPolicy

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

# Environment variables that would leak the developer's real setup into tests
_ISOLATED_ENV_VARS = (
    "DIGITALOCEAN_TOKEN",
    "NCSU_DOTOKEN",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_DEFAULT_REGION",
    "VMCTL_CONFIG",
)


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def run_cli(project_root, tmp_path):
    """Return a callable that invokes the vmctl CLI as a subprocess.

    The child gets a scrubbed environment with HOME pointed at a temp dir so
    no real credentials or config file are picked up. Pass ``env=`` to add
    variables.
    """

    def _run(*args, env=None):
        child_env = {k: v for k, v in os.environ.items() if k not in _ISOLATED_ENV_VARS}
        child_env["HOME"] = str(tmp_path)
        child_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "vmctl.vmctl", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=child_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Remove credential/config env vars and point HOME at a temp dir."""
    for var in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def do_credentials():
    return DigitalOceanCredentials(token="dop_v1_test_token")


@pytest.fixture
def aws_credentials():
    return AWSCredentials(
        access_key_id="AKIATESTKEY",
        secret_access_key="test-secret-access-key",
        region="us-east-1",
    )


@pytest.fixture
def instant_policy():
    """Ten attempts with no sleep between them."""
    return RetryPolicy(max_attempts=10, min_interval=0, max_interval=0)
