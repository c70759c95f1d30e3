"""Command dispatcher: (command, provider) -> async operation."""

import asyncio
import functools
import logging
import sys

from vmctl.config import (
    default_instance_name,
    load_aws_credentials,
    load_config,
    load_digitalocean_credentials,
    poll_policy,
    provider_settings,
)
from vmctl.errors import VmctlError
from vmctl.provisioning import AWSProvider, DigitalOceanProvider, destroy_instance, provision_instance

logger = logging.getLogger(__name__)


# ── Provider construction ─────────────────────────────────────────


def _build_digitalocean(settings, dry_run=False):
    credentials = load_digitalocean_credentials()
    return DigitalOceanProvider(credentials, size=settings["size"], dry_run=dry_run)


def _build_aws(settings, dry_run=False):
    credentials = load_aws_credentials(settings["region"])
    return AWSProvider(credentials, instance_type=settings["size"], dry_run=dry_run)


PROVIDER_BUILDERS = {
    "digitalocean": _build_digitalocean,
    "aws": _build_aws,
}


# ── Operations ────────────────────────────────────────────────────


async def create_instance(provider_key, args, config):
    """Provision one instance and report its id and public IPv4."""
    overrides = {
        "region": args.region,
        "image": args.image,
        "size": args.size,
        "ssh_key": args.ssh_key,
    }
    settings = provider_settings(config, provider_key, overrides)
    provider = PROVIDER_BUILDERS[provider_key](settings, dry_run=args.dry_run)

    descriptor = await provision_instance(
        provider,
        name=args.name or default_instance_name(config),
        region=settings["region"],
        image=settings["image"],
        ssh_key_ref=settings["ssh_key"],
        policy=poll_policy(config),
    )
    logger.info(f"Instance id: {descriptor.id}")
    logger.info(f"IPv4:        {descriptor.public_ip}")
    return descriptor


async def remove_instance(provider_key, args, config):
    """Delete the instance named by ``args.id``."""
    settings = provider_settings(config, provider_key, {"region": args.region})
    provider = PROVIDER_BUILDERS[provider_key](settings, dry_run=args.dry_run)
    await destroy_instance(provider, args.id)


COMMANDS = {
    "create": create_instance,
    "rm": remove_instance,
}

DISPATCH_TABLE = {
    (command, provider_key): functools.partial(operation, provider_key)
    for command, operation in COMMANDS.items()
    for provider_key in PROVIDER_BUILDERS
}


# ── CLI handler ───────────────────────────────────────────────────


async def dispatch(args):
    config = load_config(args.config)
    operation = DISPATCH_TABLE[(args.command, args.provider)]
    return await operation(args, config)


def handle_command(args):
    """CLI handler shared by 'create' and 'rm'. Any vmctl error exits 1."""
    try:
        asyncio.run(dispatch(args))
    except VmctlError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


# ── Registration ──────────────────────────────────────────────────


def _add_common_arguments(parser):
    parser.add_argument("--config", default=None, help="YAML config file (default: ~/.config/vmctl/config.yaml)")
    parser.add_argument("--dry-run", action="store_true", help="Print requests without executing")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every poll attempt and rate-limit header")


def register_create_command(subparsers):
    """Register 'create <provider>'."""
    parser = subparsers.add_parser("create", help="Provision a new compute instance")
    parser.add_argument("provider", choices=list(PROVIDER_BUILDERS), help="Compute provider key")
    parser.add_argument("--name", default=None, help="Instance name (default: <name_prefix>-<hostname>)")
    parser.add_argument("--region", default=None, help="Region slug (e.g. nyc1, us-east-1)")
    parser.add_argument("--image", default=None, help="Image slug (DigitalOcean) or AMI id (AWS)")
    parser.add_argument("--size", default=None, help="Droplet size slug (DigitalOcean) or instance type (AWS)")
    parser.add_argument("--ssh-key", default=None, help="SSH key name (DigitalOcean) or key pair name (AWS)")
    _add_common_arguments(parser)
    parser.set_defaults(func=handle_command)


def register_rm_command(subparsers):
    """Register 'rm <provider> <id>'."""
    parser = subparsers.add_parser("rm", help="Destroy a compute instance")
    parser.add_argument("provider", choices=list(PROVIDER_BUILDERS), help="Compute provider key")
    parser.add_argument("id", help="Instance id")
    parser.add_argument("--region", default=None, help="Region the instance lives in (AWS; default: config, then AWS_DEFAULT_REGION)")
    _add_common_arguments(parser)
    parser.set_defaults(func=handle_command)
