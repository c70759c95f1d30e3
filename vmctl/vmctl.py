#!/usr/bin/env python3
"""Compute instance provisioning tool: CLI entrypoint."""

import argparse

from vmctl.commands import register_create_command, register_rm_command
from vmctl.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(prog="vmctl", description="Provision and tear down cloud compute instances")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_create_command(subparsers)
    register_rm_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
