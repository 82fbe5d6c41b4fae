"""Command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from pymongo import MongoClient

from frdocker import config
from frdocker.app import FrecoveryApp
from frdocker.docker_client import DockerClient
from frdocker.logger import new_logger

DEFAULT_REGISTRY_ADDRESS = "localhost:8030"
DEFAULT_NETWORK_INTERFACE = "br-7651c77b1278"
DEFAULT_MONGO_URI = "mongodb://localhost:27017/frecovery"
DEFAULT_MONGO_DB = "frecovery"


def build_parser() -> argparse.ArgumentParser:
    """The ``frdocker`` command with its ``frecovery`` subcommand."""
    parser = argparse.ArgumentParser(
        prog="frdocker",
        description=(
            "Frdocker is a docker monitoring and fault localization tool for "
            "microservice systems"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    frecovery = subparsers.add_parser(
        "frecovery",
        help="The entry command of Frdocker",
        description="The entry command of running Frdocker",
    )
    frecovery.add_argument(
        "-r",
        "--registryAddress",
        dest="registry_address",
        default=DEFAULT_REGISTRY_ADDRESS,
        help="The URL of the system registry",
    )
    frecovery.add_argument(
        "-n",
        "--networkInterface",
        dest="network_interface",
        default=DEFAULT_NETWORK_INTERFACE,
        help="The network interface of the docker network",
    )
    frecovery.add_argument(
        "-c",
        "--color",
        dest="color",
        action="store_true",
        help="Whether to print colorful logs",
    )
    frecovery.add_argument(
        "--mongoUri",
        dest="mongo_uri",
        default=DEFAULT_MONGO_URI,
        help="The MongoDB connection URI used for persistence",
    )
    frecovery.add_argument(
        "--logDir",
        dest="log_dir",
        default=config.LOG_FILE_ROOT_PATH,
        help="The directory the log file is written to",
    )
    return parser


def _run_frecovery(args: argparse.Namespace) -> int:
    logger: logging.Logger = new_logger(config.LOG_FILE, args.color, args.log_dir)
    logger.info("\n%s", config.LOG_BANNER)
    try:
        docker_client = DockerClient(logger)
    except Exception as exc:
        logger.critical("docker client init failed: %s", exc)
        return 1
    try:
        mongo = MongoClient(args.mongo_uri)
        db = mongo.get_default_database(DEFAULT_MONGO_DB)
    except Exception as exc:
        docker_client.close()
        logger.critical("database client init failed: %s", exc)
        return 1
    app = FrecoveryApp(
        args.registry_address, args.network_interface, docker_client, logger, db
    )
    try:
        app.run()
    except Exception as exc:
        logger.critical("frdocker stopped: %s", exc)
        return 1
    finally:
        docker_client.close()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Parse the command line and run the chosen command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "frecovery":
        return _run_frecovery(args)
    parser.print_help(sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())