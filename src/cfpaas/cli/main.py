"""Command line entry point: ``cfpaas <command> [options]``."""

import argparse
import sys
from typing import Optional

from dynaconf import Dynaconf
from pydantic import ValidationError

from cfpaas import __version__
from cfpaas.application.app_driver import ApplicationDriver
from cfpaas.application.service_driver import ServiceDriver
from cfpaas.cli.console import print_error, print_info, print_json, print_success, print_table, print_warning
from cfpaas.config.settings import application_defaults, get_settings, load_settings, location_from_settings
from cfpaas.domain.application import ApplicationDescriptor
from cfpaas.domain.exceptions import CloudFoundryError, ConfigurationError
from cfpaas.domain.service import ServiceDescriptor
from cfpaas.infrastructure.cloudfoundry.client_registry import ClientCache
from cfpaas.infrastructure.cloudfoundry.paas_client import CloudFoundryPaasClient
from cfpaas.infrastructure.logging.logger import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cfpaas", description="Deploy and manage applications and services on Cloud Foundry"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="Settings file (toml or json) with the location table.")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Deploy an application and wait until it runs.")
    deploy.add_argument("name", help="Application name.")
    deploy.add_argument("artifact", help="Artifact URL or local path.")
    deploy.add_argument("--buildpack", help="Buildpack used to stage the artifact.")
    deploy.add_argument("--domain", help="Route domain (platform default when omitted).")
    deploy.add_argument("--host", help="Route host (application name when omitted).")
    deploy.add_argument("--memory", type=int, help="Memory per instance in MB.")
    deploy.add_argument("--disk", type=int, help="Disk quota per instance in MB.")
    deploy.add_argument("--instances", type=int, help="Number of instances.")
    deploy.add_argument(
        "-e", "--env", action="append", default=[], metavar="KEY=VALUE", help="Environment variable."
    )
    deploy.add_argument(
        "-s", "--service", action="append", default=[], help="Service instance to bind before start."
    )
    deploy.add_argument("--timeout", type=float, help="Seconds to wait for the application to run.")

    for command, help_text in (
        ("status", "Show the observed state of an application."),
        ("stop", "Stop an application."),
        ("restart", "Restart an application."),
        ("delete", "Stop and delete an application."),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("name", help="Application name.")

    service_create = subparsers.add_parser("service-create", help="Create a service instance.")
    service_create.add_argument("service", help="Service offering label.")
    service_create.add_argument("plan", help="Service plan name.")
    service_create.add_argument("--name", help="Instance name (generated when omitted).")

    service_delete = subparsers.add_parser("service-delete", help="Delete a service instance.")
    service_delete.add_argument("name", help="Service instance name.")

    return parser


def parse_env(pairs: list[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` arguments."""
    env = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"Invalid environment variable '{pair}', expected KEY=VALUE")
        env[key] = value
    return env


def _client(settings: Dynaconf) -> CloudFoundryPaasClient:
    return ClientCache().get_client(location_from_settings(settings), allow_reuse=False)


def handle_deploy(args, settings: Dynaconf) -> int:
    defaults = application_defaults(settings)
    try:
        descriptor = ApplicationDescriptor(
            name=args.name,
            artifact=args.artifact,
            buildpack=args.buildpack,
            domain=args.domain,
            host=args.host,
            memory=args.memory or defaults.memory,
            disk=args.disk or defaults.disk,
            instances=args.instances or defaults.instances,
            env=parse_env(args.env),
            services=args.service,
            start_timeout=args.timeout if args.timeout is not None else defaults.start_timeout,
            poll_interval=defaults.poll_interval,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid application settings for {args.name}", cause=e) from e

    driver = ApplicationDriver(descriptor, client=_client(settings))
    driver.start()

    if args.json:
        print_json({str(k): v for k, v in driver.attributes.snapshot().items()})
    else:
        print_success(f"Application {descriptor.name} running at {driver.url}")
    return 0


def handle_status(args, settings: Dynaconf) -> int:
    state = _client(settings).get_state(args.name)
    if args.json:
        print_json(state.model_dump(mode="json"))
    else:
        print_table(state.name, state.model_dump(mode="json", exclude={"name"}))
    return 0


def handle_stop(args, settings: Dynaconf) -> int:
    _client(settings).stop(args.name)
    print_success(f"Application {args.name} stopped")
    return 0


def handle_restart(args, settings: Dynaconf) -> int:
    _client(settings).restart(args.name)
    print_success(f"Application {args.name} restarted")
    return 0


def handle_delete(args, settings: Dynaconf) -> int:
    client = _client(settings)
    if not client.is_deployed(args.name):
        print_warning(f"Application {args.name} is not deployed")
        return 0
    client.delete(args.name)
    print_success(f"Application {args.name} deleted")
    return 0


def handle_service_create(args, settings: Dynaconf) -> int:
    try:
        descriptor = ServiceDescriptor(service=args.service, plan=args.plan, instance_name=args.name)
    except ValidationError as e:
        raise ConfigurationError("Invalid service settings", cause=e) from e

    driver = ServiceDriver(descriptor, _client(settings))
    driver.create()
    print_success(f"Service instance {driver.instance_name} created")
    return 0


def handle_service_delete(args, settings: Dynaconf) -> int:
    client = _client(settings)
    if not client.service_instance_exists(args.name):
        print_warning(f"Service instance {args.name} does not exist")
        return 0
    client.delete_service_instance(args.name)
    print_success(f"Service instance {args.name} deleted")
    return 0


COMMANDS = {
    "deploy": handle_deploy,
    "status": handle_status,
    "stop": handle_stop,
    "restart": handle_restart,
    "delete": handle_delete,
    "service-create": handle_service_create,
    "service-delete": handle_service_delete,
}


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run one command.

    Returns:
        0 on success, 1 on any adapter error
    """
    args = build_parser().parse_args(argv)
    settings = load_settings([args.config]) if args.config else get_settings()
    setup_logging(log_level=args.log_level)

    try:
        return COMMANDS[args.command](args, settings)
    except CloudFoundryError as e:
        print_error(str(e))
        if args.json:
            print_json(e.to_dict())
        return 1
    except KeyboardInterrupt:
        print_info("Interrupted")
        return 130


def cli_main() -> None:
    """Entry point function for console scripts."""
    sys.exit(main())


if __name__ == "__main__":
    cli_main()
