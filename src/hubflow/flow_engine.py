"""
Command line entry point of the config flow engine.

Loads config.yaml from the config directory, sets up logging, wires the flow manager with
its stores, the Home Assistant client and discovery, and runs one command:

    hubflow --config-dir /data start zigbee
    hubflow --config-dir /data advance <flow_id> serial_port=/dev/ttyUSB0 radio_type=znp
    hubflow --config-dir /data confirm <flow_id> title="Living room"
    hubflow --config-dir /data next-step <flow_id> <step_id> mode=manual
    hubflow --config-dir /data show <flow_id>
    hubflow --config-dir /data definitions my_light
    hubflow --config-dir /data progress
    hubflow --config-dir /data purge
    hubflow --config-dir /data --logs advance <flow_id> host=10.0.0.5

Flows are kept in the configured storage directory, so a flow started by one invocation
can be advanced by the next. Every command prints its result as JSON; with `--logs`, a
result naming a flow also carries the log records and alerts of that flow from this
invocation.
"""

import argparse
import asyncio
from datetime import datetime, timedelta
import json
import logging
import os
import sys

import aiohttp
import pytz

from .config import ConfigManager
from .constants import DISCOVERY_PROVIDER_HOMEASSISTANT
from .definition_store import FlowDefinitionStore
from .exceptions import FlowError
from .flow_manager import FlowManager
from .flow_store import FileFlowStore
from .interfaces.discovery_interface import DiscoveryInterface, HADiscoveryProvider
from .interfaces.ha_flow_client import HAFlowApiClient
from .log_handler import FlowLogHandler
from .registry import FlowHandlerRegistry, register_builtin_handlers
from .version import __version__


###################################################################################################
# Custom formatter to use the configured timezone
class TimezoneFormatter(logging.Formatter):
    """
    A custom logging formatter that formats log timestamps according to a specified timezone.
    """

    def __init__(self, fmt=None, datefmt=None, tz=None):
        super().__init__(fmt, datefmt)
        self.tz = tz

    def formatTime(self, record, datefmt=None):
        record_time = datetime.fromtimestamp(record.created, self.tz)
        return record_time.strftime(datefmt or self.default_time_format)


###################################################################################################
logger = logging.getLogger("__main__")


def setup_logging(config_manager):
    """
    Attach the stderr and in-memory handlers, using the configured time zone and level.

    Returns:
        FlowLogHandler: The in-memory handler holding the per-flow audit trail.
    """
    time_zone = pytz.timezone(config_manager.config["time_zone"])
    timezone_formatter = TimezoneFormatter(
        "%(asctime)s %(levelname)s %(message)s", "%Y-%m-%d %H:%M:%S", tz=time_zone
    )
    # logs go to stderr, stdout carries the command result
    streamhandler = logging.StreamHandler(sys.stderr)
    streamhandler.setFormatter(timezone_formatter)
    logger.addHandler(streamhandler)

    memory_handler = FlowLogHandler()
    memory_handler.setFormatter(timezone_formatter)
    logger.addHandler(memory_handler)

    logger.setLevel(str(config_manager.config["log_level"]).upper())
    logger.info(
        "[Main] Starting hubflow %s - time zone %s, loglevel %s",
        __version__,
        config_manager.config["time_zone"],
        config_manager.config["log_level"],
    )
    return memory_handler


def build_flow_manager(config_manager, session):
    """
    Create the flow manager with file-backed flow storage, the flow definitions from the
    definitions directory, the Home Assistant client and discovery.
    """
    config = config_manager.config

    hub_client = None
    discovery = DiscoveryInterface(cache_ttl=config["discovery"]["cache_ttl"])
    if config["homeassistant"].get("access_token"):
        hub_client = HAFlowApiClient(
            session,
            config["homeassistant"]["url"],
            config["homeassistant"]["access_token"],
            timeout=config["homeassistant"]["timeout"],
        )
        discovery.register_provider(
            DISCOVERY_PROVIDER_HOMEASSISTANT, HADiscoveryProvider(hub_client)
        )
    else:
        logger.warning(
            "[Main] No Home Assistant access token configured - proxied flows will abort"
        )

    definition_store = FlowDefinitionStore()
    definition_store.load_definitions_from_dir(config_manager.definitions_dir)

    registry = FlowHandlerRegistry()
    register_builtin_handlers(registry, oauth_domains=config_manager.oauth_domains)

    return FlowManager(
        registry,
        flow_store=FileFlowStore(config_manager.storage_dir),
        definition_store=definition_store,
        discovery=discovery,
        hub_client=hub_client,
        settings=config,
    )


def parse_fields(items):
    """
    Turn `key=value` arguments into a dict. Values are read as JSON when possible, so
    `port=1883` is a number and `enabled=true` a boolean.
    """
    fields = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Expected key=value, got '{item}'")
        key, value = item.split("=", 1)
        try:
            fields[key] = json.loads(value)
        except ValueError:
            fields[key] = value
    return fields


def create_parser():
    parser = argparse.ArgumentParser(prog="hubflow", description=__doc__.split("\n\n")[0])
    parser.add_argument(
        "--config-dir",
        default=os.getcwd(),
        help="directory holding config.yaml (default: current directory)",
    )
    parser.add_argument(
        "--logs",
        action="store_true",
        help="add the log records of the flow to the result",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="start a config flow")
    start.add_argument("domain")

    for name, help_text in (
        ("advance", "submit input to the current step"),
        ("confirm", "finish a flow waiting for confirmation"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("flow_id")
        sub.add_argument("fields", nargs="*", metavar="key=value")

    next_step = subparsers.add_parser("next-step", help="preview the following step")
    next_step.add_argument("flow_id")
    next_step.add_argument("step_id")
    next_step.add_argument("fields", nargs="*", metavar="key=value")

    show = subparsers.add_parser("show", help="show a flow")
    show.add_argument("flow_id")

    definitions = subparsers.add_parser("definitions", help="list definition versions")
    definitions.add_argument("domain")

    subparsers.add_parser("progress", help="list in-progress flows")
    subparsers.add_parser("purge", help="delete stale in-progress flows")
    return parser


async def run_command(args, config_manager):
    """
    Execute one CLI command and return its JSON-serializable result.
    """
    async with aiohttp.ClientSession() as session:
        manager = build_flow_manager(config_manager, session)

        if args.command == "start":
            return await manager.start_flow(args.domain)
        if args.command == "advance":
            return await manager.advance_flow(args.flow_id, parse_fields(args.fields))
        if args.command == "confirm":
            return await manager.confirm_flow(args.flow_id, parse_fields(args.fields))
        if args.command == "next-step":
            return await manager.get_next_step(
                args.flow_id, args.step_id, parse_fields(args.fields)
            )
        if args.command == "show":
            flow = await manager.get_flow(args.flow_id)
            return {**flow.summary(), "result": flow.result, "history": flow.history}
        if args.command == "definitions":
            return [
                definition.to_dict()
                for definition in manager.definition_store.get_flow_definition_versions(
                    args.domain
                )
            ]
        if args.command == "progress":
            return await manager.async_progress()
        if args.command == "purge":
            max_age = timedelta(
                hours=config_manager.config["flows"]["stale_after_hours"]
            )
            return {"purged": await manager.flow_store.purge_stale(max_age)}
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    args = create_parser().parse_args(argv)
    config_manager = ConfigManager(args.config_dir)
    memory_handler = setup_logging(config_manager)

    try:
        result = asyncio.run(run_command(args, config_manager))
    except (FlowError, ValueError) as err:
        logger.error("[Main] %s", err)
        print(json.dumps({"error": str(err), "type": type(err).__name__}))
        return 1
    if args.logs and isinstance(result, dict) and result.get("flow_id"):
        result["logs"] = memory_handler.get_logs(flow_id=result["flow_id"])
        result["alerts"] = memory_handler.get_alerts(flow_id=result["flow_id"])
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
