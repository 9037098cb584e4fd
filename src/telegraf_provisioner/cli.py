#!/usr/bin/env python3
"""Interactive front end for the Telegraf provisioner.

Usage:
    telegraf-provisioner [-f FOLDER] [-i IP] [-u USER] [-p PASS]
                         [-w IOT_PASSWORD] [-a IOT_HOST:PORT] [-t TOKEN_FOLDER]
                         [-s | -b | -g] [-c SETTINGS] [-v]

Environment variables:
    DEFAULT_IP, DEFAULT_USERNAME, DEFAULT_PASSWORD   OPC-UA server defaults
    DEFAULT_IOT_IP, DEFAULT_IOT_PASSWORD             Gateway defaults
    PROVISIONER_LOG_LEVEL, PROVISIONER_LOG_FILE      Logging
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from . import __version__
from .address_space import discover_xml_files
from .config import ProvisionerSettings, load_settings, parse_remote_target, validate_ip
from .errors import ProvisionerError, RemoteError, ValidationError
from .orchestration import BackupOrchestrator, send_and_restart
from .remote import RemoteSession, RemoteTarget
from .telegraf import (
    CONFIG_FILENAME,
    DEFAULT_INTERVAL,
    ConnectionParams,
    GroupDescriptor,
    InputMode,
    build_group,
    render_config,
    write_config,
)
from .utils import setup_logging

logger = logging.getLogger("telegraf_provisioner.cli")

Prompt = Callable[[str], str]

TOKEN_FILENAME = "token.txt"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="telegraf-provisioner",
        description="Generates a config file for Telegraf from XML files in the folder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Generate telegraf.conf from the XML files in ./exports
    telegraf-provisioner -f ./exports -i 192.168.0.10 -u opc -p secret

    # Only send an existing telegraf.conf and restart telegraf
    telegraf-provisioner -f ./exports -a 192.168.200.1:22 -w rootpw --send

    # Back up InfluxDB from the gateway into the current directory
    telegraf-provisioner -a 192.168.200.1:22 -w rootpw --backup-influx
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-f", "--folder", help="Sets the folder containing the XML files")
    parser.add_argument("-i", "--ip", help="Sets the OPC IP address")
    parser.add_argument("-u", "--username", help="Sets the OPC username")
    parser.add_argument("-p", "--password", help="Sets the OPC password")
    parser.add_argument("-w", "--iot-password", dest="iot_password",
                        help="Sets the IOT-2050 password")
    parser.add_argument("-a", "--iot-host", dest="iot_host",
                        help="Sets the IOT-2050 host address and port")
    parser.add_argument("-t", "--token", dest="token_folder",
                        help="Sets the location of the InfluxDB token.txt")
    parser.add_argument("-s", "--send", action="store_true",
                        help="Sends the existing telegraf.conf file to the IOT-2050 and quits")
    parser.add_argument("-b", "--backup-influx", dest="backup_influx", action="store_true",
                        help="Backs up the InfluxDB v2 database from the IOT-2050 "
                             "and copies it to the current working directory")
    parser.add_argument("-g", "--backup-grafana", dest="backup_grafana", action="store_true",
                        help="Backs up the Grafana configuration from the IOT-2050 "
                             "and copies it to the current working directory")
    parser.add_argument("-c", "--config", dest="config_path",
                        help="Settings file (default: ./provisioner.yaml if present)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def confirm(prompt: Prompt, question: str) -> bool:
    """Ask a y/N question; anything but ``y`` means no."""
    return prompt(f"{question} (y/N) ").strip().lower() == "y"


def parse_listener_indices(text: str, count: int) -> set[int]:
    """Turn ``"1, 3"`` into 0-based indexes, dropping anything out of range."""
    indices = set()
    for part in text.split(","):
        part = part.strip()
        if not part.isdecimal():
            continue
        number = int(part)
        if 0 < number <= count:
            indices.add(number - 1)
    return indices


def load_token(token_folder: Path, prompt: Prompt) -> str:
    """Read ``token.txt`` from ``token_folder`` or ask for the token.

    Raises:
        OSError: If token.txt exists but cannot be read
        UnicodeDecodeError: If token.txt is not UTF-8 text
    """
    token_path = Path(token_folder) / TOKEN_FILENAME
    if token_path.exists():
        token = token_path.read_text(encoding="utf-8").strip()
        logger.info(f"InfluxDB token read from {token_path}")
        return token
    return prompt("No 'token.txt' found, enter the InfluxDB token manually: ").strip()


def collect_groups(
    xml_files: Sequence[Path],
    listener_indices: set[int],
    prompt: Prompt,
) -> list[GroupDescriptor]:
    """Ask the per-file questions and extract each file.

    Raises:
        ParseError: If a file cannot be parsed
    """
    groups = []
    for index, xml_file in enumerate(xml_files):
        mode = InputMode.SUBSCRIBE if index in listener_indices else InputMode.POLL
        namespace = prompt(f"----Enter the namespace number for {xml_file}: ").strip()
        label = "sampling_interval" if mode is InputMode.SUBSCRIBE else "interval"
        interval = prompt(f"----Enter the {label} in ms (default {DEFAULT_INTERVAL}): ").strip()
        groups.append(build_group(xml_file, namespace, interval or None, mode))
    return groups


def wrap_up(exit_code: int, prompt: Prompt = input) -> int:
    """Keep the console window open on Windows."""
    if sys.platform == "win32":
        try:
            prompt("Press enter to exit")
        except EOFError:
            pass
    return exit_code


def _target(settings: ProvisionerSettings) -> RemoteTarget:
    return parse_remote_target(settings.iot_host, settings.iot_username, settings.iot_password)


def _send(config_path: Path, settings: ProvisionerSettings) -> int:
    if not config_path.exists():
        logger.error(f"Error: {CONFIG_FILENAME} file does not exist in the specified folder.")
        return 1
    try:
        send_and_restart(
            config_path,
            _target(settings),
            remote_path=settings.remote_config_path,
            settle_delay=settings.settle_delay,
            timeout=settings.connect_timeout,
        )
    except RemoteError as e:
        logger.error(f"Failed to send {CONFIG_FILENAME} file and restart Telegraf: {e}")
        return 1
    return 0


def _backup_influx(settings: ProvisionerSettings) -> int:
    try:
        with RemoteSession(_target(settings), timeout=settings.connect_timeout) as session:
            BackupOrchestrator(session).backup_influxdb()
    except (RemoteError, OSError) as e:
        logger.error(f"Failed to backup InfluxDB: {e}")
        return 1
    return 0


def _backup_grafana(settings: ProvisionerSettings) -> int:
    try:
        with RemoteSession(_target(settings), timeout=settings.connect_timeout) as session:
            BackupOrchestrator(session).backup_grafana()
    except (RemoteError, OSError) as e:
        logger.error(f"Failed to backup Grafana configuration: {e}")
        return 1
    logger.info("Grafana configuration backup completed successfully.")
    return 0


def _generate(settings: ProvisionerSettings, prompt: Prompt) -> int:
    xml_files = discover_xml_files(settings.folder)
    if not xml_files:
        logger.error("No XML files found in the folder.")
        logger.info("Aborting.")
        return 1

    logger.info("Found the following XML files in the folder:")
    for number, xml_file in enumerate(xml_files, start=1):
        logger.info(f"{number}. {xml_file}")

    if not confirm(prompt, "Do you want to use these files?"):
        logger.info("Aborting.")
        return 1

    logger.info(
        "OPC clients can be active (standard), pulling data every interval, or\n"
        "passive (subscribers), listening for changes."
    )
    listener_indices = parse_listener_indices(
        prompt(
            "Enter the indexes of the files that should be listeners (subscribers),\n"
            "separated by commas (e.g., 1,3). If none, just press enter: "
        ),
        len(xml_files),
    )

    try:
        token = load_token(settings.token_folder, prompt)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read InfluxDB token from {settings.token_folder}: {e}")
        return 1

    connection = ConnectionParams(
        host=settings.ip, username=settings.username, password=settings.password
    )
    groups = collect_groups(xml_files, listener_indices, prompt)

    try:
        config_path = write_config(settings.folder, render_config(groups, connection, token))
    except OSError as e:
        logger.error(f"Failed to write {CONFIG_FILENAME}: {e}")
        return 1

    if confirm(prompt, "Do you want to send the config file to the IOT box?"):
        return _send(config_path, settings)

    logger.info("Config file generated. Please copy it and run telegraf manually.")
    return 0


def run(args: argparse.Namespace, settings: ProvisionerSettings, prompt: Prompt = input) -> int:
    """Execute one run with resolved settings; returns the exit code."""
    for line in settings.describe():
        logger.info(line)
    logger.info(f"Send config: {args.send}")
    logger.info(f"Backup InfluxDB: {args.backup_influx}")
    logger.info(f"Backup Grafana: {args.backup_grafana}")
    logger.info("=====================\n")

    try:
        validate_ip(settings.ip)
        _target(settings)
    except ValidationError as e:
        logger.error(f"Error: {e}")
        return 1

    if args.send:
        return _send(Path(settings.folder) / CONFIG_FILENAME, settings)
    if args.backup_influx:
        return _backup_influx(settings)
    if args.backup_grafana:
        return _backup_grafana(settings)

    try:
        return _generate(settings, prompt)
    except (ProvisionerError, OSError) as e:
        logger.error(f"Error: {e}")
        return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    overrides = {
        "folder": args.folder,
        "ip": args.ip,
        "username": args.username,
        "password": args.password,
        "iot_password": args.iot_password,
        "iot_host": args.iot_host,
        "token_folder": args.token_folder,
    }

    try:
        settings = load_settings(args.config_path, overrides)
        exit_code = run(args, settings)
    except ValidationError as e:
        logger.error(f"Error: {e}")
        exit_code = 1
    except (KeyboardInterrupt, EOFError):
        logger.warning("Interrupted by user")
        return 130

    return wrap_up(exit_code)


if __name__ == "__main__":
    sys.exit(main())
