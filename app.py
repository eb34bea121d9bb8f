"""Costume Switch - streaming speaker attribution and costume switching.

Command-line front end for validating profiles outside the chat host.

Commands:
    simulate    Stream a text file through the engine one character at a time
                and print the JSON report (detections, switch/skip events,
                scene roster, score breakdown).
    migrate     Upgrade a stored settings record to the current schema and
                print it.

Examples:
    $ python app.py simulate settings.json chapter.txt
    $ python app.py simulate settings.json chapter.txt --profile Battle --char-delay-ms 5
    $ python app.py migrate old_settings.json --output settings.json
"""

import argparse
import os
import sys
import json
import logging
from pathlib import Path
from typing import Any, Dict

from config import settings
from costume_switch.monitoring.metrics import SwitchMetricsCollector
from costume_switch.profiles import Profile, SettingsMigrationError, ensure_settings_shape
from costume_switch.tester import simulate_stream


def setup_logging(verbose: bool = False) -> None:
    """Configure a detailed file log plus a terse console log with separate levels."""
    log_dir = os.path.join(os.getcwd(), settings.LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)

    logging.getLogger().handlers.clear()

    file_log_level = getattr(logging, settings.FILE_LOG_LEVEL.upper(), logging.DEBUG)
    console_log_level = logging.DEBUG if verbose else getattr(logging, settings.CONSOLE_LOG_LEVEL.upper(), logging.INFO)

    detailed_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    simple_formatter = logging.Formatter('%(levelname)s - %(name)s - %(message)s')

    file_handler = logging.FileHandler(os.path.join(log_dir, 'costume_switch.log'))
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(detailed_formatter)

    # Console goes to stderr so JSON on stdout stays parseable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_log_level)
    console_handler.setFormatter(simple_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def load_json(path: str) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def write_output(payload: Dict[str, Any], output: str = None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding='utf-8')
        print(f"Wrote {output}", file=sys.stderr)
    else:
        print(text)


def run_simulate(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)
    shaped = ensure_settings_shape(load_json(args.settings))
    name = args.profile or shaped["active_profile"]
    if name not in shaped["profiles"]:
        logger.error(f"Profile '{name}' not found; available: {', '.join(shaped['profiles'])}")
        return 1
    profile = Profile.from_dict(shaped["profiles"][name], name=name)

    text = Path(args.text_file).read_text(encoding='utf-8')
    metrics = SwitchMetricsCollector() if args.metrics and settings.METRICS_ENABLED else None

    logger.info(f"Simulating {len(text)} characters with profile '{name}'")
    report = simulate_stream(text, profile, char_delay_ms=args.char_delay_ms, metrics=metrics)
    write_output(report.to_dict(), args.output)

    if metrics:
        print(metrics.export(), file=sys.stderr)
    if report.compile_error:
        logger.error(f"Profile failed to compile: {report.compile_error}")
        return 2
    return 0


def run_migrate(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)
    try:
        shaped = ensure_settings_shape(load_json(args.settings))
    except (SettingsMigrationError, json.JSONDecodeError) as e:
        logger.error(f"Cannot migrate {args.settings}: {e}")
        return 1
    write_output(shaped, args.output)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate costume switch profiles against sample text.")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging on the console.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate = subparsers.add_parser("simulate", help="Stream a text file through the engine and print a report.")
    simulate.add_argument("settings", help="Path to a settings JSON record (any schema version).")
    simulate.add_argument("text_file", help="Path to the text to stream.")
    simulate.add_argument("--profile", help="Profile name to use. Defaults to the active profile.")
    simulate.add_argument("--char-delay-ms", type=float, default=settings.SIMULATION_CHAR_DELAY_MS,
                          help="Simulated milliseconds between streamed characters.")
    simulate.add_argument("--metrics", action="store_true", help="Print Prometheus metrics to stderr after the run.")
    simulate.add_argument("--output", help="Write the JSON report to this file instead of stdout.")
    simulate.set_defaults(handler=run_simulate)

    migrate = subparsers.add_parser("migrate", help="Upgrade a settings record to the current schema.")
    migrate.add_argument("settings", help="Path to a settings JSON record.")
    migrate.add_argument("--output", help="Write the migrated record to this file instead of stdout.")
    migrate.set_defaults(handler=run_migrate)

    args = parser.parse_args()
    setup_logging(args.verbose)
    sys.exit(args.handler(args))


if __name__ == "__main__":
    main()
