#!/usr/bin/env python3
"""
Command line entry point for rum_logs.

Usage:
    # Check HEC connectivity with one event
    python scripts/rum_logs_cli.py test-log --message "hello from the cli"

    # Capture stderr and serve the settings panel
    python scripts/rum_logs_cli.py --config rum.yaml serve --port 8765
"""

import argparse
import logging
import sys

from rum_logs.agent import LoggingAgent
from rum_logs.collector import LogCollector
from rum_logs.config import load_config
from rum_logs.errors import ConfigurationError, InterceptionError
from rum_logs.hec import TEST_LOG_MESSAGE, HecClient
from rum_logs.panel import create_panel


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def cmd_test_log(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    client = HecClient(config.hec_config())
    try:
        result = client.send_test_log(message=args.message)
    finally:
        client.close()

    if result.ok:
        print("Test log sent")
        return 0
    print(f"Test log failed [{result.error.kind}]: {result.error}", file=sys.stderr)
    return 1


def cmd_serve(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    collector = LogCollector.from_config(config, agent=LoggingAgent())
    app = create_panel(collector)

    try:
        collector.start()
    except InterceptionError as e:
        logger.error(f"Cannot capture stderr: {e}")
        return 1

    try:
        app.run(host=args.host, port=args.port)
    finally:
        collector.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Capture stderr and forward it to RUM or HEC",
    )
    parser.add_argument("--config", help="Path to rum.yaml (default: search from cwd)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    test_log = subparsers.add_parser("test-log", help="Send one test event to HEC")
    test_log.add_argument("--message", default=TEST_LOG_MESSAGE)
    test_log.set_defaults(func=cmd_test_log)

    serve = subparsers.add_parser("serve", help="Capture stderr and run the settings panel")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8765)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
