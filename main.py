"""Entry point for running the speed test service."""

from __future__ import annotations

import argparse
import json

from netprobe import bootstrap


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resilient network speed test")
    parser.add_argument("--config", help="Path to config.yaml", default="config.yaml")
    parser.add_argument("--host", default=None, help="Override web server host")
    parser.add_argument("--port", type=int, default=None, help="Override web server port")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode and debug logging")
    parser.add_argument("--once", action="store_true", help="Run a single test, print JSON and exit")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    context = bootstrap(args.config, log_level="DEBUG" if args.debug else None)

    if args.once:
        outcome = context.measurements.run_speed_test()
        print(json.dumps(context.measurements.to_dict(outcome), indent=2))
        return

    context.start()
    host = args.host or context.config.web.host
    port = args.port or context.config.web.port
    context.web_app.run(host=host, port=port, debug=args.debug)


if __name__ == "__main__":
    main()
