"""Command-line tool for calling gateway services.

``courier-call`` sends one request, or several as a single concurrent
batch, and prints one JSON line per result.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .client import GatewayClient
from .config import get_config, load_dotenv_for_sdk
from .exceptions import ConfigurationError, ResourceExhausted
from .request import BodyEncoding
from .result import Result


def _parse_data(items: list[str]) -> dict[str, str]:
    data = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"Expected key=value, got {item!r}")
        data[key] = value
    return data


def _result_line(result: Result) -> str:
    return json.dumps(
        {
            "id": result.request_id,
            "url": result.url,
            "success": result.success,
            "kind": result.kind.value if result.kind else None,
            "status_code": result.status_code,
            "error": result.error_message or None,
            "elapsed_ms": result.elapsed_ms,
            "body": result.body,
        },
        ensure_ascii=False,
        default=str,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="courier-call",
        description="Call backend services through the API gateway.",
    )
    parser.add_argument("urls", nargs="+", help="absolute URLs or gateway paths")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method (default GET)")
    parser.add_argument(
        "-d", "--data", action="append", default=[], metavar="KEY=VALUE",
        help="request parameter, may be repeated",
    )
    parser.add_argument("--form", action="store_true", help="send the body url-encoded instead of JSON")
    parser.add_argument("--raw", action="store_true", help="do not decode responses as JSON")
    parser.add_argument("--timeout", type=int, default=None, help="timeout in ms (seconds below 30)")
    parser.add_argument("--env-file", type=Path, default=None, help="dotenv file to load")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every request")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the courier-call CLI command.

    Exit Codes
    ----------
    0 : Every request succeeded
    1 : At least one request failed
    2 : Invalid arguments or configuration
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    load_dotenv_for_sdk(args.env_file)

    try:
        data = _parse_data(args.data)
        config = get_config(reload=True)
        with GatewayClient(config) as client:
            for url in args.urls:
                client.create_request(
                    args.method,
                    url,
                    data,
                    timeout=args.timeout,
                    encoding=BodyEncoding.FORM if args.form else BodyEncoding.JSON,
                    decode_json=not args.raw,
                )
            results = client.execute_all()
    except (ConfigurationError, ValidationError) as e:
        logging.error("Invalid request: %s", e)
        return 2
    except ResourceExhausted as e:
        logging.error("Request failed: %s", e)
        return 1

    for result in sorted(results, key=lambda r: r.request_id):
        print(_result_line(result))
    return 0 if all(r.success for r in results) else 1


def cli_main():
    """Entry point for the courier-call command."""
    sys.exit(main())


if __name__ == "__main__":
    cli_main()
