"""Show how tenantdesk will log with the current environment.

Without arguments the resolved LOG_* settings, log file paths and the list of
redacted keys are printed as JSON. ``--redact`` takes a JSON document (or
``-`` for stdin) and prints it the way the access log would store it.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import os
import sys
from typing import Any, Sequence

from tenantdesk.app_logging import SENSITIVE_FIELDS, load_log_settings, scrub


def get_log_config() -> dict[str, Any]:
    settings = load_log_settings()
    config: dict[str, Any] = dataclasses.asdict(settings)
    config["log_dir"] = os.path.abspath(settings.log_dir)
    config["files"] = {
        name: os.path.abspath(path) for name, path in settings.log_files().items()
    }
    config["scrubbed_fields"] = sorted(SENSITIVE_FIELDS)
    return config


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--redact",
        metavar="JSON",
        help="JSON payload to redact with the access-log rules ('-' reads stdin)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.redact is None:
        output: Any = get_log_config()
    else:
        raw = sys.stdin.read() if args.redact == "-" else args.redact
        try:
            output = scrub(json.loads(raw))
        except ValueError as exc:
            sys.stderr.write(f"Invalid JSON: {exc}\n")
            return 1
    sys.stdout.write(json.dumps(output, indent=2) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
