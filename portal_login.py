"""Log in to the investor portal from the command line.

Examples::

    python portal_login.py email investor@example.com
    python portal_login.py phone --country-code +51 987654321 --otp 123456
    python portal_login.py wallet GABC...XYZ
    python portal_login.py profile

The session (tokens, roles, name) is written to ``--session-file`` so later
invocations such as ``profile`` can reuse it.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Callable, Sequence

from dotenv import load_dotenv

from tenantdesk.portal import (
    PortalAuthClient,
    PortalAuthError,
    PortalSessionExpiredError,
    PortalSessionStore,
    RegistrationRequiredError,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REGISTRATION_REQUIRED = 2


def _echo(message: str) -> None:
    sys.stdout.write(f"{message}\n")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Investor portal login")
    parser.add_argument(
        "--api-url",
        default=os.getenv("PORTAL_API_URL"),
        help="Portal API base URL (default: PORTAL_API_URL or http://localhost:3001)",
    )
    parser.add_argument(
        "--session-file",
        default=os.getenv("PORTAL_SESSION_FILE", ".portal-session.json"),
        help="Where the login session is stored",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    email_parser = subparsers.add_parser("email", help="Log in with an e-mail code")
    email_parser.add_argument("email")
    email_parser.add_argument("--otp", help="Verification code (prompted when omitted)")

    phone_parser = subparsers.add_parser("phone", help="Log in with an SMS code")
    phone_parser.add_argument("phone")
    phone_parser.add_argument("--country-code", default="+1")
    phone_parser.add_argument("--otp", help="Verification code (prompted when omitted)")

    wallet_parser = subparsers.add_parser("wallet", help="Log in with a connected wallet")
    wallet_parser.add_argument("address")

    subparsers.add_parser("profile", help="Show the profile of the stored session")
    subparsers.add_parser("logout", help="Forget the stored session")

    return parser.parse_args(argv)


def _registration_hint(exc: RegistrationRequiredError) -> str:
    if exc.method == "phone":
        return (
            f"No account for {exc.country_code or ''}{exc.value}. "
            "Register at the portal with this phone number first."
        )
    return f"No account for {exc.method} {exc.value}. Register at the portal first."


def _read_code(args: argparse.Namespace, prompt: Callable[[str], str]) -> str:
    code = args.otp or prompt("Verification code: ")
    return "".join(ch for ch in code if ch.isdigit())[:6]


def main(
    argv: Sequence[str] | None = None,
    *,
    client: PortalAuthClient | None = None,
    prompt: Callable[[str], str] = input,
) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    client = client or PortalAuthClient(args.api_url)
    store = PortalSessionStore.load(args.session_file)

    try:
        if args.command == "email":
            client.request_email_otp(args.email)
            _echo(f"Verification code sent to {args.email}")
            login = client.verify_email_otp(args.email, _read_code(args, prompt))
        elif args.command == "phone":
            client.request_phone_otp(args.country_code, args.phone)
            _echo(f"Verification code sent to {args.country_code} {args.phone}")
            login = client.verify_phone_otp(args.country_code, args.phone, _read_code(args, prompt))
        elif args.command == "wallet":
            login = client.wallet_login(args.address)
        elif args.command == "profile":
            token = store.get("investor_token")
            if not token:
                _echo("Not logged in.")
                return EXIT_ERROR
            _echo(json.dumps(client.get_profile(token), indent=2, sort_keys=True))
            return EXIT_OK
        else:
            store.logout()
            store.save(args.session_file)
            _echo("Logged out.")
            return EXIT_OK
    except RegistrationRequiredError as exc:
        _echo(_registration_hint(exc))
        return EXIT_REGISTRATION_REQUIRED
    except PortalSessionExpiredError:
        store.logout()
        store.save(args.session_file)
        _echo("Session expired; please log in again.")
        return EXIT_ERROR
    except PortalAuthError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR

    store.record_login(login)
    store.save(args.session_file)
    name = login.user.get("name") or login.identifier
    roles = ", ".join(login.roles) or "INVESTOR"
    _echo(f"Logged in as {name} ({roles})")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
