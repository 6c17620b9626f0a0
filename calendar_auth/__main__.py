"""
Standalone authorization: python -m calendar_auth authorize | logout
Runs its own callback listener on the redirect URI's port.
"""
import argparse
import logging

from calendar_auth import config
from calendar_auth.authorizer import InteractiveAuthorizer
from calendar_auth.bootstrap import write_oauth_key_file
from calendar_auth.credential_store import CredentialStore
from calendar_auth.errors import ConfigurationError
from calendar_auth.token_manager import TokenManager


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Google Calendar OAuth2 credentials")
    parser.add_argument("command", choices=["authorize", "logout"])
    parser.add_argument("--token-path", default=config.TOKEN_PATH, help="Saved token file")
    parser.add_argument("--keys-path", default=config.OAUTH_KEY_PATH, help="Client identity file")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    store = CredentialStore(args.token_path)

    if args.command == "logout":
        TokenManager(store=store, delete_on_clear=True).clear()
        return 0

    try:
        write_oauth_key_file(args.keys_path)
    except ConfigurationError as e:
        logging.error("%s", e)
        return 1
    token_manager = TokenManager(store=store)
    authorizer = InteractiveAuthorizer(token_manager, keys_path=args.keys_path, embedded_listener=True)
    return 0 if authorizer.start(wait=True) else 1


if __name__ == "__main__":
    raise SystemExit(main())
