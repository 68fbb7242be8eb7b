"""
Start the invitations API (uvicorn).

Configuration is read from the environment or .env (see agenda_invites.config).
Startup failures are logged and exit non-zero.
"""

import logging
import sys

from agenda_invites.main import run


def main() -> None:
    try:
        run()
    except Exception:
        logging.basicConfig(level=logging.ERROR)
        logging.exception("Invitations API failed to start.")
        print("\nInvitations API failed to start. Check:")
        print("   - DATABASE_URL / DB_PATH points at a reachable database")
        print("   - PORT is free")
        print("   - PERSONNEL_REGISTRY_URL, if set, is a valid http(s) URL\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
