"""Delete lobbies older than LOBBY_MAX_AGE_DAYS (default 30) from the database.

Usage: python -m klaverjas.scripts.cleanup_lobbies [max_age_days]
"""
import sys

from klaverjas.server.config import LOBBY_MAX_AGE_DAYS
from klaverjas.server.db import PostgresDocumentStore
from klaverjas.server.lobby import LobbyService
from klaverjas.server.store import StoreFailure


def cleanup_lobbies(store, max_age_days: int = LOBBY_MAX_AGE_DAYS) -> int:
    """Delete stale lobbies and report each one; returns how many were deleted."""
    deleted = LobbyService(store).cleanup_old_lobbies(max_age_days)
    if not deleted:
        print("No old lobbies found, nothing to clean up.")
        return 0
    for code in deleted:
        print(f"Deleted lobby {code}")
    print(f"Deleted {len(deleted)} lobbies older than {max_age_days} days.")
    return len(deleted)


def main():
    max_age_days = int(sys.argv[1]) if len(sys.argv) > 1 else LOBBY_MAX_AGE_DAYS
    try:
        store = PostgresDocumentStore()
        cleanup_lobbies(store, max_age_days)
    except StoreFailure as e:
        print(f"Failed to clean up lobbies: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
