#!/usr/bin/env python3
"""
Schema migrations for the newsletter database.

Usage:
    python apps/api/migrate.py migrate              # Apply all pending migrations
    python apps/api/migrate.py rollback             # Revert the last migration
    python apps/api/migrate.py status               # Show the current revision
    python apps/api/migrate.py history              # List known revisions
    python apps/api/migrate.py make <name>          # Autogenerate a new revision
    python apps/api/migrate.py upgrade <revision>   # Upgrade to a revision (default: head)
    python apps/api/migrate.py downgrade <revision> # Downgrade to a revision (default: -1)

DATABASE_URL must point at the target database.
"""

import sys
from pathlib import Path

# Make the ``apps`` package importable when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from alembic.config import Config
from alembic import command


def get_alembic_config() -> Config:
    alembic_ini = Path(__file__).resolve().parent / "alembic.ini"
    if not alembic_ini.exists():
        print(f"❌ alembic.ini not found at {alembic_ini}")
        sys.exit(1)
    return Config(str(alembic_ini))


def migrate(_argument: str | None) -> None:
    print("🚀 Applying migrations...")
    command.upgrade(get_alembic_config(), "head")
    print("✅ Database is at head")


def rollback(_argument: str | None) -> None:
    print("⏪ Reverting the last migration...")
    command.downgrade(get_alembic_config(), "-1")
    print("✅ Rollback complete")


def status(_argument: str | None) -> None:
    command.current(get_alembic_config(), verbose=True)


def history(_argument: str | None) -> None:
    command.history(get_alembic_config())


def make_migration(name: str | None) -> None:
    if not name:
        print("❌ Usage: python apps/api/migrate.py make <migration_name>")
        sys.exit(1)
    print(f"📝 Creating revision: {name}")
    command.revision(get_alembic_config(), message=name, autogenerate=True)


def upgrade_to(revision: str | None) -> None:
    command.upgrade(get_alembic_config(), revision or "head")


def downgrade_to(revision: str | None) -> None:
    command.downgrade(get_alembic_config(), revision or "-1")


COMMANDS = {
    "migrate": migrate,
    "rollback": rollback,
    "status": status,
    "history": history,
    "make": make_migration,
    "upgrade": upgrade_to,
    "downgrade": downgrade_to,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1].lower() in {"help", "--help", "-h"}:
        print(__doc__)
        sys.exit(0 if len(sys.argv) >= 2 else 1)

    command_name = sys.argv[1].lower()
    handler = COMMANDS.get(command_name)
    if handler is None:
        print(f"❌ Unknown command: {command_name}")
        print(__doc__)
        sys.exit(1)
    handler(sys.argv[2] if len(sys.argv) > 2 else None)


if __name__ == "__main__":
    main()
