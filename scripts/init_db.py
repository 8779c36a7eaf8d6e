#!/usr/bin/env python3
"""
Initialize the PayPortal database.
Creates all tables.
"""

import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from payportal.config import settings
from payportal.database import init_db


def main():
    print("Initializing database...")
    print(f"  DATABASE_URL: {settings.DATABASE_URL[:40]}...")
    print(f"  Environment: {settings.ENVIRONMENT}")

    init_db()

    print("Database initialized successfully.")
    print("All tables created.")


if __name__ == "__main__":
    main()
