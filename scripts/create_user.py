"""
Create a PayPortal user (customer or employee).
Run from the project root:

    python scripts/create_user.py

You will be prompted for username, role, account number and password.
"""

import getpass
import os
import sys

# Make sure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from payportal.core.security import ROLE_CUSTOMER, ROLES
from payportal.database import SessionLocal, init_db
from payportal.services.auth import create_user, get_user_by_username
from payportal.services.validator import validate_field


def main():
    init_db()

    db = SessionLocal()
    try:
        print("\n── PayPortal · Create User ──\n")

        username = input("Username: ").strip().lower()
        err = validate_field("username", username)
        if err:
            print(err)
            return

        existing = get_user_by_username(db, username)
        if existing:
            print(f"User {username} already exists (role: {existing.role}).")
            return

        role = input(f"Role [{' / '.join(ROLES)}] (default: {ROLE_CUSTOMER}): ").strip()
        if role not in ROLES:
            role = ROLE_CUSTOMER

        account_number = None
        if role == ROLE_CUSTOMER:
            account_number = input("Account number (10-16 digits): ").strip()
            err = validate_field("account_number", account_number)
            if err:
                print(err)
                return

        password = getpass.getpass("Password: ")
        err = validate_field("password", password)
        if err:
            print(err)
            return

        full_name = input("Full name (optional): ").strip()

        user = create_user(db, username, password, role, account_number, full_name)
        print(f"\n✓ User created: {user.username} (role: {user.role}, id: {user.id})\n")

    finally:
        db.close()


if __name__ == "__main__":
    main()
