#!/usr/bin/env python3
"""
Seed PayPortal with demo users and payments for local development.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from payportal.core.security import ROLE_CUSTOMER, ROLE_EMPLOYEE, Principal
from payportal.database import SessionLocal, init_db
from payportal.services.auth import create_user, get_user_by_username
from payportal.services.payment_service import PaymentService

DEMO_PASSWORD = "Demo@1234"

DEMO_PAYMENTS = [
    {
        "amount": "1250.00",
        "currency": "EUR",
        "payee_account_number": "4455667788",
        "payee_account_name": "Anna Muller",
        "payee_bank_name": "Deutsche Bank",
        "swift_code": "DEUTDEFF",
    },
    {
        "amount": "300.50",
        "currency": "USD",
        "payee_account_number": "1234567890123",
        "payee_account_name": "John O'Neil",
        "payee_bank_name": "Chase & Co",
        "swift_code": "CHASUS33XXX",
    },
    {
        "amount": "100.00",
        "currency": "GBP",
        "payee_account_number": "99887766554",
        "payee_account_name": "Mary-Jane Smith",
        "payee_bank_name": "Barclays",
        "swift_code": "barcgb22",
    },
]


def main():
    print("Seeding demo data...")
    init_db()

    session = SessionLocal()
    try:
        if get_user_by_username(session, "demo_customer"):
            print("Demo data already present.")
            return

        customer = create_user(
            session, "demo_customer", DEMO_PASSWORD, ROLE_CUSTOMER, "1029384756", "Demo Customer"
        )
        verifier = create_user(session, "staff_verifier", DEMO_PASSWORD, ROLE_EMPLOYEE, None, "Staff Verifier")
        create_user(session, "staff_releaser", DEMO_PASSWORD, ROLE_EMPLOYEE, None, "Staff Releaser")

        service = PaymentService(session)
        customer_p = Principal(id=customer.id, role=ROLE_CUSTOMER, account_number=customer.account_number)
        verifier_p = Principal(id=verifier.id, role=ROLE_EMPLOYEE)

        created = [service.create_payment(customer_p, fields) for fields in DEMO_PAYMENTS]
        service.verify_payment(verifier_p, created[0].id)

        print(f"  Users: demo_customer, staff_verifier, staff_releaser (password {DEMO_PASSWORD})")
        print(f"  Payments: {len(created)} created, 1 verified")
        print("Done.")
    finally:
        session.close()


if __name__ == "__main__":
    main()
