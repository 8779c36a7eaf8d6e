"""
Authentication service — credential checks against the users table.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from payportal.core.security import ROLE_CUSTOMER, hash_password, verify_password
from payportal.models.users import User


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username.lower().strip()).first()


def get_users_by_ids(db: Session, user_ids: Iterable[str]) -> Dict[str, User]:
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    return {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()}


def authenticate(
    db: Session,
    username: str,
    password: str,
    account_number: Optional[str] = None,
) -> User | None:
    user = get_user_by_username(db, username)
    if not user or not user.is_active:
        return None
    # Customers must present the account number they registered with
    if user.role == ROLE_CUSTOMER and account_number != user.account_number:
        return None
    if user.account_number and account_number and account_number != user.account_number:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    return user


def create_user(
    db: Session,
    username: str,
    password: str,
    role: str = ROLE_CUSTOMER,
    account_number: Optional[str] = None,
    full_name: str = "",
) -> User:
    user = User(
        username=username.lower().strip(),
        hashed_password=hash_password(password),
        role=role,
        account_number=account_number,
        full_name=full_name or None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
