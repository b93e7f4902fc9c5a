# models/accounts.py

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from auth.password_utils import get_password_hash, verify_password


class Account(BaseModel):
    id: int = 0
    first_name: str
    last_name: str
    number: str
    # Never serialized to clients
    encrypted_password: Optional[str] = Field(default=None, exclude=True, repr=False)
    balance: float = 0
    created_at: datetime

    def validate_password(self, password: str) -> bool:
        return verify_password(password, self.encrypted_password)


class CreateAccountRequest(BaseModel):
    first_name: str
    last_name: str
    password: Optional[str] = None


def new_account(first_name: str, last_name: str, password: Optional[str] = None) -> Account:
    """
    Build an unsaved account with a fresh external number.

    Without a password the account has no credential and can never log in.
    Raises CredentialError when the password cannot be hashed.
    """
    encrypted_password = get_password_hash(password) if password is not None else None
    return Account(
        first_name=first_name,
        last_name=last_name,
        number=str(uuid.uuid4()),
        encrypted_password=encrypted_password,
        created_at=datetime.now(timezone.utc),
    )
