import bcrypt

from exceptions import CredentialError

BCRYPT_ROUNDS = 12


def get_password_hash(password: str) -> str:
    try:
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    except ValueError as exc:
        # bcrypt rejects passwords longer than 72 bytes
        raise CredentialError(f"could not hash password: {exc}") from exc
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False
