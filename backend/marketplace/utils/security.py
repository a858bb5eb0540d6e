import secrets
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, VerifyMismatchError

from marketplace.utils.hashing import sha256_text

ph = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=4)


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(stored_hash: str, password: str) -> bool:
    try:
        return ph.verify(stored_hash, password)
    except (VerifyMismatchError, VerificationError):
        return False


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Only the digest is persisted; a leaked sessions table does not leak bearer tokens.
    return sha256_text(token)
