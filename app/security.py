"""
Security utilities: password hashing, JWT tokens, and Fernet encryption.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - Argon2 is memory-hard and time-hard, which makes GPU brute-forcing
     expensive
   - We use passlib's CryptContext for safe, high-level Argon2 operations

2. JWT TOKENS (JSON Web Tokens)
   - After login, the user receives a signed JWT containing their user ID
   - The token is signed with SECRET_KEY using HS256 (HMAC-SHA256)
   - Tokens expire after ACCESS_TOKEN_EXPIRE_MINUTES (default: 30 min)

3. FERNET ENCRYPTION (AES-128-CBC + HMAC-SHA256)
   - Used for payout details at rest: Nequi account number, full name and
     national ID number, both on the account and on each withdrawal request
   - Fernet provides authenticated encryption: data is both encrypted and
     integrity-checked, preventing tampering
   - The encryption key is loaded from environment variables, never hardcoded
"""

import json
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet
from jose import jwt
from passlib.context import CryptContext

from app.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

# If we ever migrate away from argon2, passlib verifies old hashes with the
# original scheme and hashes new passwords with the new one ("deprecated='auto'").
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password using Argon2id."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash (constant time)."""
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. JWT Tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    `data` must carry "sub" (the user id as a string); "exp" is added here,
    ACCESS_TOKEN_EXPIRE_MINUTES from now unless `expires_delta` says otherwise.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# 3. Fernet Encryption (payout details at rest)
# ---------------------------------------------------------------------------

# Fernet keys are URL-safe base64-encoded 32-byte keys.
_fernet = Fernet(settings.DATA_ENCRYPTION_KEY.encode())


def encrypt_value(plaintext: str) -> bytes:
    """Encrypt a string for storage in a LargeBinary column."""
    return _fernet.encrypt(plaintext.encode())


def decrypt_value(ciphertext: bytes) -> str:
    """
    Decrypt a Fernet-encrypted value back to plaintext.

    Raises:
        cryptography.fernet.InvalidToken: If the data is corrupted or
            the encryption key doesn't match.
    """
    return _fernet.decrypt(ciphertext).decode()


def encrypt_json(payload: dict) -> bytes:
    return encrypt_value(json.dumps(payload, sort_keys=True))


def decrypt_json(ciphertext: bytes) -> dict:
    return json.loads(decrypt_value(ciphertext))
