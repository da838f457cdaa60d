import base64
import os
import jwt
from datetime import datetime, timedelta, timezone
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from passlib.context import CryptContext
from app.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_HOURS

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password before storing it"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its hash"""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode a JWT, None when it is expired or malformed"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.PyJWTError:
        return None


def _secret_key_bytes(secret: str) -> bytes:
    # AES-256 key: the first 32 bytes of the secret, zero padded
    raw = secret.encode("utf-8")[:32]
    return raw.ljust(32, b"\0")


def encrypt_secret(plaintext: str, secret: str = SECRET_KEY) -> str:
    """Encrypt a value for storage. Output is base64(nonce || ciphertext)."""
    if not plaintext:
        return ""
    nonce = os.urandom(12)
    ciphertext = AESGCM(_secret_key_bytes(secret)).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt_secret(token: str, secret: str = SECRET_KEY) -> str:
    if not token:
        return ""
    data = base64.b64decode(token)
    if len(data) < 12:
        raise ValueError("ciphertext too short")
    nonce, ciphertext = data[:12], data[12:]
    return AESGCM(_secret_key_bytes(secret)).decrypt(nonce, ciphertext, None).decode("utf-8")
