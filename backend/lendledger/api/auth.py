"""Request signatures: the host boundary that turns a request into a caller identity."""

import hashlib
import time

from fastapi import Depends, HTTPException, Header, Request
from stellar_sdk import Keypair
from stellar_sdk.exceptions import BadSignatureError, Ed25519PublicKeyInvalidError

from lendledger.api.dependencies import get_app_state

# Signature validity window (5 minutes)
SIGNATURE_VALIDITY_SECONDS = 300


def create_sign_message(method: str, path: str, body: bytes, timestamp: int) -> bytes:
    """
    Message an account signs to authenticate a request.

    Format: METHOD|PATH|SHA256(BODY)|TIMESTAMP
    """
    body_hash = hashlib.sha256(body).hexdigest()
    return f"{method}|{path}|{body_hash}|{timestamp}".encode("utf-8")


def sign_request(keypair: Keypair, method: str, path: str, body: bytes, timestamp: int) -> str:
    """Hex-encoded signature of a request, as expected in X-Signature."""
    return keypair.sign(create_sign_message(method, path, body, timestamp)).hex()


def verify_signature(public_key: str, message: bytes, signature: str) -> bool:
    """Check a hex-encoded ed25519 signature against a Stellar public key."""
    try:
        Keypair.from_public_key(public_key).verify(message, bytes.fromhex(signature))
        return True
    except (BadSignatureError, Ed25519PublicKeyInvalidError, ValueError):
        return False


async def verify_request_signature(
    request: Request,
    x_account: str = Header(...),
    x_signature: str = Header(...),
    x_timestamp: str = Header(...),
) -> str:
    """
    FastAPI dependency to verify request signature.

    Required headers:
    - X-Account: Caller's Stellar public key
    - X-Signature: Hex-encoded signature
    - X-Timestamp: Unix timestamp of signature

    Returns:
        Verified caller address

    Raises:
        HTTPException 401 if verification fails
    """
    try:
        timestamp = int(x_timestamp)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid timestamp format")

    if abs(int(time.time()) - timestamp) > SIGNATURE_VALIDITY_SECONDS:
        raise HTTPException(status_code=401, detail="Timestamp expired or too far in future")

    body = await request.body()
    message = create_sign_message(request.method, request.url.path, body, timestamp)
    if not verify_signature(x_account, message, x_signature):
        raise HTTPException(status_code=401, detail="Invalid signature")

    return x_account


async def require_admin(caller: str = Depends(verify_request_signature)) -> str:
    """FastAPI dependency: a verified caller that is also the ledger administrator."""
    admin_address = get_app_state().admin_address
    if admin_address is None or caller != admin_address:
        raise HTTPException(status_code=403, detail="Admin only")
    return caller
