"""
TOTP engine

Secret and backup-code generation, RFC 4226/6238 code derivation via pyotp,
window verification and otpauth provisioning payloads. Everything here is
pure: no store access, the caller supplies the clock.
"""

import base64
import hashlib
import math
import secrets
from datetime import datetime
from io import BytesIO

import pyotp
import qrcode

from restaurant_security.exceptions import ValidationError

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

# Unambiguous uppercase alphanumerics (no 0/O, 1/I)
BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

SECRET_LENGTH = 32
TIME_STEP_SECONDS = 30
CODE_DIGITS = 6

DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def generate_secret(length: int = SECRET_LENGTH) -> str:
    """Generate a base-32 secret (no padding), 160 bits at the default length."""
    return pyotp.random_base32(length)


def generate_backup_codes(count: int = 10, length: int = 8) -> list[str]:
    """Generate `count` distinct single-use backup codes, in generation order."""
    codes: list[str] = []
    seen: set[str] = set()
    while len(codes) < count:
        code = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))
        if code in seen:
            continue
        seen.add(code)
        codes.append(code)
    return codes


def normalize_backup_code(code: str) -> str:
    """Strip separators and whitespace, uppercase."""
    return "".join(ch for ch in code if ch.isalnum()).upper()


def hash_backup_code(code: str) -> str:
    """Hash a backup code for storage."""
    return hashlib.sha256(normalize_backup_code(code).encode()).hexdigest()


def is_totp_format(code: str) -> bool:
    return len(code) == CODE_DIGITS and code.isdigit()


def is_backup_code_format(code: str, length: int = 8) -> bool:
    normalized = normalize_backup_code(code)
    return len(normalized) == length and normalized.isascii()


def decode_secret(secret: str) -> bytes:
    """
    Leniently decode a base-32 secret.

    Symbols outside the alphabet (padding, spaces, dashes) are ignored and
    trailing bits that do not fill a byte are dropped. A secret that yields
    no bytes at all is rejected.
    """
    bits = "".join(
        format(BASE32_ALPHABET.index(ch), "05b") for ch in secret.upper() if ch in BASE32_ALPHABET
    )
    raw = bytes(int(bits[i : i + 8], 2) for i in range(0, len(bits) - len(bits) % 8, 8))
    if not raw:
        raise ValidationError("TOTP secret decodes to zero bytes", field="secret")
    return raw


def _totp(secret: str, digest: str) -> pyotp.TOTP:
    if digest not in DIGESTS:
        raise ValidationError(f"Unsupported TOTP digest '{digest}'", field="digest")
    canonical = base64.b32encode(decode_secret(secret)).decode("ascii")
    return pyotp.TOTP(canonical, digits=CODE_DIGITS, digest=DIGESTS[digest], interval=TIME_STEP_SECONDS)


def time_counter(at: datetime) -> int:
    """Index of the 30-second step containing `at`."""
    return math.floor(at.timestamp() / TIME_STEP_SECONDS)


def generate_code(secret: str, counter: int, digest: str = "sha1") -> str:
    """HMAC one-time password for `counter`, 6 digits, zero padded."""
    return _totp(secret, digest).generate_otp(counter)


def verify_code(secret: str, code: str, at: datetime, window: int = 1, digest: str = "sha1") -> bool:
    """Check `code` against the counters [c - window, c + window] around `at`."""
    if not is_totp_format(code):
        return False
    return _totp(secret, digest).verify(code, for_time=at, valid_window=window)


def provisioning_uri(secret: str, account_label: str, issuer: str, digest: str = "sha1") -> str:
    """otpauth://totp/<issuer>:<label>?secret=...&issuer=... with encoded label and issuer."""
    totp = pyotp.TOTP(secret, digits=CODE_DIGITS, digest=DIGESTS[digest], interval=TIME_STEP_SECONDS)
    return totp.provisioning_uri(name=account_label, issuer_name=issuer)


def render_qr_png(data: str) -> str:
    """Render `data` as a QR code PNG data URI, locally."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"


def generate_qr_payload(secret: str, account_label: str, issuer: str, digest: str = "sha1") -> dict[str, str]:
    """Build the provisioning URI and wrap it as a QR image for the client."""
    uri = provisioning_uri(secret, account_label, issuer, digest)
    return {"uri": uri, "image": render_qr_png(uri)}
