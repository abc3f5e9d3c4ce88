# chaintrack/services/authenticity.py
"""
Authenticity tokens for serialized units.

The QR code printed with a physical item carries only its serial number. The
matching token reaches the legitimate buyer through their order record, so a
cloned QR code alone cannot be turned into a valid (serial, token) pair.

The token is an HMAC-SHA256 over the manufacturer id and the serial number,
keyed with a process-wide secret. That secret is the only source of
unforgeability: anyone holding it can mint tokens for any serial, and rotating
it invalidates every token already issued.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from chaintrack.config import settings
from chaintrack.errors import ValidationError
from chaintrack.models.unit import ProductUnit

logger = logging.getLogger(__name__)

_secret: Optional[bytes] = None


def init_secret(secret: str) -> None:
    """Set the process-wide secret. Later calls may only repeat the same value."""
    global _secret
    if not secret:
        raise ValidationError("Authenticity secret must not be empty")
    value = secret.encode("utf-8")
    if _secret is not None and not hmac.compare_digest(_secret, value):
        raise ValidationError("Authenticity secret is already initialised")
    _secret = value


def _get_secret() -> bytes:
    if _secret is None:
        init_secret(settings.AUTHENTICITY_SECRET)
    return _secret


def derive_hash(serial_number: str, manufacturer_id) -> str:
    """Deterministic token for a (serial, manufacturer) pair under the system secret."""
    serial = (serial_number or "").strip()
    if not serial:
        raise ValidationError("Serial number must not be empty")
    # Length-prefix the serial so ("1", "23") and ("12", "3") never collide
    message = f"{len(serial)}:{serial}|{manufacturer_id}".encode("utf-8")
    return hmac.new(_get_secret(), message, hashlib.sha256).hexdigest()


def qr_payload(unit: ProductUnit) -> str:
    """Content printed as the QR code on the physical item: the serial only."""
    return unit.serial_number


@dataclass
class VerificationResult:
    valid: bool
    unit: Optional[ProductUnit] = None


def verify(db: Session, scanned_serial: str, claimed_token: str, product_id: Optional[int] = None) -> VerificationResult:
    """
    Check a scanned serial against a claimed token.

    Never raises for a failed check: unknown serials, units without a token and
    mismatching tokens all yield ``valid=False`` with no unit attached.
    """
    serial = (scanned_serial or "").strip()
    token = (claimed_token or "").strip().lower()
    if not serial or not token:
        return VerificationResult(valid=False)

    q = db.query(ProductUnit).filter(ProductUnit.serial_number == serial)
    if product_id is not None:
        q = q.filter(ProductUnit.product_id == product_id)

    # Serials are unique per product only, so several units may share one
    match = None
    for unit in q.order_by(ProductUnit.id).all():
        stored = unit.unique_auth_hash
        if stored and hmac.compare_digest(stored.encode("utf-8"), token.encode("utf-8")):
            match = unit

    if match is None:
        logger.info("Verification failed for scanned serial")
        return VerificationResult(valid=False)

    logger.info("Verification succeeded for unit %s", match.id)
    return VerificationResult(valid=True, unit=match)
