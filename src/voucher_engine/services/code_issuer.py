"""Redemption code issuance."""

from __future__ import annotations

import logging
import re
import secrets
import string
from typing import Iterable, Optional
from uuid import UUID

from jose import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..models import CodeType, VoucherCode
from ..utils.datetime import utcnow
from .errors import CodeConflict, CodeGenerationExhausted, InvalidVoucherDefinition

logger = logging.getLogger(__name__)

STATIC_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,20}$")
WIDE_ALPHABET = string.ascii_uppercase + string.digits
WIDENED_EXTRA_LENGTH = 4
STATIC_GROUP_LENGTH = 4
QR_NONCE_BYTES = 12
WIDENED_QR_NONCE_BYTES = 24


def _random_string(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _draw_short(widened: bool) -> str:
    settings = get_settings()
    if widened:
        return _random_string(WIDE_ALPHABET, settings.short_code_length + WIDENED_EXTRA_LENGTH)
    return _random_string(settings.short_code_alphabet, settings.short_code_length)


def _draw_static(widened: bool) -> str:
    if widened:
        alphabet, length = WIDE_ALPHABET, STATIC_GROUP_LENGTH + WIDENED_EXTRA_LENGTH // 2
    else:
        alphabet, length = get_settings().short_code_alphabet, STATIC_GROUP_LENGTH
    return f"{_random_string(alphabet, length)}-{_random_string(alphabet, length)}"


def _draw_qr(voucher_id: UUID, widened: bool) -> str:
    """Signed payload embedded in the printed/displayed QR image."""

    settings = get_settings()
    claims = {
        "type": "voucher",
        "vid": str(voucher_id),
        "jti": secrets.token_urlsafe(WIDENED_QR_NONCE_BYTES if widened else QR_NONCE_BYTES),
        "iat": int(utcnow().timestamp()),
    }
    return jwt.encode(claims, settings.qr_signing_key, algorithm=settings.qr_algorithm)


def _draw(code_type: CodeType, voucher_id: UUID, widened: bool) -> str:
    if code_type is CodeType.SHORT:
        return _draw_short(widened)
    if code_type is CodeType.QR:
        return _draw_qr(voucher_id, widened)
    return _draw_static(widened)


def _try_insert(session: Session, voucher_id: UUID, code_type: CodeType, code: str) -> Optional[VoucherCode]:
    """Insert under a savepoint; return None when the code string is taken."""

    row = VoucherCode(voucher_id=voucher_id, code=code, code_type=code_type, is_active=True)
    try:
        with session.begin_nested():
            session.add(row)
    except IntegrityError:
        return None
    return row


def _issue_generated(session: Session, voucher_id: UUID, code_type: CodeType) -> VoucherCode:
    attempts = get_settings().code_max_attempts

    for widened in (False, True):
        for _ in range(attempts):
            row = _try_insert(session, voucher_id, code_type, _draw(code_type, voucher_id, widened))
            if row is not None:
                logger.info("issued %s code for voucher %s (widened=%s)", code_type.value, voucher_id, widened)
                return row
        logger.warning(
            "%s code collisions exhausted %d attempts for voucher %s (widened=%s)",
            code_type.value,
            attempts,
            voucher_id,
            widened,
        )

    raise CodeGenerationExhausted(f"Could not generate a unique {code_type.value} code for voucher {voucher_id}.")


def _issue_supplied_static(session: Session, voucher_id: UUID, static_code: str) -> VoucherCode:
    code = static_code.strip().upper()
    if not STATIC_CODE_PATTERN.match(code):
        raise InvalidVoucherDefinition("Static code must be 4-20 characters, uppercase letters and numbers only.")

    row = _try_insert(session, voucher_id, CodeType.STATIC, code)
    if row is None:
        raise CodeConflict(f"Static code {code} is already in use.")
    logger.info("registered static code for voucher %s", voucher_id)
    return row


def issue_codes(
    session: Session,
    voucher_id: UUID,
    requested_types: Iterable[CodeType | str],
    *,
    static_code: Optional[str] = None,
) -> list[VoucherCode]:
    """Generate one unique code per requested type and attach it to the voucher.

    The voucher row must already be flushed. A supplied ``static_code`` is used
    verbatim for the STATIC type instead of a random draw.
    """

    issued: list[VoucherCode] = []
    for code_type in dict.fromkeys(CodeType(value) for value in requested_types):
        if code_type is CodeType.STATIC and static_code:
            issued.append(_issue_supplied_static(session, voucher_id, static_code))
        else:
            issued.append(_issue_generated(session, voucher_id, code_type))
    return issued
