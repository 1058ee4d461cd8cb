from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..core.errors import InvalidAmountError, InvalidInputError
from ..models import ChargeCreateRequest

PIX_KEY_TYPES = ("cpf", "email", "telefone", "aleatoria")

_EMAIL_RE = re.compile(r".+@.+\..+")
_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class DepositIntent:
    """Validated deposit request. The PIX key is bookkeeping metadata only."""

    name: str
    amount_cents: int
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None


def only_digits(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def _check_digit(digits: str, weight_start: int) -> int:
    total = sum(int(d) * w for d, w in zip(digits, range(weight_start, 1, -1)))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def is_cpf_valid(value: str) -> bool:
    cpf = only_digits(value)
    if len(cpf) != 11 or cpf == cpf[0] * 11:
        return False
    if _check_digit(cpf[:9], 10) != int(cpf[9]):
        return False
    return _check_digit(cpf[:10], 11) == int(cpf[10])


def is_email(value: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(value or ""))


def is_phone(value: str) -> bool:
    return len(only_digits(value)) == 11


def is_random_key(value: str) -> bool:
    return len(value or "") >= 10


_KEY_VALIDATORS = {
    "cpf": is_cpf_valid,
    "email": is_email,
    "telefone": is_phone,
    "aleatoria": is_random_key,
}


def validate_pix_key(key_type: Optional[str], key_value: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    key_value = (key_value or "").strip() or None
    if key_type is None:
        return None, None
    if key_type not in _KEY_VALIDATORS:
        raise InvalidInputError(f"keyType must be one of: {', '.join(PIX_KEY_TYPES)}")
    if key_value is None:
        return key_type, None
    if not _KEY_VALIDATORS[key_type](key_value):
        raise InvalidInputError(f"Invalid {key_type} key")
    return key_type, key_value


def validate_deposit_intent(payload: ChargeCreateRequest, min_amount_cents: int) -> DepositIntent:
    # Amount is checked first so it is rejected whatever the other fields hold.
    if payload.amount_cents is None or payload.amount_cents < min_amount_cents:
        raise InvalidAmountError(f"Minimum amount is {min_amount_cents} cents")

    name = (payload.name or "").strip()
    if len(name) <= 2:
        raise InvalidInputError("Name must have more than 2 characters")

    pix_type, pix_key = validate_pix_key(payload.key_type, payload.key_value)
    return DepositIntent(
        name=name,
        amount_cents=payload.amount_cents,
        pix_type=pix_type,
        pix_key=pix_key,
    )
