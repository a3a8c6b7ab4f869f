"""Conversion between human-entered ether amounts and integer wei."""
from decimal import Decimal, InvalidOperation
from typing import Union

from web3 import Web3

from errors import InvalidAmount

# Currency unit the API speaks; the contract always receives wei.
DISPLAY_UNIT = "ether"
MAX_BASE_UNITS = 2**256 - 1


def _parse_decimal(amount: Union[str, int]) -> Decimal:
    # Floats are refused outright so no amount ever loses precision on the way in.
    if isinstance(amount, bool) or not isinstance(amount, (str, int)):
        raise InvalidAmount(f"Amount must be a decimal string, got {type(amount).__name__}")

    text = str(amount).strip()
    if not text:
        raise InvalidAmount("Amount is empty")

    try:
        value = Decimal(text)
    except InvalidOperation:
        raise InvalidAmount(f"Amount is not numeric: {text!r}")

    if not value.is_finite():
        raise InvalidAmount(f"Amount is not finite: {text!r}")
    if value < 0:
        raise InvalidAmount(f"Amount must not be negative: {text!r}")
    return value


def to_base_units(amount: Union[str, int]) -> int:
    """Convert an ether amount such as ``"0.25"`` to wei.

    Fractions smaller than one wei are truncated.
    """
    value = _parse_decimal(amount)
    if value == 0:
        return 0
    try:
        wei = Web3.to_wei(value, DISPLAY_UNIT)
    except (ValueError, InvalidOperation) as exc:
        raise InvalidAmount(f"Amount out of range: {amount!r} ({exc})")
    if wei > MAX_BASE_UNITS:
        raise InvalidAmount(f"Amount out of range: {amount!r}")
    return int(wei)


def from_base_units(value: Union[int, str]) -> str:
    """Convert wei back to a plain decimal ether string."""
    if isinstance(value, bool):
        raise InvalidAmount("Base-unit amount must be an integer")
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            raise InvalidAmount(f"Base-unit amount is not an integer: {value!r}")
        value = int(text)
    if not isinstance(value, int):
        raise InvalidAmount(f"Base-unit amount must be an integer, got {type(value).__name__}")
    if value < 0 or value > MAX_BASE_UNITS:
        raise InvalidAmount(f"Base-unit amount out of range: {value}")
    if value == 0:
        return "0"

    ether = Web3.from_wei(value, DISPLAY_UNIT)
    return format(ether, "f")
