# amounts.py

from decimal import MAX_EMAX, MIN_EMIN, Decimal, Inexact, InvalidOperation, localcontext

from errors import ValidationError

U64_MAX = 2**64 - 1
MAX_DECIMALS = 255


def parse_decimals(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("decimals must be a non-negative integer.")
    if isinstance(value, int):
        decimals = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError(f"decimals must be a non-negative integer, got '{value}'.")
        decimals = int(text)
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise ValidationError(f"decimals must be between 0 and {MAX_DECIMALS}.")
    return decimals


def to_base_units(supply: str, decimals: int) -> int:
    """Scale a decimal supply string by 10**decimals.

    The result must be a whole number of base units that fits in a u64.
    """
    if not isinstance(supply, str) or not supply.strip():
        raise ValidationError("supply must be a non-empty string.")
    decimals = parse_decimals(decimals)

    try:
        amount = Decimal(supply.strip())
    except InvalidOperation:
        raise ValidationError(f"supply must be a decimal number, got '{supply}'.")
    if not amount.is_finite():
        raise ValidationError(f"supply must be a decimal number, got '{supply}'.")
    if amount <= 0:
        raise ValidationError("supply must be greater than zero.")

    too_precise = ValidationError(
        f"supply {supply} has more than {decimals} fractional digits and cannot be expressed in base units."
    )
    # decimals >= 0, so anything above the ceiling before scaling stays above it.
    if amount > U64_MAX:
        raise ValidationError(f"supply {supply} with {decimals} decimals exceeds the maximum token supply.")

    with localcontext() as ctx:
        ctx.prec = 1000
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        ctx.traps[Inexact] = True
        try:
            scaled = amount.scaleb(decimals)
        except Inexact:
            raise too_precise
        if scaled > U64_MAX:
            raise ValidationError(f"supply {supply} with {decimals} decimals exceeds the maximum token supply.")
        if scaled != scaled.to_integral_value():
            raise too_precise
    return int(scaled)


def format_token_amount(raw: int, decimals: int) -> str:
    """Render base units as a canonical decimal string (no trailing zeros)."""
    if raw < 0:
        raise ValueError("raw amount must not be negative")
    whole, frac = divmod(int(raw), 10**decimals)
    if decimals == 0 or frac == 0:
        return str(whole)
    return f"{whole}.{str(frac).rjust(decimals, '0').rstrip('0')}"
