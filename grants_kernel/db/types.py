"""
Module: grants_kernel.db.types
Responsibility: Money helpers shared by models, domain functions and
    services.  Column precision itself comes
    from the type map on grants_kernel.db.base.Base.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/,
    services/, or selectors/.

Invariants enforced:
    No floats anywhere in the ledger.  Grant totals, allocation amounts and
    expense costs are Decimal with explicit precision.  Values arriving from
    JSON payloads (which may hold floats) go through to_money(), which
    converts via str() so 0.1 stays 0.1.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value: object) -> Decimal:
    """
    Coerce an int, str, float or Decimal into a Decimal amount.

    None and empty strings become zero; JSON payloads frequently omit costs.

    Raises:
        ValueError: If value cannot be interpreted as a number.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    The only sanctioned rounding function for ledger values.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
