from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
UNIT = Decimal("1")


def parse_amount(
    value: Union[str, int, float, Decimal], *, allow_negative: bool = False
) -> int:
    """Decimal amount (``"3750.00"``, ``"1,234.5"``, ``12``) to integer cents."""
    if isinstance(value, bool):
        raise ValueError("Invalid amount")
    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        clean = value.strip().replace("$", "").replace(" ", "").replace(",", "")
        try:
            amount = Decimal(clean)
        except InvalidOperation as exc:
            raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    cents = int((amount * 100).quantize(UNIT, rounding=ROUND_HALF_UP))
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def cents_to_amount(cents: int) -> str:
    """Wire form: ``375000`` -> ``"3750.00"``."""
    return str(cents_to_decimal(cents))


def format_currency(
    cents: int, *, include_cents: bool = True, symbol: str = ""
) -> str:
    sign = "-" if cents < 0 else ""
    value = cents_to_decimal(abs(cents))
    if include_cents:
        text = f"{value:,.2f}"
    else:
        text = f"{value.quantize(UNIT, rounding=ROUND_HALF_UP):,.0f}"
    return f"{sign}{symbol}{text}"
