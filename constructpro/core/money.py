from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
QTY_QUANT = Decimal("0.001")
ZERO_QTY = Decimal("0.000")
# Largest value a Numeric(14, 3) quantity column holds.
MAX_QUANTITY = Decimal("99999999999.999")
MAX_UNIT_COST = Decimal("9999999999.99")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_quantity(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def line_cost(unit_cost: Decimal | None, quantity: Decimal | int | float | str) -> Decimal | None:
    """Cost snapshot for a quantity; None when the material carries no unit cost."""
    if unit_cost is None:
        return None
    return to_money(Decimal(str(unit_cost)) * Decimal(str(quantity)))


def as_float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None
