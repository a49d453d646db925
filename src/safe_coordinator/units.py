from __future__ import annotations

from decimal import Decimal, InvalidOperation

WEI_PER_ETH = 10**18


def eth_to_wei(amount: Decimal | str | int) -> int:
    """Convert an ETH amount to an integer number of wei.

    Args:
        amount: Amount in ETH, e.g. ``"0.01"``.

    Returns:
        The amount in wei.

    Raises:
        ValueError: If the amount is negative, not a number, or has more
            than 18 decimal places.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid ETH amount: {amount!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"ETH amount must be a non-negative number: {amount!r}")
    wei = value * WEI_PER_ETH
    if wei != wei.to_integral_value():
        raise ValueError(f"ETH amount has more than 18 decimals: {amount!r}")
    return int(wei)


def format_wei(wei: int) -> str:
    """Format wei value to human-readable ETH amount."""
    return f"{Decimal(wei) / WEI_PER_ETH:f} ETH"
