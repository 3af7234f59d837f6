# Overview: Currency display settings passed explicitly into formatting helpers.

from __future__ import annotations

from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class DisplaySettings:
    currency_code: str = "USD"
    currency_symbol: str = "$"
    decimals: int = 2

    @classmethod
    def from_config(cls, config) -> "DisplaySettings":
        return cls(
            currency_code=config.get("CURRENCY_CODE", cls.currency_code),
            currency_symbol=config.get("CURRENCY_SYMBOL", cls.currency_symbol),
            decimals=int(config.get("CURRENCY_DECIMALS", cls.decimals)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def format_amount(amount: float | None, settings: DisplaySettings) -> str | None:
    """format_amount(1234.5, DisplaySettings()) -> "$1,234.50" """
    if amount is None:
        return None
    sign = "-" if amount < 0 else ""
    return f"{sign}{settings.currency_symbol}{abs(amount):,.{settings.decimals}f}"
