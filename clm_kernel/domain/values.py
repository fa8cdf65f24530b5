"""
Values -- immutable, self-validating value objects.

Responsibility:
    ``Money`` (amount + ISO-4217 currency) and ``Address``.  Entities hold
    these instead of loose primitives.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - ValueError on an unparseable amount or a currency code that is not
      three uppercase letters.
    - ValueError when arithmetic mixes currencies.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

CURRENCY_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")


def is_valid_currency_code(code: str | None) -> bool:
    """True when ``code`` has ISO-4217 shape (three uppercase letters)."""
    return bool(code) and CURRENCY_CODE_PATTERN.match(code) is not None


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Guarantees:
        - amount is always a Decimal (never float)
        - currency always matches ``^[A-Z]{3}$``
        - addition and subtraction refuse to mix currencies
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            if isinstance(self.amount, float):
                raise ValueError("Money amount must not be a float")
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        if not is_valid_currency_code(self.currency):
            raise ValueError(f"Invalid currency code: {self.currency!r}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str) -> Money:
        return cls(amount=Decimal(str(amount)), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True, slots=True)
class Address:
    """Postal address. All parts are free text; empty strings mean unknown."""

    street1: str = ""
    street2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.street1, self.street2, self.city, self.state, self.postal_code, self.country)
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "street1": self.street1,
            "street2": self.street2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str] | None) -> Address | None:
        if not data:
            return None
        return cls(**{k: data.get(k, "") or "" for k in (
            "street1", "street2", "city", "state", "postal_code", "country",
        )})
