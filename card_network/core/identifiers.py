"""Identifier and card credential generation."""
import secrets
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

# Issuer identification number prefixed to every generated card
DEFAULT_IIN = "400000"
CARD_NUMBER_LENGTH = 16
CARD_VALIDITY_YEARS = 4


def luhn_check_digit(partial_number: str) -> str:
    """
    Compute the Luhn check digit for a card number without its last digit.

    Args:
        partial_number: Digits of the card number, check digit excluded

    Returns:
        str: Single check digit
    """
    total = 0
    for index, char in enumerate(reversed(partial_number)):
        digit = int(char)
        if index % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return str((10 - total % 10) % 10)


def is_luhn_valid(card_number: str) -> bool:
    """Check a full card number against its Luhn check digit."""
    if not card_number.isdigit() or len(card_number) < 2:
        return False
    return luhn_check_digit(card_number[:-1]) == card_number[-1]


@dataclass(frozen=True)
class CardCredentials:
    """Credentials printed on a newly issued card."""

    number: str
    security_code: str
    expiry_month: str
    expiry_year: str


class CardIssuer:
    """
    Issues card credentials and payment identifiers.

    Args:
        iin: Issuer identification number used as card prefix
        today: Optional fixed date used to derive expiry (tests)
    """

    def __init__(self, iin: str = DEFAULT_IIN, today: Optional[date] = None):
        if not iin.isdigit() or len(iin) >= CARD_NUMBER_LENGTH:
            raise ValueError(f"Invalid issuer identification number: {iin!r}")
        self.iin = iin
        self._today = today

    def issue_card(self) -> CardCredentials:
        """Generate fresh card credentials."""
        body_length = CARD_NUMBER_LENGTH - len(self.iin) - 1
        body = "".join(str(secrets.randbelow(10)) for _ in range(body_length))
        partial = self.iin + body

        today = self._today or date.today()
        return CardCredentials(
            number=partial + luhn_check_digit(partial),
            security_code=f"{secrets.randbelow(1000):03d}",
            expiry_month=f"{today.month:02d}",
            expiry_year=str(today.year + CARD_VALIDITY_YEARS),
        )

    def payment_id(self) -> str:
        """Generate a payment identifier."""
        return str(uuid.uuid4())
