"""
Unit tests for card credential generation.
"""
from datetime import date

import pytest

from card_network.core.identifiers import CardIssuer, is_luhn_valid, luhn_check_digit


class TestLuhn:
    """Test suite for Luhn helpers."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "number",
        ["4111111111111111", "4000056655665556", "79927398713"],
    )
    def test_known_valid_numbers(self, number: str) -> None:
        assert is_luhn_valid(number)

    @pytest.mark.unit
    def test_check_digit(self) -> None:
        assert luhn_check_digit("7992739871") == "3"

    @pytest.mark.unit
    @pytest.mark.parametrize("number", ["4111111111111112", "", "1", "4111-1111"])
    def test_invalid_numbers(self, number: str) -> None:
        assert not is_luhn_valid(number)


class TestCardIssuer:
    """Test suite for CardIssuer."""

    @pytest.mark.unit
    def test_issue_card(self) -> None:
        issuer = CardIssuer(iin="400000", today=date(2026, 3, 5))
        card = issuer.issue_card()

        assert len(card.number) == 16
        assert card.number.startswith("400000")
        assert is_luhn_valid(card.number)
        assert len(card.security_code) == 3 and card.security_code.isdigit()
        assert card.expiry_month == "03"
        assert card.expiry_year == "2030"

    @pytest.mark.unit
    def test_cards_are_unique(self) -> None:
        issuer = CardIssuer()
        numbers = {issuer.issue_card().number for _ in range(50)}
        assert len(numbers) == 50

    @pytest.mark.unit
    def test_payment_ids_are_unique(self) -> None:
        issuer = CardIssuer()
        assert issuer.payment_id() != issuer.payment_id()

    @pytest.mark.unit
    @pytest.mark.parametrize("iin", ["", "40a000", "4" * 16])
    def test_invalid_iin(self, iin: str) -> None:
        with pytest.raises(ValueError, match="Invalid issuer identification number"):
            CardIssuer(iin=iin)
