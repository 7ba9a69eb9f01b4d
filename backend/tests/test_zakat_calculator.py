import unittest
from decimal import Decimal

from zakat.services.zakat_calculator import (
    LegacyRate,
    RateSpec,
    calculate_obligation,
    compute_change,
    legacy_rate_for,
)
from zakat.validation import ValidationError


MONEY_RATE = RateSpec(unit_price=Decimal("45000"), unit_weight_kg=Decimal("0"), rate_id=2, name="Uang Standar")
RICE_RATE = RateSpec(unit_price=Decimal("45000"), unit_weight_kg=Decimal("2.5"), rate_id=1, name="Beras Standar")


class ZakatCalculatorTests(unittest.TestCase):
    def test_money_rate_with_change(self):
        result = calculate_obligation(4, Decimal("200000"), MONEY_RATE)

        self.assertEqual(result.zakat_kind, "uang")
        self.assertEqual(result.rate_id, 2)
        self.assertEqual(result.obligation_amount, Decimal("180000.00"))
        self.assertEqual(result.money_amount, Decimal("180000.00"))
        self.assertIsNone(result.rice_kg)
        self.assertEqual(result.change_amount, Decimal("20000.00"))

    def test_rice_rate_valued_in_money(self):
        result = calculate_obligation(3, Decimal("100000"), RICE_RATE)

        self.assertEqual(result.zakat_kind, "beras")
        self.assertEqual(result.rice_kg, Decimal("7.50"))
        self.assertIsNone(result.money_amount)
        self.assertEqual(result.obligation_value, Decimal("135000.00"))
        self.assertEqual(result.change_amount, Decimal("0.00"))

    def test_change_is_never_negative(self):
        for paid in ("1", "44999", "45000", "45001", "1000000"):
            result = calculate_obligation(1, Decimal(paid), MONEY_RATE)
            self.assertGreaterEqual(result.change_amount, 0)
            self.assertEqual(result.change_amount, max(Decimal("0"), Decimal(paid) - Decimal("45000")))

    def test_legacy_rice_in_kg_valued_with_rice_price(self):
        rate = legacy_rate_for("beras", rice_kg_per_head=Decimal("2.5"), money_per_head=Decimal("45000"))
        result = calculate_obligation(2, Decimal("6"), rate, rice_price_per_kg=Decimal("12000"))

        self.assertIsNone(result.rate_id)
        self.assertEqual(result.rice_kg, Decimal("5.00"))
        self.assertEqual(result.obligation_amount, Decimal("5.00"))
        self.assertEqual(result.obligation_value, Decimal("60000.00"))
        self.assertEqual(result.change_amount, Decimal("1.00"))
        self.assertEqual(result.payment_unit, "kg")

    def test_legacy_money(self):
        rate = legacy_rate_for("uang", rice_kg_per_head=Decimal("2.5"), money_per_head=Decimal("45000"))
        result = calculate_obligation(2, Decimal("100000"), rate)

        self.assertEqual(result.money_amount, Decimal("90000.00"))
        self.assertEqual(result.change_amount, Decimal("10000.00"))
        self.assertEqual(result.payment_unit, "rp")

    def test_payment_rounding_to_zero_is_rejected(self):
        with self.assertRaises(ValidationError):
            calculate_obligation(1, Decimal("0.004"), MONEY_RATE)
        result = calculate_obligation(1, Decimal("45000.005"), MONEY_RATE)
        self.assertEqual(result.amount_paid, Decimal("45000.01"))

    def test_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            calculate_obligation(0, Decimal("45000"), MONEY_RATE)
        with self.assertRaises(ValidationError):
            calculate_obligation(True, Decimal("45000"), MONEY_RATE)
        with self.assertRaises(ValidationError):
            calculate_obligation(1, Decimal("0"), MONEY_RATE)
        with self.assertRaises(ValidationError):
            calculate_obligation(1, Decimal("45000"), None)
        with self.assertRaises(ValidationError):
            legacy_rate_for("gandum", rice_kg_per_head=Decimal("2.5"), money_per_head=Decimal("45000"))

    def test_rate_kind_follows_weight(self):
        self.assertEqual(RICE_RATE.kind, "beras")
        self.assertEqual(MONEY_RATE.kind, "uang")
        self.assertEqual(LegacyRate(kind="uang", per_head=Decimal("45000")).kind, "uang")
        self.assertEqual(compute_change(Decimal("10"), Decimal("25")), Decimal("0"))


if __name__ == "__main__":
    unittest.main()
