"""
Share arithmetic for split percentages and blend contributions.

Children of a split must sum to exactly 100%, and blend contributions must
sum to exactly the blended volume, with no negative share.
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cellar_kernel.services.allocation_workflows import even_shares, split_percentages

volumes = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("100000"),
    places=3,
)


class TestSplitPercentages:

    def test_even_split(self):
        assert split_percentages([Decimal("500"), Decimal("500")]) == [
            Decimal("50.0000"),
            Decimal("50.0000"),
        ]

    def test_thirds_last_absorbs_remainder(self):
        shares = split_percentages([Decimal("100")] * 3)
        assert shares == [Decimal("33"), Decimal("33"), Decimal("34")]
        assert sum(shares) == Decimal("100")

    def test_half_up_rounding(self):
        # 12.5% rounds up to 13, the last child takes 87
        shares = split_percentages([Decimal("125"), Decimal("875")])
        assert shares == [Decimal("13"), Decimal("87")]

    def test_falls_back_to_running_total_when_rounding_overshoots(self):
        # Six shares of 16.6% each round up to 17, which would leave -2
        shares = split_percentages([Decimal("166")] * 6 + [Decimal("4")])
        assert shares == [
            Decimal("17"), Decimal("16"), Decimal("17"), Decimal("16"),
            Decimal("17"), Decimal("17"), Decimal("0"),
        ]

    def test_single_volume_is_whole(self):
        assert split_percentages([Decimal("42")]) == [Decimal("100")]

    def test_empty(self):
        assert split_percentages([]) == []

    def test_non_positive_total_rejected(self):
        with pytest.raises(ValueError):
            split_percentages([Decimal("0"), Decimal("0")])

    def test_places_applied(self):
        shares = split_percentages([Decimal("1"), Decimal("1")], places=2)
        assert all(s.as_tuple().exponent == -2 for s in shares)

    @given(st.lists(volumes, min_size=1, max_size=30))
    def test_always_sums_to_one_hundred(self, vols):
        shares = split_percentages(vols)
        assert sum(shares) == Decimal("100")
        assert len(shares) == len(vols)

    @given(st.lists(volumes, min_size=1, max_size=30))
    def test_never_negative(self, vols):
        assert all(s >= 0 for s in split_percentages(vols))


class TestEvenShares:

    def test_divides_exactly(self):
        assert even_shares(Decimal("900"), 3, 3) == [Decimal("300.000")] * 3

    def test_last_absorbs_remainder(self):
        shares = even_shares(Decimal("1000"), 3, 3)
        assert shares[:2] == [Decimal("333.333"), Decimal("333.333")]
        assert shares[2] == Decimal("333.334")

    def test_percentages(self):
        shares = even_shares(Decimal("100"), 3, 4)
        assert shares == [Decimal("33.3333"), Decimal("33.3333"), Decimal("33.3334")]

    def test_tiny_total_many_parts(self):
        shares = even_shares(Decimal("0.007"), 10, 3)
        assert sum(shares) == Decimal("0.007")
        assert all(s >= 0 for s in shares)

    def test_count_below_one_rejected(self):
        with pytest.raises(ValueError):
            even_shares(Decimal("10"), 0, 3)

    @given(volumes, st.integers(min_value=1, max_value=40))
    def test_sums_to_total(self, total, count):
        shares = even_shares(total, count, 3)
        assert len(shares) == count
        assert sum(shares) == total

    @given(volumes, st.integers(min_value=1, max_value=40))
    def test_last_is_largest_and_none_negative(self, total, count):
        shares = even_shares(total, count, 3)
        assert all(s >= 0 for s in shares)
        assert shares[-1] == max(shares)
