import pytest

from mergecraft.progression import XPCurve


def test_required_xp_grows_exponentially():
    curve = XPCurve()
    assert curve.required_for_level(1) == 100
    assert curve.required_for_level(2) == 150
    assert curve.required_for_level(3) == 225
    assert curve.required_for_level(4) == int(round(100 * 1.5 ** 3))
    values = [curve.required_for_level(L) for L in range(1, 51)]
    assert all(b > a for a, b in zip(values, values[1:]))


def test_xp_to_next_and_totals():
    curve = XPCurve(base_xp=100, growth=1.5, max_level=3)
    assert curve.xp_to_next(1, 40) == 110
    assert curve.xp_to_next(3, 0) is None
    assert curve.total_xp_for_level(1) == 0
    assert curve.total_xp_for_level(3) == 150 + 225


def test_flat_curve_rejected():
    with pytest.raises(ValueError):
        XPCurve(growth=1.0)
