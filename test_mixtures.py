import dataclasses

import numpy as np
import pytest

from hgsynergy.exceptions import IntegrationFailure, InvalidMixtureSpec, RootNotFound
from hgsynergy.models.hazard_models import CalibratedDER, ModelFamily
from hgsynergy.models.mixtures import (
    MixtureRate,
    MixtureSpec,
    build_components,
    calculate_iea,
    calculate_sea,
    invert_der,
    sum_low_let_components,
)

DOSES = 0.5 * np.arange(0, 81)


def assert_non_decreasing(values, tol=1e-9):
    assert np.all(np.diff(values) >= -tol)


# ============================================================================
# SEA
# ============================================================================

def test_sea_reference_scenario(reference_coefficients):
    dose = 0.01 * np.arange(41)
    curve = calculate_sea(dose, [70, 195], [0.5, 0.5], reference_coefficients, n=2)
    assert len(curve) == 41
    assert curve[0] == 0.0
    assert np.all(curve >= 0)
    assert_non_decreasing(curve)


def test_sea_rejects_ratios_not_summing_to_one(reference_coefficients):
    with pytest.raises(InvalidMixtureSpec):
        calculate_sea(DOSES, [70, 195], [0.5, 0.4], reference_coefficients)


@pytest.mark.parametrize("lets, ratios, n", [
    ([70, 195], [0.5, 0.5], 3),
    ([70, 195, 464], [0.5, 0.5], None),
    ([], [], None),
    ([70, 195], [1.5, -0.5], None),
])
def test_sea_validation(reference_coefficients, lets, ratios, n):
    with pytest.raises(InvalidMixtureSpec):
        calculate_sea(DOSES, lets, ratios, reference_coefficients, n=n)


def test_sea_single_component_is_the_one_ion_der(reference_coefficients):
    der = CalibratedDER(reference_coefficients[ModelFamily.NTE])
    curve = calculate_sea(DOSES, [70], [1], reference_coefficients)
    np.testing.assert_allclose(curve, der(DOSES, 70))


def test_sea_low_let_first_component(reference_coefficients):
    low = CalibratedDER(reference_coefficients[ModelFamily.LOW_LET])
    nte = CalibratedDER(reference_coefficients[ModelFamily.NTE])
    curve = calculate_sea(DOSES, [0.4, 195], [4 / 7, 3 / 7], reference_coefficients,
                          includes_low_let=True)
    expected = low(DOSES * 4 / 7, 0.4) + nte(DOSES * 3 / 7, 195)
    np.testing.assert_allclose(curve, expected)


def test_sea_is_order_independent(reference_coefficients):
    a = calculate_sea(DOSES, [70, 195, 464], [0.2, 0.3, 0.5], reference_coefficients)
    b = calculate_sea(DOSES, [464, 70, 195], [0.5, 0.2, 0.3], reference_coefficients)
    np.testing.assert_allclose(a, b)


# ============================================================================
# IEA
# ============================================================================

@pytest.mark.parametrize("family", ["NTE", "TE"])
def test_iea_single_component_reduces_to_der(reference_coefficients, family):
    der = CalibratedDER(reference_coefficients[ModelFamily(family)])
    curve = calculate_iea(DOSES, [70], [1], family, reference_coefficients)
    assert curve[0] == 0.0
    np.testing.assert_allclose(curve, der(DOSES, 70), atol=1e-5)


@pytest.mark.parametrize("family", ["NTE", "TE"])
def test_iea_two_ion_mixture_is_monotone(reference_coefficients, family):
    curve = calculate_iea(DOSES, [70, 195], [0.5, 0.5], family, reference_coefficients)
    assert curve[0] == 0.0
    assert np.all(curve >= 0)
    assert_non_decreasing(curve)


def test_iea_identical_components_equal_one_component(reference_coefficients):
    split = calculate_iea(DOSES, [193, 193], [0.5, 0.5], "NTE", reference_coefficients)
    whole = calculate_iea(DOSES, [193], [1.0], "NTE", reference_coefficients)
    np.testing.assert_allclose(split, whole, atol=1e-6)


def test_iea_with_low_let_component(reference_coefficients):
    dose = 0.01 * np.arange(71)
    curve = calculate_iea(dose, [0.4, 195], [4 / 7, 3 / 7], "TE", reference_coefficients)
    assert curve[0] == 0.0
    assert_non_decreasing(curve)


def test_iea_zero_dose_grid(reference_coefficients):
    curve = calculate_iea([0.0, 0.0], [70, 195], [0.5, 0.5], "NTE", reference_coefficients)
    np.testing.assert_array_equal(curve, [0.0, 0.0])


def test_iea_returns_values_in_grid_order(reference_coefficients):
    ordered = calculate_iea([0, 10, 20, 40], [70, 195], [0.5, 0.5], "TE", reference_coefficients)
    shuffled = calculate_iea([40, 0, 20, 10, 20], [70, 195], [0.5, 0.5], "TE", reference_coefficients)
    np.testing.assert_allclose(shuffled, ordered[[3, 0, 2, 1, 2]], rtol=1e-6)


def test_iea_validation(reference_coefficients):
    with pytest.raises(InvalidMixtureSpec):
        calculate_iea(DOSES, [70, 195], [0.5, 0.4], "NTE", reference_coefficients)
    with pytest.raises(InvalidMixtureSpec):
        calculate_iea(DOSES, [70, 195], [0.5, 0.5], "NTE", reference_coefficients, n=1)
    with pytest.raises(ValueError):
        calculate_iea(DOSES, [70], [1.0], "lowLET", reference_coefficients)
    with pytest.raises(ValueError):
        calculate_iea(DOSES, [70], [1.0], "NTE", coefficients=None)


def test_iea_synthetic_overrides():
    rate = 0.01
    ders = {"NTE": lambda d, let: 1 - np.exp(-rate * d)}
    slopes = {"NTE": lambda d, let: rate * np.exp(-rate * d)}
    curve = calculate_iea(DOSES, [70, 195], [0.5, 0.5], "NTE", ders=ders, slopes=slopes)
    np.testing.assert_allclose(curve, 1 - np.exp(-rate * DOSES), atol=1e-6)


def test_iea_bounds_rate_evaluations(reference_coefficients, config):
    tight = dataclasses.replace(config, max_rate_evaluations=5)
    with pytest.raises(IntegrationFailure) as excinfo:
        calculate_iea(DOSES, [70, 195], [0.5, 0.5], "NTE", reference_coefficients, config=tight)
    assert excinfo.value.last_dose == 0.0


# ============================================================================
# BUILDING BLOCKS
# ============================================================================

def test_low_let_components_are_pooled():
    hze, low = sum_low_let_components([0.4, 70, 1.6], [0.2, 0.5, 0.3])
    assert hze == [(70, 0.5)]
    assert low == pytest.approx((2.0, 0.5))
    hze, low = sum_low_let_components([70, 195], [0.5, 0.5])
    assert low is None


def test_pooled_low_let_component_uses_low_let_model(reference_coefficients):
    spec = MixtureSpec.build([0.4, 1.6, 193], [0.25, 0.25, 0.5])
    components = build_components(spec, "NTE", reference_coefficients)
    assert [c.label for c in components] == ["NTE", "lowLET"]
    assert components[1].let == pytest.approx(2.0)
    assert components[1].ratio == pytest.approx(0.5)


@pytest.mark.parametrize("family", list(ModelFamily))
def test_invert_der_round_trip(reference_coefficients, config, family):
    der = CalibratedDER(reference_coefficients[family], config)
    for dose in (1e-4, 0.5, 25.0, 300.0):
        u = invert_der(der, 100.0, float(der(dose, 100.0)), config)
        assert u == pytest.approx(dose, rel=1e-6, abs=1e-9)
    assert invert_der(der, 100.0, 0.0, config) == 0.0


def test_invert_der_expands_bracket(reference_coefficients, config):
    small = dataclasses.replace(config, root_bracket=(0.0, 1.0))
    der = CalibratedDER(reference_coefficients[ModelFamily.TE], small)
    target = float(der(50.0, 70.0))
    assert invert_der(der, 70.0, target, small) == pytest.approx(50.0, rel=1e-6)


def test_invert_der_lowers_bracket(reference_coefficients, config):
    high = dataclasses.replace(config, root_bracket=(10.0, 20000.0))
    der = CalibratedDER(reference_coefficients[ModelFamily.TE], high)
    target = float(der(1.0, 70.0))
    assert invert_der(der, 70.0, target, high) == pytest.approx(1.0, rel=1e-6)


def test_saturated_effect_raises_root_not_found(reference_coefficients, config):
    der = CalibratedDER(reference_coefficients[ModelFamily.NTE], config)
    with pytest.raises(RootNotFound) as excinfo:
        invert_der(der, 70.0, 1.0, config)
    assert excinfo.value.effect == 1.0


def test_unreachable_effect_raises_root_not_found(reference_coefficients, config):
    der = CalibratedDER(reference_coefficients[ModelFamily.TE], config)
    with pytest.raises(RootNotFound) as excinfo:
        invert_der(der, 70.0, 1.5, config)
    assert excinfo.value.let == 70.0
    assert excinfo.value.effect == 1.5


def test_mixture_rate_at_zero_effect(reference_coefficients, config):
    spec = MixtureSpec.build([70, 195], [0.5, 0.5])
    rate = MixtureRate(build_components(spec, "TE", reference_coefficients, config=config), config)
    der = CalibratedDER(reference_coefficients[ModelFamily.TE], config)
    expected = 0.5 * der.slope(0.0, 70) + 0.5 * der.slope(0.0, 195)
    assert rate(0.0, [0.0])[0] == pytest.approx(expected)
    np.testing.assert_array_equal(rate.equivalent_doses(0.0), [0.0, 0.0])
