import numpy as np
import pytest

from bsp_volume.core.structures import Region, Cell
from bsp_volume.core.sampling import sample_cell, update_integrated, VarianceIncreaseError


def test_always_true_gives_exact_volume_and_zero_variance(rng):
    region = Region.from_bounds([0.0, 0.0], [2.0, 3.0])
    cell = sample_cell(region, 100, lambda p: True, rng)

    assert cell.hits == 100
    assert cell.est == pytest.approx(6.0)
    assert cell.var == 0.0
    assert cell.iest == cell.est and cell.ivar == cell.var
    assert cell.is_leaf()


def test_always_false_gives_zero(rng):
    region = Region.from_bounds([0.0], [5.0])
    cell = sample_cell(region, 50, lambda p: False, rng)
    assert cell.est == 0.0
    assert cell.var == 0.0


def test_binomial_estimate_and_variance(rng):
    region = Region.from_bounds([0.0, 0.0], [2.0, 1.0])
    n = 4000
    cell = sample_cell(region, n, lambda p: p[0] < 0.5, rng)

    p = cell.hits / n
    assert cell.est == pytest.approx(p * 2.0)
    assert cell.var == pytest.approx(p * (1 - p) * 4.0 / n)
    # Истинная доля 0.25
    assert abs(p - 0.25) < 0.05


def test_predicate_receives_points_inside_region(rng):
    region = Region.from_bounds([1.0, -2.0, 0.0], [2.0, -1.0, 0.5])
    seen = []

    def predicate(point):
        seen.append(np.array(point))
        return True

    sample_cell(region, 37, predicate, rng)

    assert len(seen) == 37
    pts = np.vstack(seen)
    assert pts.shape == (37, 3)
    assert np.all(pts >= region.lower) and np.all(pts <= region.upper)


def test_zero_samples_rejected(rng):
    region = Region.from_bounds([0.0], [1.0])
    with pytest.raises(ValueError):
        sample_cell(region, 0, lambda p: True, rng)


def test_vectorized_predicate(rng):
    region = Region.from_bounds([0.0], [1.0])
    calls = []

    def predicate(points):
        calls.append(points.shape)
        return points[:, 0] < 0.5

    cell = sample_cell(region, 200, predicate, rng, vectorized=True)

    assert calls == [(200, 1)]
    assert 0 < cell.hits < 200


def test_vectorized_predicate_wrong_length(rng):
    region = Region.from_bounds([0.0], [1.0])
    with pytest.raises(ValueError):
        sample_cell(region, 10, lambda pts: np.ones(3, dtype=bool), rng, vectorized=True)


def test_vectorized_matches_pointwise_for_same_seed():
    region = Region.from_bounds([-1.0, -1.0], [1.0, 1.0])
    pointwise = sample_cell(region, 500, lambda p: p[0] + p[1] < 0.3,
                            np.random.default_rng(3))
    batched = sample_cell(region, 500, lambda pts: pts[:, 0] + pts[:, 1] < 0.3,
                          np.random.default_rng(3), vectorized=True)
    assert pointwise.hits == batched.hits


def _cell(est, var, level=0):
    region = Region.from_bounds([0.0], [1.0])
    return Cell(region, samples=1, hits=0, est=est, var=var,
                iest=est, ivar=var, level=level)


def test_update_integrated_inverse_variance_weighting():
    parent = _cell(0.5, 0.04)
    a = _cell(0.2, 0.01, 1)
    b = _cell(0.25, 0.02, 1)
    parent.children = (a, b)

    update_integrated(parent)

    cvar = 0.03
    alpha = 0.04 / (0.04 + cvar)
    assert parent.iest == pytest.approx((1 - alpha) * 0.5 + alpha * 0.45)
    assert parent.ivar == pytest.approx((1 - alpha) ** 2 * 0.04 + alpha ** 2 * cvar)
    assert parent.ivar <= 0.04
    # Собственные значения не меняются
    assert parent.est == 0.5 and parent.var == 0.04


def test_update_integrated_leaf_is_noop():
    cell = _cell(0.3, 0.01)
    update_integrated(cell)
    assert cell.iest == 0.3 and cell.ivar == 0.01


def test_update_integrated_zero_variance_keeps_own_estimate():
    parent = _cell(1.0, 0.0)
    parent.children = (_cell(0.4, 0.0, 1), _cell(0.5, 0.0, 1))

    update_integrated(parent)

    assert parent.iest == 1.0
    assert parent.ivar == 0.0


def test_update_integrated_exact_children_override_noisy_parent():
    parent = _cell(1.0, 0.5)
    parent.children = (_cell(0.4, 0.0, 1), _cell(0.5, 0.0, 1))

    update_integrated(parent)

    assert parent.iest == pytest.approx(0.9)
    assert parent.ivar == 0.0


def test_variance_increase_is_fatal():
    parent = _cell(1.0, 1.0)
    parent.ivar = 0.1
    parent.children = (_cell(0.5, 1.0, 1), _cell(0.5, 1.0, 1))

    with pytest.raises(VarianceIncreaseError):
        update_integrated(parent)
