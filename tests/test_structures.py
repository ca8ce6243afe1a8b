import numpy as np
import pytest

from bsp_volume.core.structures import Region, Cell


def test_region_volume_and_dimensions():
    region = Region.from_bounds([0.0, -1.0, 2.0], [2.0, 1.0, 2.5])
    assert region.dim == 3
    assert region.volume() == pytest.approx(2.0 * 2.0 * 0.5)
    assert np.allclose(region.dimensions(), [2.0, 2.0, 0.5])


def test_region_bisect_halves_volume_along_axis():
    region = Region.from_bounds([0.0, 0.0], [4.0, 2.0])
    a, b = region.bisect(1)

    assert a.volume() == pytest.approx(region.volume() / 2)
    assert b.volume() == pytest.approx(region.volume() / 2)
    assert np.allclose(a.lower, [0.0, 0.0]) and np.allclose(a.upper, [4.0, 1.0])
    assert np.allclose(b.lower, [0.0, 1.0]) and np.allclose(b.upper, [4.0, 2.0])
    # Родитель не меняется
    assert np.allclose(region.upper, [4.0, 2.0])


def test_region_rejects_mismatched_lengths():
    with pytest.raises(ValueError, match="mismatch"):
        Region.from_bounds([0.0, 0.0], [1.0])


def test_region_rejects_empty_bounds():
    with pytest.raises(ValueError):
        Region.from_bounds([], [])


def test_region_rejects_reversed_bounds():
    with pytest.raises(ValueError, match="Reversed"):
        Region.from_bounds([0.0, 1.0], [1.0, 0.0])


def test_region_degenerate_axis():
    assert Region.from_bounds([0.0, 1.0], [1.0, 1.0]).is_degenerate()
    assert not Region.from_bounds([0.0, 0.0], [1.0, 1.0]).is_degenerate()


def _leaf(lower, upper, var, level):
    region = Region.from_bounds(lower, upper)
    return Cell(region, samples=10, hits=5, est=0.5, var=var,
                iest=0.5, ivar=var, level=level)


def test_cell_tree_stats():
    root = _leaf([0.0], [1.0], 0.04, 0)
    a = _leaf([0.0], [0.5], 0.01, 1)
    b = _leaf([0.5], [1.0], 0.02, 1)
    b1 = _leaf([0.5], [0.75], 0.005, 2)
    b2 = _leaf([0.75], [1.0], 0.003, 2)
    b.children = (b1, b2)
    root.children = (a, b)

    assert not root.is_leaf()
    assert root.depth() == 2
    assert root.node_count() == 5
    assert root.leaf_count() == 3
    assert [leaf.level for leaf in root.iter_leaves()] == [1, 2, 2]
    assert root.total_samples() == 50

    stats = root.get_stats()
    assert stats['leaf_count'] == 3
    assert stats['max_leaf_var'] == pytest.approx(0.01)


def test_cell_ci95():
    cell = _leaf([0.0], [1.0], 0.04, 0)
    assert cell.ci95() == pytest.approx(0.2 * 1.96)


def test_cell_rejects_negative_level():
    with pytest.raises(ValueError):
        _leaf([0.0], [1.0], 0.0, -1)
