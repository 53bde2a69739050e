"""
Tests for force injection.

Forces must be local (cells farther than the radius are bit-for-bit
unchanged), smooth, and must never index outside the grid.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stablefluids.layout import allocate_velocity_field, logical_view
from stablefluids.forces import (
    add_force, clamp_force, force_footprint, force_weight, impulse_from_drag,
)


@pytest.fixture
def random_field():
    """Pitched field with random logical values and padding sentinels."""
    dim = 32
    rng = np.random.default_rng(1234)
    field = allocate_velocity_field(dim, pitch=48)
    field[:, dim:] = 7.0
    logical_view(field, dim)[:] = rng.standard_normal((dim, dim, 2)).astype(np.float32)
    return field


def grid_distance(dim, cx, cy):
    yy, xx = np.mgrid[:dim, :dim]
    return np.sqrt((xx - cx) ** 2 + (yy - cy) ** 2)


class TestForceLocality:
    """Only the disc of the force radius is modified."""

    @pytest.mark.parametrize("cx,cy,r", [
        (16, 16, 4), (10, 20, 3), (0, 0, 4), (31, 5, 6), (2, 30, 1),
    ])
    def test_cells_outside_radius_unchanged(self, random_field, cx, cy, r):
        dim = 32
        before = random_field.copy()
        add_force(random_field, cx, cy, 3.0, -2.0, radius=r, dt=0.1, dim=dim)

        outside = grid_distance(dim, cx, cy) > r
        after_bits = logical_view(random_field, dim).view(np.uint32)
        before_bits = logical_view(before, dim).view(np.uint32)
        np.testing.assert_array_equal(after_bits[outside], before_bits[outside])

        # Row padding is never touched
        np.testing.assert_array_equal(random_field[:, dim:], before[:, dim:])

    def test_cells_inside_radius_changed(self, random_field):
        dim = 32
        before = random_field.copy()
        add_force(random_field, 16, 16, 3.0, -2.0, radius=4, dt=0.1, dim=dim)

        changed = np.any(random_field[:, :dim] != before[:, :dim], axis=-1)
        np.testing.assert_array_equal(changed, force_footprint(dim, 16, 16, 4))

    def test_center_outside_domain(self, random_field):
        before = random_field.copy()
        add_force(random_field, -20, -20, 5.0, 5.0, radius=4, dt=0.1)
        add_force(random_field, 100, 16, 5.0, 5.0, radius=4, dt=0.1)
        np.testing.assert_array_equal(random_field, before)

    def test_no_wrap_at_corner(self):
        dim = 16
        field = allocate_velocity_field(dim)
        add_force(field, 0, 0, 1.0, 1.0, radius=4, dt=1.0, dim=dim)
        view = logical_view(field, dim)
        assert np.all(view[dim - 4:, :] == 0.0)
        assert np.all(view[:, dim - 4:] == 0.0)
        assert view[0, 0, 0] == pytest.approx(1.0)

    def test_zero_radius_touches_center_only(self):
        dim = 16
        field = allocate_velocity_field(dim)
        add_force(field, 5, 7, 2.0, 4.0, radius=0, dt=0.5, dim=dim)
        view = logical_view(field, dim)
        assert view[7, 5, 0] == pytest.approx(1.0)
        assert view[7, 5, 1] == pytest.approx(2.0)
        assert np.count_nonzero(view) == 2


class TestForceFalloff:
    """Weights are smooth and compactly supported."""

    def test_weight_profile(self):
        assert force_weight(0, 4) == 1.0
        assert force_weight(16, 4) == 0.0
        assert force_weight(20, 4) == 0.0
        assert force_weight(4, 4) == pytest.approx((1.0 - 4.0 / 16.0) ** 2)

    def test_weight_decreases_with_distance(self):
        weights = [force_weight(d2, 6) for d2 in range(0, 37)]
        assert all(a >= b for a, b in zip(weights, weights[1:]))
        assert weights[-1] == 0.0

    def test_impulse_scales_with_dt(self):
        dim = 32
        f1 = allocate_velocity_field(dim)
        f2 = allocate_velocity_field(dim)
        add_force(f1, 16, 16, 1.0, 0.0, radius=4, dt=0.1, dim=dim)
        add_force(f2, 16, 16, 1.0, 0.0, radius=4, dt=0.2, dim=dim)
        np.testing.assert_allclose(f2, 2.0 * f1, rtol=1e-6)
        assert f1[16, 16, 0] == pytest.approx(0.1)
        assert f1[16, 16, 1] == 0.0

    def test_symmetric_profile(self):
        dim = 32
        field = allocate_velocity_field(dim)
        add_force(field, 16, 16, 1.0, 0.0, radius=5, dt=1.0, dim=dim)
        vx = logical_view(field, dim)[..., 0]
        np.testing.assert_array_equal(vx[16, 11:22], vx[16, 11:22][::-1])
        np.testing.assert_array_equal(vx[11:22, 16], vx[16, 11:22])


class TestForceValidation:
    """Degenerate forces are rejected or clamped at injection time."""

    @pytest.mark.parametrize("fx,fy", [
        (float("nan"), 0.0), (0.0, float("inf")), (-float("inf"), 1.0),
    ])
    def test_non_finite_rejected(self, fx, fy):
        field = allocate_velocity_field(16)
        with pytest.raises(ValueError):
            add_force(field, 8, 8, fx, fy, radius=2)
        assert np.all(field == 0.0)

    def test_large_force_clamped(self):
        with pytest.warns(RuntimeWarning):
            fx, fy = clamp_force(3.0e6, 4.0e6, max_force=100.0)
        assert np.hypot(fx, fy) == pytest.approx(100.0)
        assert fx / fy == pytest.approx(0.75)

    def test_small_force_untouched(self):
        assert clamp_force(1.5, -2.5, max_force=100.0) == (1.5, -2.5)

    def test_negative_radius(self):
        field = allocate_velocity_field(16)
        with pytest.raises(ValueError):
            add_force(field, 8, 8, 1.0, 1.0, radius=-1)

    @pytest.mark.parametrize("max_force", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_max_force(self, max_force):
        with pytest.raises(ValueError):
            clamp_force(3.0, 4.0, max_force=max_force)

        field = allocate_velocity_field(16)
        with pytest.raises(ValueError):
            add_force(field, 8, 8, 3.0, 4.0, radius=2, max_force=max_force)
        assert np.all(field == 0.0)


class TestDragConversion:
    """Mouse drags map to force events."""

    def test_impulse_from_drag(self):
        cx, cy, fx, fy = impulse_from_drag(0.5, 0.25, 0.01, -0.02, 512, force_scale=100.0)
        assert (cx, cy) == (256, 128)
        assert fx == pytest.approx(1.0)
        assert fy == pytest.approx(-2.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
