"""
Tests for the spectral stage: transforms, diffusion, projection and
finalization.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stablefluids.layout import (
    allocate_spectral_buffers, allocate_velocity_field, padded_widths,
)
from stablefluids.spectral import (
    SpectralTransform, diffuse_project, diffuse_project_reference,
    update_velocity, wavenumbers,
)
from stablefluids.observables import compute_divergence, compute_spectral_divergence


def spectral_pass(ux, uy, dt=0.0, visc=0.0, diffuse=False, project=True):
    """Forward transform, diffuse/project, inverse transform, normalize."""
    dim = ux.shape[0]
    vx, vy = allocate_spectral_buffers(dim)
    vx[:, :dim] = ux
    vy[:, :dim] = uy

    transform = SpectralTransform(dim)
    vx_hat = transform.forward(vx)
    vy_hat = transform.forward(vy)
    diffuse_project(vx_hat, vy_hat, dt=dt, visc=visc, diffuse=diffuse, project=project)
    transform.inverse(vx)
    transform.inverse(vy)

    scale = 1.0 / (dim * dim)
    return vx[:, :dim] * scale, vy[:, :dim] * scale


def plane_wave(dim, kx, ky):
    yy, xx = np.mgrid[:dim, :dim]
    return np.cos(2.0 * np.pi * (kx * xx + ky * yy) / dim)


def random_coefficients(dim, seed=0):
    rng = np.random.default_rng(seed)
    cpadw, _ = padded_widths(dim)
    shape = (dim, cpadw)
    vx = (rng.standard_normal(shape) + 1j * rng.standard_normal(shape)).astype(np.complex64)
    vy = (rng.standard_normal(shape) + 1j * rng.standard_normal(shape)).astype(np.complex64)
    return vx, vy


class TestTransform:
    """In-place real-to-complex transforms."""

    def test_wavenumbers(self):
        kx, ky = wavenumbers(8)
        np.testing.assert_array_equal(kx.ravel(), [0, 1, 2, 3, 4])
        np.testing.assert_array_equal(ky.ravel(), [0, 1, 2, 3, 4, -3, -2, -1])

    def test_round_trip_is_unnormalized(self):
        dim = 32
        rng = np.random.default_rng(3)
        data = rng.standard_normal((dim, dim)).astype(np.float32)

        vx, _ = allocate_spectral_buffers(dim)
        vx[:, :dim] = data
        transform = SpectralTransform(dim)
        coeffs = transform.forward(vx)
        assert coeffs.shape == (dim, dim // 2 + 1)
        assert np.shares_memory(coeffs, vx)

        transform.inverse(vx)
        np.testing.assert_allclose(vx[:, :dim] / (dim * dim), data, atol=1e-5)
        assert np.all(vx[:, dim:] == 0.0)

    def test_zero_field_round_trip(self):
        dim = 16
        vx, _ = allocate_spectral_buffers(dim)
        transform = SpectralTransform(dim)
        coeffs = transform.forward(vx)
        assert np.all(coeffs == 0.0)

        transform.inverse(vx)
        assert np.all(vx[:, :dim] / (dim * dim) == 0.0)
        assert np.all(vx[:, dim:] == 0.0)

    def test_forward_matches_rfft2(self):
        dim = 16
        data = plane_wave(dim, 2, 3).astype(np.float32)
        vx, _ = allocate_spectral_buffers(dim)
        vx[:, :dim] = data
        coeffs = SpectralTransform(dim).forward(vx)
        np.testing.assert_allclose(coeffs, np.fft.rfft2(data), atol=1e-3)

    def test_wrong_buffer_shape(self):
        transform = SpectralTransform(16)
        with pytest.raises(ValueError):
            transform.forward(np.zeros((16, 16), dtype=np.float32))
        with pytest.raises(ValueError):
            transform.inverse(np.zeros((8, 18), dtype=np.float32))


class TestProjection:
    """Helmholtz projection removes the divergent part only."""

    def test_divergence_free_field_unchanged(self):
        dim = 32
        # k = (2, 3), v parallel to (3, -2)
        wave = plane_wave(dim, 2, 3)
        ux, uy = 3.0 * wave, -2.0 * wave
        px, py = spectral_pass(ux, uy)
        np.testing.assert_allclose(px, ux, atol=1e-5)
        np.testing.assert_allclose(py, uy, atol=1e-5)

    def test_shear_field_unchanged(self):
        dim = 32
        yy, xx = np.mgrid[:dim, :dim]
        ux = np.sin(2.0 * np.pi * 3 * yy / dim)
        uy = np.cos(2.0 * np.pi * 5 * xx / dim)
        px, py = spectral_pass(ux, uy)
        np.testing.assert_allclose(px, ux, atol=1e-5)
        np.testing.assert_allclose(py, uy, atol=1e-5)

    def test_gradient_field_removed(self):
        dim = 32
        wave = plane_wave(dim, 2, 3)
        px, py = spectral_pass(2.0 * wave, 3.0 * wave)
        np.testing.assert_allclose(px, 0.0, atol=1e-5)
        np.testing.assert_allclose(py, 0.0, atol=1e-5)

    def test_mixed_field_keeps_solenoidal_part(self):
        dim = 32
        wave = plane_wave(dim, 2, 3)
        other = plane_wave(dim, 1, -4)
        ux = 3.0 * wave + 1.0 * other
        uy = -2.0 * wave - 4.0 * other
        px, py = spectral_pass(ux, uy)
        np.testing.assert_allclose(px, 3.0 * wave, atol=1e-5)
        np.testing.assert_allclose(py, -2.0 * wave, atol=1e-5)

    def test_random_field_becomes_divergence_free(self):
        dim = 32
        rng = np.random.default_rng(11)
        ux = rng.standard_normal((dim, dim)).astype(np.float32)
        uy = rng.standard_normal((dim, dim)).astype(np.float32)

        assert compute_spectral_divergence(ux, uy) > 0.1
        px, py = spectral_pass(ux, uy)
        assert compute_spectral_divergence(px, py) < 1e-4

        before = np.abs(compute_divergence(ux, uy)).sum()
        after = np.abs(compute_divergence(px, py)).sum()
        assert after < before

    def test_mean_flow_preserved(self):
        dim = 16
        ux = np.full((dim, dim), 0.25, dtype=np.float32)
        uy = np.full((dim, dim), -0.5, dtype=np.float32)
        px, py = spectral_pass(ux, uy, dt=1.0, visc=1.0, diffuse=True)
        np.testing.assert_allclose(px, 0.25, atol=1e-6)
        np.testing.assert_allclose(py, -0.5, atol=1e-6)


class TestDiffusion:
    """Implicit spectral viscosity."""

    def test_single_mode_decays_every_step(self):
        dim = 16
        cpadw, _ = padded_widths(dim)
        vx_hat = np.zeros((dim, cpadw), dtype=np.complex64)
        vy_hat = np.zeros((dim, cpadw), dtype=np.complex64)
        vx_hat[4, 0] = 1.0
        vx_hat[0, 0] = 2.0

        previous = abs(vx_hat[4, 0])
        for _ in range(3):
            diffuse_project(vx_hat, vy_hat, dt=1.0, visc=1.0, project=False)
            current = abs(vx_hat[4, 0])
            assert current < previous
            previous = current

        # |k|^2 = 16, three steps of 1 / (1 + 16)
        assert previous == pytest.approx(1.0 / 17.0 ** 3, rel=1e-5)
        assert vx_hat[0, 0] == 2.0

    def test_zero_viscosity_is_identity(self):
        vx_hat, vy_hat = random_coefficients(16)
        ex, ey = vx_hat.copy(), vy_hat.copy()
        diffuse_project(vx_hat, vy_hat, dt=0.5, visc=0.0, project=False)
        np.testing.assert_allclose(vx_hat, ex, rtol=1e-6)
        np.testing.assert_allclose(vy_hat, ey, rtol=1e-6)

    def test_kinetic_energy_decays(self):
        dim = 32
        wave = plane_wave(dim, 2, 3)
        ux, uy = 3.0 * wave, -2.0 * wave
        energy = np.sum(ux ** 2 + uy ** 2)
        for _ in range(5):
            ux, uy = spectral_pass(ux, uy, dt=0.1, visc=0.05, diffuse=True)
            new_energy = np.sum(ux ** 2 + uy ** 2)
            assert new_energy < energy
            energy = new_energy


class TestKernelAgreement:
    """Tiled kernel matches the vectorized reference."""

    @pytest.mark.parametrize("dim", [8, 32, 128])
    def test_matches_reference(self, dim):
        vx_hat, vy_hat = random_coefficients(dim, seed=dim)
        ref_x, ref_y = diffuse_project_reference(vx_hat, vy_hat, dt=0.09, visc=0.05)
        diffuse_project(vx_hat, vy_hat, dt=0.09, visc=0.05)
        np.testing.assert_allclose(vx_hat, ref_x, rtol=1e-5, atol=1e-6)
        np.testing.assert_allclose(vy_hat, ref_y, rtol=1e-5, atol=1e-6)

    def test_wrong_coefficient_shape(self):
        with pytest.raises(ValueError):
            diffuse_project(np.zeros((16, 16), dtype=np.complex64),
                            np.zeros((16, 16), dtype=np.complex64))


class TestFinalization:
    """Normalized write-back into the pitched field."""

    def test_update_velocity_normalizes(self):
        dim = 16
        field = allocate_velocity_field(dim, pitch=48)
        field[:, dim:] = 9.0
        vx, vy = allocate_spectral_buffers(dim)
        vx[:, :dim] = 0.5 * dim * dim
        vy[:, :dim] = -dim * dim

        update_velocity(field, vx, vy)
        np.testing.assert_allclose(field[:, :dim, 0], 0.5)
        np.testing.assert_allclose(field[:, :dim, 1], -1.0)
        assert np.all(field[:, dim:] == 9.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
