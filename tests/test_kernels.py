"""Tests for the Poly6, Spiky and viscosity kernels."""

import numpy as np
import pytest

from fluid_sph.sph import (
    Poly6Kernel,
    SpikyKernel,
    ViscosityKernel,
    poly6_constant,
    spiky_gradient_constant,
    viscosity_laplacian_constant,
)


def test_constants():
    h = 0.5
    assert poly6_constant(h) == pytest.approx(315.0 / (64.0 * np.pi * h**9))
    assert spiky_gradient_constant(h) == pytest.approx(45.0 / (np.pi * h**6))
    assert viscosity_laplacian_constant(h) == pytest.approx(45.0 / (np.pi * h**6))


def test_poly6_normalised():
    """∫ W dV over the support sphere equals one."""
    h = 0.3
    kernel = Poly6Kernel(h)
    r = np.linspace(0.0, h, 20001)
    integrand = 4.0 * np.pi * r**2 * kernel.kernel(r)
    integral = np.sum(0.5 * (integrand[1:] + integrand[:-1]) * np.diff(r))
    assert integral == pytest.approx(1.0, rel=1e-4)


@pytest.mark.parametrize("kernel_cls,method", [
    (Poly6Kernel, "kernel"),
    (SpikyKernel, "gradient_weight"),
    (ViscosityKernel, "laplacian"),
])
def test_kernels_vanish_at_and_beyond_support(kernel_cls, method):
    kernel = kernel_cls(0.2)
    values = getattr(kernel, method)(np.array([0.2, 0.25, 1.0]))
    np.testing.assert_array_equal(values, 0.0)


def test_kernels_positive_and_decreasing_inside():
    h = 0.2
    r = np.linspace(0.0, 0.19, 20)
    for values in (
        Poly6Kernel(h).kernel(r),
        SpikyKernel(h).gradient_weight(r),
        ViscosityKernel(h).laplacian(r),
    ):
        assert np.all(values > 0.0)
        assert np.all(np.diff(values) < 0.0)


def test_self_density():
    kernel = Poly6Kernel(0.04)
    assert kernel.self_density(0.12) == pytest.approx(0.12 * kernel.constant * 0.04**6)
    assert kernel.self_density(1.0) == pytest.approx(kernel.kernel(0.0))


def test_spiky_weight_is_cubic_falloff():
    h = 1.0
    kernel = SpikyKernel(h)
    assert kernel.gradient_weight(0.5) == pytest.approx(kernel.constant * 0.125)


@pytest.mark.parametrize("kernel_cls", [Poly6Kernel, SpikyKernel, ViscosityKernel])
def test_invalid_smoothing_radius(kernel_cls):
    with pytest.raises(ValueError, match="must be positive"):
        kernel_cls(0.0)
