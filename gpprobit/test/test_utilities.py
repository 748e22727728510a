"""Tests for the utilities module."""
from gpprobit.utilities import (
    TAIL_BOUND, h, norm_z_logpdf, norm_cdf, norm_logcdf, norm_z_pdf_over_cdf,
    norm_z_pdf_over_cdf_plus_z,
    check_labels, check_shapes, check_derivative_target, check_variance,
    LabelDomainError, ShapeMismatchError, UnsupportedDerivativeTargetError)
import pytest
import numpy as np
from scipy.stats import norm


def test_norm_functions():
    z = np.linspace(-6.0, 6.0, 13)
    assert np.allclose(norm_z_logpdf(z), norm.logpdf(z))
    assert np.allclose(norm_cdf(z), norm.cdf(z))
    assert np.allclose(norm_logcdf(z), norm.logcdf(z))


def test_values_of_series_expansion():
    """Test the values of h(x) at typical and extreme values"""
    with np.errstate(divide="ignore", invalid="ignore"):
        assert np.isnan(h(np.float64(0.0)))
    assert h(np.inf) == 0.0
    assert h(-np.inf) == 0.0
    assert np.isclose(h(1.0), -65 / 6)
    assert h(2.0) == h(-2.0)


class TestNormPdfOverCdf:
    """norm_z_pdf_over_cdf tests."""

    def test_moderate_values(self):
        z = np.linspace(-8.0, 8.0, 33)
        expected = norm.pdf(z) / norm.cdf(z)
        assert np.allclose(norm_z_pdf_over_cdf(z), expected, rtol=1e-10)

    def test_scalar(self):
        ratio = norm_z_pdf_over_cdf(0.0)
        assert np.ndim(ratio) == 0
        assert np.isclose(ratio, 2 * norm.pdf(0.0))

    def test_continuous_at_tail_bound(self):
        below = norm_z_pdf_over_cdf(-TAIL_BOUND - 1e-9)
        above = norm_z_pdf_over_cdf(-TAIL_BOUND + 1e-9)
        assert np.isclose(below, above, rtol=1e-9)

    def test_tail(self):
        """The ratio tends to -z + 1 / -z in the lower tail."""
        z = np.array([-1e2, -1e4, -1e8, -1e200])
        with np.errstate(over="raise", divide="raise", invalid="raise"):
            ratio = norm_z_pdf_over_cdf(z)
        assert np.all(np.isfinite(ratio))
        assert np.allclose(ratio, -z - 1 / z, rtol=1e-7)

    def test_upper_tail(self):
        """The ratio tends to the pdf in the upper tail."""
        z = np.array([10.0, 40.0])
        assert np.allclose(norm_z_pdf_over_cdf(z), norm.pdf(z))


class TestNormPdfOverCdfPlusZ:
    """norm_z_pdf_over_cdf_plus_z tests."""

    def test_moderate_values(self):
        z = np.linspace(-8.0, 8.0, 33)
        expected = z + norm.pdf(z) / norm.cdf(z)
        assert np.allclose(norm_z_pdf_over_cdf_plus_z(z), expected, rtol=1e-8)

    def test_continuous_at_tail_bound(self):
        below = norm_z_pdf_over_cdf_plus_z(-TAIL_BOUND - 1e-9)
        above = norm_z_pdf_over_cdf_plus_z(-TAIL_BOUND + 1e-9)
        assert np.isclose(below, above, rtol=1e-6)

    def test_tail(self):
        """The sum tends to -1 / z in the lower tail, where z + ratio computed
        directly cancels to zero."""
        z = np.array([-1e2, -1e4, -1e8, -1e150])
        with np.errstate(over="raise", divide="raise", invalid="raise"):
            total = norm_z_pdf_over_cdf_plus_z(z)
        assert np.all(total > 0.0)
        assert np.allclose(total, -1 / z, rtol=1e-3, atol=0.0)


class TestChecks:
    """Input validation tests."""

    @pytest.mark.parametrize(
        "y", [[1, -1, 1], np.array([1.0, -1.0]), np.array([], dtype=int), 1])
    def test_labels(self, y):
        checked = check_labels(y)
        assert checked.dtype == float
        assert np.array_equal(checked, np.asarray(y, dtype=float))

    @pytest.mark.parametrize(
        "y", [[1, 0], [2], [0.999], [np.inf], ["a"], [None]])
    def test_invalid_labels(self, y):
        with pytest.raises(LabelDomainError) as excinfo:
            check_labels(y)
        assert "{-1, 1}" in str(excinfo.value)

    def test_label_domain_error_is_value_error(self):
        assert issubclass(LabelDomainError, ValueError)

    def test_shapes(self):
        check_shapes(y=np.ones(3), f=[0.0, 1.0, 2.0])
        check_shapes(y=1.0, f=2.0)
        with pytest.raises(ShapeMismatchError) as excinfo:
            check_shapes(y=np.ones(3), f=np.ones((3, 1)))
        assert "y=(3,)" in str(excinfo.value)
        assert "f=(3, 1)" in str(excinfo.value)

    def test_derivative_target(self):
        check_derivative_target("latent")
        with pytest.raises(UnsupportedDerivativeTargetError):
            check_derivative_target("param")

    def test_variance(self):
        assert check_variance(0.0) == 0.0
        assert np.array_equal(check_variance([1, 2]), np.array([1.0, 2.0]))
        with pytest.raises(ValueError):
            check_variance([1.0, -1e-12], "cavity variance")
