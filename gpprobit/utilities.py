"""Utility functions for gpprobit."""
import lab as B
import numpy as np
from scipy.special import ndtr, log_ndtr


over_sqrt_2_pi = 1.0 / B.sqrt(2 * B.pi)
log_over_sqrt_2_pi = B.log(over_sqrt_2_pi)

# Below -TAIL_BOUND the normal cdf underflows in double precision and the
# ratio norm_pdf / norm_cdf is taken from its series expansion instead.
TAIL_BOUND = 38.0


def norm_z_logpdf(x):
    return log_over_sqrt_2_pi - x**2 / 2.0


def norm_cdf(x):
    return ndtr(x)


def norm_logcdf(x):
    return log_ndtr(x)


def h(x):
    """
    Return the polynomial correction in the lower tail expansion of the
    normal log cdf, log Phi(x) = log phi(x) - log(-x) + h(x) + O(x**-8).
    """
    return -1 * x**-2 + 5 / 2 * x**-4 - 37 / 3 * x**-6


def norm_z_pdf_over_cdf(z, tail_bound=TAIL_BOUND):
    """
    Return the ratio of the standard normal pdf and cdf, phi(z) / Phi(z),
    in a numerically stable manner.

    The ratio is computed in the log domain, exp(log phi(z) - log Phi(z)),
    which stays finite where Phi(z) underflows. Far in the lower tail,
    z < -tail_bound, the series expansion of the log survival function
    gives phi(z) / Phi(z) = -z exp(-h(z)). Each branch is only evaluated at
    safe values so that no spurious overflow or division by zero occurs.

    :arg z: The standard normal z-scores.
    :type z: :class:`numpy.ndarray` or float
    :arg float tail_bound: The magnitude of z beyond which the series
        expansion is used. Default `TAIL_BOUND`.
    :returns: The ratio phi(z) / Phi(z), same shape as z.
    :rtype: :class:`numpy.ndarray`
    """
    z = np.asarray(z, dtype=float)
    tail = z < -tail_bound
    # Placeholder values, the results at these points are discarded
    _z = np.where(tail, 0.0, z)
    _z_tail = np.where(tail, z, -tail_bound)
    ratio = np.exp(norm_z_logpdf(_z) - norm_logcdf(_z))
    return np.where(tail, -_z_tail * np.exp(-h(_z_tail)), ratio)[()]


def norm_z_pdf_over_cdf_plus_z(z, tail_bound=TAIL_BOUND):
    """
    Return z + phi(z) / Phi(z) in a numerically stable manner.

    In the lower tail phi(z) / Phi(z) ~ -z, so the plain sum cancels and
    loses all precision for large |z|. Below -tail_bound the sum is taken
    from the series expansion instead, z + phi(z) / Phi(z)
    = -z expm1(-h(z)), which tends to -1 / z.

    :arg z: The standard normal z-scores.
    :type z: :class:`numpy.ndarray` or float
    :arg float tail_bound: The magnitude of z beyond which the series
        expansion is used. Default `TAIL_BOUND`.
    :returns: z + phi(z) / Phi(z), same shape as z.
    :rtype: :class:`numpy.ndarray`
    """
    z = np.asarray(z, dtype=float)
    tail = z < -tail_bound
    _z = np.where(tail, 0.0, z)
    _z_tail = np.where(tail, z, -tail_bound)
    total = _z + norm_z_pdf_over_cdf(_z, tail_bound)
    return np.where(tail, -_z_tail * np.expm1(-h(_z_tail)), total)[()]


def check_labels(y):
    """
    Check that the class labels are compatible with the probit likelihood.

    :arg y: (N, ) array of class labels.
    :type y: :class:`numpy.ndarray` or array like.
    :returns: The labels as a float array.
    :rtype: :class:`numpy.ndarray`
    :raises LabelDomainError: if any label is not -1 or 1.
    """
    y = np.asarray(y)
    if y.dtype.kind not in "biuf" or not np.all((y == 1) | (y == -1)):
        raise LabelDomainError(y)
    return y.astype(float)


def check_shapes(**arrays):
    """
    Check that the arrays, given by name, share the same shape.

    No broadcasting takes place between aligned inputs.

    :raises ShapeMismatchError: if the shapes differ.
    """
    shapes = {name: np.shape(array) for name, array in arrays.items()}
    if len(set(shapes.values())) > 1:
        raise ShapeMismatchError(shapes)


def check_derivative_target(param):
    if param != "latent":
        raise UnsupportedDerivativeTargetError(param)


def check_variance(variance, name="variance"):
    variance = np.asarray(variance, dtype=float)
    if np.any(variance < 0):
        raise ValueError(
            "The {} must be non-negative (got {})".format(name, variance))
    return variance


class LabelDomainError(ValueError):
    """
    A class label other than -1 or 1 was passed to the probit likelihood.
    """

    def __init__(self, y):
        """
        Construct the exception.

        :arg y: The label array.
        :type y: :class:`numpy.ndarray` or list

        :rtype: :class:`LabelDomainError`
        """
        message = (
            "The class labels have to be {-1, 1}, "
            f"{y} was given."
        )

        super().__init__(message)


class UnsupportedDerivativeTargetError(ValueError):
    """A derivative was requested with respect to something other than the
    latent values."""

    def __init__(self, param):
        """
        Construct the exception.

        :arg param: The requested derivative target.
        :rtype: :class:`UnsupportedDerivativeTargetError`
        """
        message = (
            f"Cannot differentiate with respect to {param!r}, "
            "the only supported target is 'latent'"
        )

        super().__init__(message)


class ShapeMismatchError(ValueError):
    """Inputs that are evaluated elementwise do not share a shape."""

    def __init__(self, shapes):
        """
        Construct the exception.

        :arg dict shapes: The shapes of the inputs, keyed by argument name.
        :rtype: :class:`ShapeMismatchError`
        """
        message = "The inputs must have the same shape (got {})".format(
            ", ".join(f"{name}={shape}" for name, shape in shapes.items()))

        super().__init__(message)
