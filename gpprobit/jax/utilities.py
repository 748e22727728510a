"""Utility functions for gpprobit, written in JAX.

Per-datum versions of the probit log likelihood and its derivatives, with the
``(f, y, likelihood_parameters)`` signature that is `vmap`-ed over data by a
JAX approximator. The probit likelihood has no parameters, so
``likelihood_parameters`` is ignored (an empty tuple by convention).
"""
import lab.jax as B
import jax.numpy as jnp
from jax.scipy.special import ndtr, log_ndtr


over_sqrt_2_pi = 1.0 / B.sqrt(2 * B.pi)
log_over_sqrt_2_pi = B.log(over_sqrt_2_pi)


BOUNDS = {"single": 12.0, "double": 38.0}


def norm_z_logpdf(x):
    return log_over_sqrt_2_pi - x**2 / 2.0


def norm_cdf(x):
    return ndtr(x)


def h(x):
    """
    Return the polynomial correction in the lower tail expansion of the
    normal log cdf, log Phi(x) = log phi(x) - log(-x) + h(x) + O(x**-8).
    """
    return -1 * x**-2 + 5 / 2 * x**-4 - 37 / 3 * x**-6


def norm_z_pdf_over_cdf(z, tail_bound=BOUNDS["double"]):
    """Ratio of the standard normal pdf and cdf.

    Nans are tracked through gradients. This function ensures that neither
    branch is evaluated at a possible nan value."""
    tail = z < -tail_bound
    # Placeholder values, the results at these points are discarded
    _z = jnp.where(tail, 0.0, z)
    _z_tail = jnp.where(tail, z, -tail_bound)
    return jnp.where(
        tail,
        -_z_tail * jnp.exp(-h(_z_tail)),
        jnp.exp(norm_z_logpdf(_z) - log_ndtr(_z)),
    )


def norm_z_pdf_over_cdf_plus_z(z, tail_bound=BOUNDS["double"]):
    """z + ratio of the standard normal pdf and cdf, without cancellation
    in the lower tail, where it tends to -1 / z."""
    tail = z < -tail_bound
    _z = jnp.where(tail, 0.0, z)
    _z_tail = jnp.where(tail, z, -tail_bound)
    return jnp.where(
        tail,
        -_z_tail * jnp.expm1(-h(_z_tail)),
        _z + norm_z_pdf_over_cdf(_z, tail_bound),
    )


def log_probit_likelihood(f, y, likelihood_parameters=()):
    return log_ndtr(y * f)


def grad_log_probit_likelihood(
    f, y, likelihood_parameters=(), single_precision=True
):
    tail_bound = BOUNDS["single" if single_precision else "double"]
    return y * norm_z_pdf_over_cdf(y * f, tail_bound)


def hessian_log_probit_likelihood(
    f, y, likelihood_parameters=(), single_precision=True
):
    tail_bound = BOUNDS["single" if single_precision else "double"]
    yf = y * f
    ratio = norm_z_pdf_over_cdf(yf, tail_bound)
    return -ratio * norm_z_pdf_over_cdf_plus_z(yf, tail_bound)


def probit_predictive_distributions(
    likelihood_parameters, posterior_mean, posterior_variance
):
    """
    Return predictive distributions for the probit likelihood.

    :arg likelihood_parameters: Unused.
    :arg posterior_mean: (N_test, ) latent posterior mean.
    :arg posterior_variance: (N_test, ) latent posterior variance.
    :returns: (N_test, 2) array of the predictive probabilities of the
        class labels -1 and 1.
    """
    posterior_pred_z = posterior_mean / jnp.sqrt(1.0 + posterior_variance)
    return jnp.stack(
        [norm_cdf(-posterior_pred_z), norm_cdf(posterior_pred_z)], axis=-1
    )
