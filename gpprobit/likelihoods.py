from abc import ABC, abstractmethod
import enum
import warnings
import lab as B
import numpy as np
from gpprobit.utilities import (
    norm_cdf,
    norm_logcdf,
    norm_z_pdf_over_cdf,
    norm_z_pdf_over_cdf_plus_z,
    check_labels,
    check_shapes,
    check_derivative_target,
    check_variance,
)


class Likelihood(ABC):
    """
    Base class for GP likelihoods.

    This class defines the contract that a GP posterior approximation
    (Laplace approximation, Expectation Propagation, MCMC) calls against, so
    that it can consume a likelihood without knowing its functional form.
    Here, N is the number of training datapoints and N_test is the number
    of testing datapoints.

    All likelihoods must define a repr method.
    All likelihoods must define :meth:`pack` and :meth:`unpack`, which
        move their (trainable) parameters in and out of a flat vector, even
        when the likelihood has no parameters.
    All likelihoods must define :meth:`log_likelihood` and its first three
        derivatives with respect to the latent values,
        :meth:`gradient`, :meth:`hessian_diag` and
        :meth:`third_derivative_diag`. The observations are conditionally
        independent given the latent values, so the higher derivatives are
        returned as the (N, ) diagonal; the off-diagonals are zero.
    All likelihoods must define :meth:`tilted_moments`, the moments of the
        product of an EP cavity distribution and one exact likelihood term.
    All likelihoods must define :meth:`predictive`, the predictive
        distribution of the observations given the latent posterior.
    All likelihoods must define :meth:`record_append` for chain recorders.
    """

    __slots__ = ()

    @abstractmethod
    def __repr__(self):
        """
        Returns a string representation of this class, used to import the class
        from the string.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def pack(self):
        """
        Combine the likelihood parameters into one vector.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def unpack(self, w):
        """
        Set the likelihood parameters from the head of the vector `w`.

        This method should be implemented in every concrete Likelihood.
        :return: The likelihood and the unconsumed part of `w`.
        """

    @abstractmethod
    def log_likelihood(self, y, f, z=None):
        """
        The log likelihood of the observations given the latent values.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def gradient(self, y, f, param="latent", z=None):
        """
        The (N, ) gradient of the log likelihood.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def hessian_diag(self, y, f, param="latent", z=None):
        """
        The (N, ) diagonal of the Hessian of the log likelihood.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def third_derivative_diag(self, y, f, param="latent", z=None):
        """
        The (N, ) diagonal third derivatives of the log likelihood.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def tilted_moments(self, y, index, cavity_variance, cavity_mean, z=None):
        """
        The zeroth, first and second moments of the tilted distribution.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def predictive(self, Ef, Varf, y=None, z=None):
        """
        The predictive mean and variance of the observations, and the
        predictive probability of `y` if it is given.

        This method should be implemented in every concrete Likelihood.
        """

    @abstractmethod
    def record_append(self, record=None, index=None):
        """
        Append the likelihood parameters to a chain record.

        This method should be implemented in every concrete Likelihood.
        """


class ProbitLikelihood(Likelihood):
    r"""
    The probit likelihood for binary classification with class labels
    {-1, 1},

    .. math::
        p(\mathbf{y}|\mathbf{f}) = \prod_{i=1}^{N} \Phi(y_i f_i),

    where :math:`\Phi` is the standard normal cdf and f is the latent value
    vector.

    Inherits the Likelihood ABC.

    The likelihood has no parameters and no state, so one instance may be
    shared between concurrent callers.
    """

    __slots__ = ()

    type = "probit"

    def __repr__(self):
        """
        Returns a string representation of this class, used to import the class
        from the string.
        """
        return "ProbitLikelihood"

    def pack(self):
        """
        Combine the likelihood parameters into one vector. The probit
        likelihood has no parameters.

        :return: An empty (0, ) array.
        """
        return np.zeros(0)

    def unpack(self, w):
        """
        Set the likelihood parameters from the vector `w`. The probit
        likelihood has no parameters, so nothing is consumed.

        :arg w: The parameter vector.
        :return: (self, w)
        """
        return self, w

    def log_likelihood(self, y, f, z=None):
        r"""
        Return the log likelihood,

        .. math::
            \sum_{i=1}^{N} \log \Phi(y_i f_i).

        The log cdf is evaluated directly so that the result stays finite
        where :math:`\Phi(y_i f_i)` underflows.

        :arg y: (N, ) array of class labels in {-1, 1}.
        :arg f: (N, ) array of latent values.
        :arg z: Unused.
        :rtype: float
        """
        y = check_labels(y)
        check_shapes(y=y, f=f)
        return B.sum(norm_logcdf(y * np.asarray(f, dtype=float)))

    def gradient(self, y, f, param="latent", z=None):
        """
        Return the gradient of the log likelihood with respect to `param`.
        At the moment `param` can only be 'latent'.

        :arg y: (N, ) array of class labels in {-1, 1}.
        :arg f: (N, ) array of latent values.
        :arg str param: The derivative target. Default 'latent'.
        :arg z: Unused.
        :returns: (N, ) array, y * phi(f) / Phi(y * f).
        """
        y, f = self._check(y, f, param)
        return y * norm_z_pdf_over_cdf(y * f)

    def hessian_diag(self, y, f, param="latent", z=None):
        """
        Return the diagonal of the Hessian of the log likelihood with respect
        to `param`. At the moment `param` can only be 'latent'. The
        off-diagonals are zero.

        :returns: (N, ) array.
        """
        y, f = self._check(y, f, param)
        yf = y * f
        ratio = norm_z_pdf_over_cdf(yf)
        return -ratio * norm_z_pdf_over_cdf_plus_z(yf)

    def third_derivative_diag(self, y, f, param="latent", z=None):
        """
        Return the diagonal third derivatives of the log likelihood with
        respect to `param`. At the moment `param` can only be 'latent'.

        :returns: (N, ) array.
        """
        y, f = self._check(y, f, param)
        yf = y * f
        ratio = norm_z_pdf_over_cdf(yf)
        ratio_plus_yf = norm_z_pdf_over_cdf_plus_z(yf)
        # 2 y r**3 + 3 f r**2 - r (y - y f**2), factorised in r + yf
        return y * ratio * (ratio_plus_yf * (ratio + ratio_plus_yf) - 1.0)

    def tilted_moments(
        self, y, index, cavity_variance, cavity_mean, z=None, tolerance=1e-10
    ):
        """
        Return the moments of the tilted distribution, the product of the
        cavity distribution N(cavity_mean, cavity_variance) and the exact
        likelihood term of datapoint `index`. For the probit likelihood these
        are available in closed form.

        :arg y: (N, ) array of class labels in {-1, 1}.
        :arg index: The index (or array of indices) of the site.
        :arg cavity_variance: The cavity variance of the site, non-negative.
        :arg cavity_mean: The cavity mean of the site.
        :arg z: Unused.
        :arg float tolerance: The normalising constant below which a warning
            is issued. Default 1e-10.
        :returns: (m_0, m_1, m_2), the normalising constant, mean and
            variance of the tilted distribution.
        """
        y = check_labels(y)
        cavity_variance = check_variance(cavity_variance, "cavity variance")
        cavity_mean = np.asarray(cavity_mean, dtype=float)
        y_i = y[index]
        variance = 1.0 + cavity_variance
        std_dev = np.sqrt(variance)
        z_i = y_i * cavity_mean / std_dev
        m_0 = norm_cdf(z_i)
        if np.any(m_0 < tolerance):
            warnings.warn(
                "m_0 (normalising constant of the tilted distribution) is "
                "less than tolerance={} (got {}), the moments are computed "
                "from the stable log domain ratio norm_pdf / norm_cdf\n"
                "z={}".format(tolerance, m_0, z_i)
            )
        ratio = norm_z_pdf_over_cdf(z_i)
        m_1 = cavity_mean + y_i * cavity_variance * ratio / std_dev
        m_2 = cavity_variance - cavity_variance**2 * ratio / variance * (
            norm_z_pdf_over_cdf_plus_z(z_i))
        return m_0, m_1, m_2

    def predictive(self, Ef, Varf, y=None, z=None):
        """
        Return the predictive mean and variance of the labels, and the
        predictive probability of the labels `y` if they are given.

        :arg Ef: (N_test, ) array, the latent posterior mean.
        :arg Varf: (N_test, ) array, the latent posterior variance.
        :arg y: Optional (N_test, ) array of class labels in {-1, 1}.
        :arg z: Unused.
        :returns: (Ey, Vary) or (Ey, Vary, py) if `y` is given.
        """
        if y is not None:
            y = check_labels(y)
            check_shapes(Ef=Ef, y=y)
        Ef = np.asarray(Ef, dtype=float)
        Varf = check_variance(Varf, "posterior variance")
        check_shapes(Ef=Ef, Varf=Varf)
        posterior_pred_z = Ef / np.sqrt(1.0 + Varf)
        p = norm_cdf(posterior_pred_z)
        q = norm_cdf(-posterior_pred_z)
        Ey = p - q  # 2 * p - 1
        Vary = 4.0 * p * q  # 1 - Ey**2
        if y is None:
            return Ey, Vary
        py = norm_cdf(y * posterior_pred_z)
        return Ey, Vary, py

    def record_append(self, record=None, index=None):
        """
        Append the likelihood parameters to a chain record. The probit
        likelihood has no parameters to record.

        :arg record: The record, or `None` to initialise a new one.
        :arg index: The record index.
        :returns: A new :class:`ProbitLikelihood` record if `record` is
            `None`, otherwise `record`.
        """
        if record is None:
            return type(self)()
        return record

    def _check(self, y, f, param):
        check_derivative_target(param)
        y = check_labels(y)
        check_shapes(y=y, f=f)
        return y, np.asarray(f, dtype=float)


class LikelihoodLoader(enum.Enum):
    """Factory enum to load likelihoods.
    """
    probit = ProbitLikelihood


def load_likelihood(likelihood_string, **kwargs):
    """
    Returns a new instance of the likelihood.

    :arg str likelihood_string: The type of likelihood to be loaded.
    :arg kwargs: The likelihood parameters. For details look at the desired
        likelihood's constructor.
    :returns: A :class:`Likelihood` object.
    :raises ValueError: if the likelihood type is not supported.
    """
    if likelihood_string in LikelihoodLoader.__members__:
        return LikelihoodLoader[likelihood_string].value(**kwargs)
    else:
        raise ValueError(
            "Likelihood not found. (got {}, expected {})".format(
                likelihood_string, list(LikelihoodLoader.__members__)
            )
        )
