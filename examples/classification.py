"""Binary GP classification with the probit likelihood via approximate
inference."""

from gpprobit.likelihoods import load_likelihood
import numpy as np
import lab as B
from scipy.linalg import cholesky, solve_triangular
from mlkernels import Kernel, EQ
import matplotlib.pyplot as plt
import argparse
import cProfile
from io import StringIO
from pstats import Stats, SortKey
import warnings

# For plotting
BG_ALPHA = 1.0
FG_ALPHA = 0.3


def generate_data(rng, N_train, N_test):
    """Draw labels in {-1, 1} from the probit likelihood of a smooth latent
    function."""
    X = rng.uniform(-1.0, 1.0, size=(N_train, 1))
    X_test = np.linspace(-1.5, 1.5, N_test)[:, None]
    f_true = np.sin(3.0 * X[:, 0])
    g = f_true + rng.normal(size=N_train)
    y = np.where(g > 0.0, 1, -1)
    return X, y, X_test


def laplace(likelihood, K, y, tolerance=1e-6, max_iterations=100):
    """
    Find the mode of the posterior over the latent values by Newton
    iteration, Rasmussen & Williams 2006 Algorithm 3.1.

    :returns: The posterior mode, the gradient of the log likelihood at the
        mode, W^1/2 and the Cholesky factor of I + W^1/2 K W^1/2.
    """
    N = np.shape(y)[0]
    f = np.zeros(N)
    objective_old = -np.inf
    for iteration in range(max_iterations):
        W = -likelihood.hessian_diag(y, f)
        sqrt_W = np.sqrt(W)
        L = cholesky(
            np.eye(N) + sqrt_W[:, None] * K * sqrt_W[None, :], lower=True)
        b = W * f + likelihood.gradient(y, f)
        c = solve_triangular(L, sqrt_W * (K @ b), lower=True)
        a = b - sqrt_W * solve_triangular(L.T, c, lower=False)
        f = K @ a
        objective = -0.5 * a @ f + likelihood.log_likelihood(y, f)
        if np.abs(objective - objective_old) < tolerance:
            break
        objective_old = objective
    else:
        warnings.warn(
            "Laplace mode not converged after {} iterations".format(
                max_iterations))
    W = -likelihood.hessian_diag(y, f)
    sqrt_W = np.sqrt(W)
    L = cholesky(np.eye(N) + sqrt_W[:, None] * K * sqrt_W[None, :], lower=True)
    return f, likelihood.gradient(y, f), sqrt_W, L


def predict_laplace(Kfs, Kss, grad_log_likelihood, sqrt_W, L):
    posterior_mean = Kfs.T @ grad_log_likelihood
    v = solve_triangular(L, sqrt_W[:, None] * Kfs, lower=True)
    posterior_variance = Kss - np.einsum("ij, ij -> j", v, v)
    return posterior_mean, posterior_variance


def expectation_propagation(likelihood, K, y, tolerance=1e-6, max_sweeps=50):
    """
    Approximate the posterior over the latent values by sequential EP,
    Rasmussen & Williams 2006 Algorithm 3.5.

    :returns: The site natural parameters (nu, tau).
    """
    N = np.shape(y)[0]
    nu_EP = np.zeros(N)
    precision_EP = np.zeros(N)
    posterior_cov = K.copy()
    posterior_mean = np.zeros(N)
    for sweep in range(max_sweeps):
        error = 0.0
        for index in range(N):
            cavity_precision = 1.0 / posterior_cov[index, index] - precision_EP[index]
            cavity_nu = posterior_mean[index] / posterior_cov[index, index] - nu_EP[index]
            _, m_1, m_2 = likelihood.tilted_moments(
                y, index, 1.0 / cavity_precision, cavity_nu / cavity_precision)
            diff = 1.0 / m_2 - cavity_precision - precision_EP[index]
            precision_EP[index] += diff
            nu_EP_n = m_1 / m_2 - cavity_nu
            error += diff**2 + (nu_EP_n - nu_EP[index])**2
            nu_EP[index] = nu_EP_n
            s = posterior_cov[:, index].copy()
            posterior_cov -= diff / (1.0 + diff * s[index]) * np.outer(s, s)
            posterior_mean = posterior_cov @ nu_EP
        # Recompute the posterior to avoid loss of precision
        sqrt_precision_EP = np.sqrt(precision_EP)
        L = cholesky(
            np.eye(N) + sqrt_precision_EP[:, None] * K * sqrt_precision_EP[None, :],
            lower=True)
        V = solve_triangular(L, sqrt_precision_EP[:, None] * K, lower=True)
        posterior_cov = K - V.T @ V
        posterior_mean = posterior_cov @ nu_EP
        if error < tolerance:
            break
    else:
        warnings.warn(
            "EP not converged after {} sweeps".format(max_sweeps))
    return nu_EP, precision_EP


def predict_EP(K, Kfs, Kss, nu_EP, precision_EP):
    N = np.shape(nu_EP)[0]
    sqrt_precision_EP = np.sqrt(precision_EP)
    L = cholesky(
        np.eye(N) + sqrt_precision_EP[:, None] * K * sqrt_precision_EP[None, :],
        lower=True)
    c = solve_triangular(L, sqrt_precision_EP * (K @ nu_EP), lower=True)
    z = sqrt_precision_EP * solve_triangular(L.T, c, lower=False)
    posterior_mean = Kfs.T @ (nu_EP - z)
    v = solve_triangular(L, sqrt_precision_EP[:, None] * Kfs, lower=True)
    posterior_variance = Kss - np.einsum("ij, ij -> j", v, v)
    return posterior_mean, posterior_variance


def plot(X_test, Ey, Vary, X_train, y_train, fname="plot"):
    fig, ax = plt.subplots(1, 1)
    fig.patch.set_facecolor("white")
    fig.patch.set_alpha(BG_ALPHA)
    ax.plot(X_test[:, 0], Ey, color="blue", label=r"$E[y|\mathcal{D}]$")
    ax.fill_between(
        X_test[:, 0], Ey - np.sqrt(Vary), Ey + np.sqrt(Vary),
        color="blue", alpha=FG_ALPHA)
    ax.scatter(X_train[:, 0], y_train, color="k", s=4, label="Observations")
    ax.set_xlabel(r"$x$", fontsize=10)
    ax.set_ylim(-1.5, 1.5)
    ax.legend()
    plt.tight_layout()
    fig.savefig("{}_predictive.png".format(fname))
    plt.close()


def main():
    """Make an approximation to the posterior and report predictions."""
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--approximation", choices=["LA", "EP"], default="LA")
    parser.add_argument("--N", type=int, default=50)
    parser.add_argument("--lengthscale", type=float, default=0.5)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--plot", action="store_const", const=True)
    # The --profile argument generates profiling information for the example
    parser.add_argument("--profile", action="store_const", const=True)
    args = parser.parse_args()
    if args.profile:
        profile = cProfile.Profile()
        profile.enable()

    rng = np.random.default_rng(args.seed)
    X, y, X_test = generate_data(rng, N_train=args.N, N_test=200)

    kernel = EQ().stretch(args.lengthscale)
    if not isinstance(kernel, Kernel):
        raise TypeError("{} is not an instance of mlkernels.Kernel".format(kernel))
    K = B.dense(kernel(X)) + 1e-6 * np.eye(args.N)
    Kfs = B.dense(kernel(X, X_test))
    Kss = B.flatten(B.dense(kernel.elwise(X_test, X_test)))

    likelihood = load_likelihood("probit")
    warnings.warn("Approximating the posterior using {}.".format(args.approximation))
    if args.approximation == "LA":
        _, grad_log_likelihood, sqrt_W, L = laplace(likelihood, K, y)
        mean, variance = predict_laplace(Kfs, Kss, grad_log_likelihood, sqrt_W, L)
    else:
        nu_EP, precision_EP = expectation_propagation(likelihood, K, y)
        mean, variance = predict_EP(K, Kfs, Kss, nu_EP, precision_EP)
    warnings.warn("Done approximating the posterior.")

    Ey, Vary = likelihood.predictive(mean, np.maximum(variance, 0.0))
    y_test = np.where(np.sin(3.0 * X_test[:, 0]) > 0.0, 1, -1)
    _, _, py = likelihood.predictive(mean, np.maximum(variance, 0.0), y=y_test)
    print("\nEvaluation of model:")
    print("mean log predictive probability={}".format(np.mean(np.log(py))))
    print("error rate={}".format(np.mean(np.sign(Ey) != y_test)))

    if args.plot:
        plot(X_test, Ey, Vary, X, y, fname=args.approximation)

    if args.profile:
        profile.disable()
        s = StringIO()
        stats = Stats(profile, stream=s).sort_stats(SortKey.CUMULATIVE)
        stats.print_stats(0.05)
        print(s.getvalue())


if __name__ == "__main__":
    main()
