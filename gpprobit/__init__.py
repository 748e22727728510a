"""
gpprobit.

A probit likelihood for binary GP classification with Laplace and EP
approximations.
"""

__all__ = ["likelihoods", "utilities"]
