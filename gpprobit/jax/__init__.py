"""JAX implementations of the probit likelihood."""
