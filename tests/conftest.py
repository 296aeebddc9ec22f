import jax

# The solvers target double precision; their convergence thresholds are below the
# resolution of float32
jax.config.update("jax_enable_x64", True)
