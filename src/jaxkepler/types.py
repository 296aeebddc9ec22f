__all__ = ["Array", "Scalar"]

from typing import Any

import jax

Array = jax.Array
Scalar = Any
