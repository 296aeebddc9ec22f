__all__ = ["kepler_ellipse", "kepler_hyperbola"]

from jaxkepler.core.ellipse import kepler_ellipse as kepler_ellipse
from jaxkepler.core.hyperbola import kepler_hyperbola as kepler_hyperbola
