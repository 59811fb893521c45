from collections.abc import Callable


def central_difference(fn: Callable[[float], float], x: float, h: float) -> float:
    """Second-order central difference (f(x+h) - f(x-h)) / 2h."""
    return (fn(x + h) - fn(x - h)) / (2.0 * h)
