from __future__ import annotations


class LowPass:
    """
    Exponential low-pass: y = a*x + (1-a)*y.

    The first sample seeds the state. Used for running stage-time averages.
    """

    def __init__(self, alpha: float = 0.1, x0: float = 0.0):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = float(alpha)
        self.x = x0
        self.last = x0
        self.count = 0

    def apply(self, x: float) -> float:
        self.last = x
        self.count += 1
        if self.count == 1:
            self.x = x
            return x
        self.x = self.alpha * x + (1.0 - self.alpha) * self.x
        return self.x
