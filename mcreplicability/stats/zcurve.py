"""Z-curve mixture model for significant p-values.

Converts two-sided p-values to absolute z-scores and fits a mixture of
folded normal components with fixed means (0, 1, ..., 6) and unit SD to the
significant z-scores, truncated to ``[z_crit, z_max]``. Mixture weights are
estimated by EM. From the weights the model derives:

- ERR: mean power of the significant results to be significant again, in
  the same direction, in an exact replication.
- EDR: mean power of all conducted studies before selection for
  significance.

z-scores above ``z_max`` are treated as having power 1 and enter the
estimates as a separate component, as in z-curve 2.0.

Any object with a ``fit(p_values) -> {"ERR": float, "EDR": float}`` method
that raises ``DegenerateFit`` on unusable input can replace ``ZCurveFitter``.
"""

from typing import Dict, Protocol, Sequence

import numpy as np
from scipy.stats import norm

from ..errors import DegenerateFit


class CurveFitter(Protocol):
    """Interface of a replicability curve fitter."""

    def fit(self, p_values: np.ndarray) -> Dict[str, float]: ...


class ZCurveFitter:
    """EM fit of a fixed-mean folded-normal mixture (z-curve 2.0 style).

    Args:
        alpha: Two-sided significance threshold.
        z_max: Upper truncation point of the fitted region.
        means: Fixed component means on the z scale.
        min_significant: Minimum number of significant p-values required;
            fewer raises ``DegenerateFit``.
        max_iter: Maximum number of EM iterations.
        tol: Convergence threshold on the log-likelihood change.
    """

    def __init__(
        self,
        alpha: float = 0.05,
        z_max: float = 6.0,
        means: Sequence[float] = (0, 1, 2, 3, 4, 5, 6),
        min_significant: int = 10,
        max_iter: int = 10000,
        tol: float = 1e-6,
    ):
        self.alpha = alpha
        self.z_max = z_max
        self.means = np.asarray(means, dtype=float)
        self.min_significant = min_significant
        self.max_iter = max_iter
        self.tol = tol

    @property
    def z_crit(self) -> float:
        return float(norm.isf(self.alpha / 2))

    def fit(self, p_values: np.ndarray) -> Dict[str, float]:
        """Fit the mixture and return ``{"ERR": ..., "EDR": ...}``.

        Raises:
            DegenerateFit: Too few significant values, no variance among
                them, or EM failure.
            ValueError: p-values outside [0, 1] or non-finite.
        """
        p = np.asarray(p_values, dtype=float).ravel()
        if not np.all(np.isfinite(p)) or np.any((p < 0) | (p > 1)):
            raise ValueError("p-values must be finite and within [0, 1]")

        z = norm.isf(p / 2)
        significant = p < self.alpha
        n_sig = int(significant.sum())
        if n_sig < self.min_significant:
            raise DegenerateFit(f"{n_sig} significant p-values, at least {self.min_significant} required")

        high = significant & (z > self.z_max)
        z_fit = z[significant & ~high]
        n_high = int(high.sum())

        # Every significant result beyond z_max: power is 1 by construction
        if z_fit.size == 0:
            return {"ERR": 1.0, "EDR": 1.0}
        if z_fit.size > 1 and np.ptp(z_fit) == 0:
            raise DegenerateFit("No variance among significant z-scores")

        weights = self._fit_weights(z_fit)
        return self._coefficients(weights, z_fit.size, n_high)

    def _truncated_mass(self) -> np.ndarray:
        """P(z_crit < |Z| < z_max) for each component."""
        a, b, mu = self.z_crit, self.z_max, self.means
        return (norm.cdf(b - mu) - norm.cdf(a - mu)) + (norm.cdf(-a - mu) - norm.cdf(-b - mu))

    def _fit_weights(self, z_fit: np.ndarray) -> np.ndarray:
        """Estimate mixture weights of the truncated density by EM."""
        mu = self.means
        density = norm.pdf(z_fit[:, None] - mu) + norm.pdf(z_fit[:, None] + mu)
        likelihood = density / self._truncated_mass()

        pi = np.full(mu.size, 1.0 / mu.size)
        previous = -np.inf
        for _ in range(self.max_iter):
            weighted = likelihood * pi
            total = weighted.sum(axis=1)
            if np.any(total <= 0):
                raise DegenerateFit("Zero likelihood for at least one z-score")

            loglik = float(np.sum(np.log(total)))
            pi = (weighted / total[:, None]).mean(axis=0)
            if abs(loglik - previous) < self.tol:
                return pi
            previous = loglik

        raise DegenerateFit(f"EM did not converge in {self.max_iter} iterations")

    def _coefficients(self, pi: np.ndarray, n_fit: int, n_high: int) -> Dict[str, float]:
        """Turn truncated-region weights into ERR and EDR."""
        mu = self.means
        a = self.z_crit
        mass = self._truncated_mass()

        # Weights of all studies before selection and truncation
        theta = pi / mass
        theta = theta / theta.sum()

        power = norm.sf(a - mu) + norm.cdf(-a - mu)
        power_same_sign = norm.sf(a - mu)

        edr_fit = float(np.sum(theta * power))
        err_fit = float(np.sum(theta * power * power_same_sign) / np.sum(theta * power))

        # Expected number of studies behind the fitted region
        n_studies = n_fit / float(np.sum(theta * mass))
        n_sig_fit = n_studies * edr_fit

        edr = (n_sig_fit + n_high) / (n_studies + n_high)
        err = (n_sig_fit * err_fit + n_high) / (n_sig_fit + n_high)

        return {"ERR": float(np.clip(err, 0, 1)), "EDR": float(np.clip(edr, 0, 1))}
