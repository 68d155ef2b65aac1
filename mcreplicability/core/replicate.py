"""
Single replicate estimation for MCReplicability.

One replicate resolves dependent p-values, optionally bootstraps studies,
fits the curve model and derives ERR, EDR and ARP.
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import pandas as pd

from ..errors import DegenerateFit
from .observations import P_COL
from .resampling import DependencyResolver, bootstrap_studies

METRICS = ("err", "edr", "arp")


@dataclass(frozen=True)
class ReplicateResult:
    """Coefficients estimated in one Monte Carlo replicate."""

    index: int
    err: float
    edr: float
    arp: float

    def get(self, metric: str) -> float:
        return getattr(self, metric.lower())


@dataclass(frozen=True)
class ReplicateFailure:
    """Marker for a replicate whose curve fit failed."""

    index: int
    reason: str


ReplicateOutcome = Union[ReplicateResult, ReplicateFailure]


class ReplicateEstimator:
    """Runs one replicate of the two-stage sampling design.

    Args:
        table: Canonical observation table, shared read-only.
        fitter: Curve fitter with a ``fit(p_values)`` method returning
            ``{"ERR": ..., "EDR": ...}``.
        resolver: Optional pre-built ``DependencyResolver`` for ``table``.
    """

    def __init__(self, table: pd.DataFrame, fitter, resolver: Optional[DependencyResolver] = None):
        self.table = table
        self.fitter = fitter
        self.resolver = resolver if resolver is not None else DependencyResolver(table)

    def estimate(self, rng: np.random.Generator, bootstrap: bool = False, index: int = 0) -> ReplicateOutcome:
        """Estimate one replicate.

        Args:
            rng: Generator private to this replicate.
            bootstrap: Resample the independent sample with replacement
                before fitting.
            index: Logical replicate index, carried into the result.

        Returns:
            ``ReplicateResult`` on success, ``ReplicateFailure`` when the
            fitter rejects the sample.
        """
        sample = self.resolver.resolve(rng)
        if bootstrap:
            sample = bootstrap_studies(sample, rng)

        p_values = sample[P_COL].to_numpy(dtype=float)

        try:
            coefficients = self.fitter.fit(p_values)
        except DegenerateFit as e:
            return ReplicateFailure(index=index, reason=str(e) or "DegenerateFit")
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
            return ReplicateFailure(index=index, reason=f"{type(e).__name__}: {e}")

        err = float(coefficients["ERR"])
        edr = float(coefficients["EDR"])
        if not (np.isfinite(err) and np.isfinite(edr)):
            return ReplicateFailure(index=index, reason="Non-finite coefficients")

        return ReplicateResult(index=index, err=err, edr=edr, arp=(err + edr) / 2)
