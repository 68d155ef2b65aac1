"""
Exception types for MCReplicability.

Only ``ConfigurationError`` and ``EmptyGroupError`` stop an analysis.
``DegenerateFit`` is raised by curve fitters and recovered per replicate.
"""


class ReplicabilityError(Exception):
    """Base class for all MCReplicability errors."""

    pass


class DegenerateFit(ReplicabilityError):
    """Raised when a curve fitter cannot produce coefficients for a sample."""

    pass


class ConfigurationError(ReplicabilityError, ValueError):
    """Raised for invalid settings or malformed input tables."""

    pass


class EmptyGroupError(ReplicabilityError, ValueError):
    """Raised when a subgroup contains no studies."""

    def __init__(self, group_key: str, label):
        self.group_key = group_key
        self.label = label
        super().__init__(f"Group '{label}' of '{group_key}' contains no studies")


class MismatchedContrastError(ReplicabilityError, ValueError):
    """Raised when two estimate distributions cannot be paired by replicate index."""

    pass


class AnalysisCancelled(ReplicabilityError):
    """Raised when an analysis is cancelled by the user."""

    pass
