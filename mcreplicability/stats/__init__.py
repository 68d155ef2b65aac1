"""Curve fitting and effect-size conversion modules."""

from . import conversions as conversions
from . import zcurve as zcurve
