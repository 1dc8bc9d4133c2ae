"""Feet/tons conversion for bin fill levels."""

from __future__ import annotations

import math

from .errors import ConfigurationError


class UnitConverter:
    """Converts between feet of grain and tons at a fixed ratio.

    The ratio must be a positive finite number. A zero or negative ratio is
    a configuration error and is rejected here rather than surfacing later
    as infinite or NaN fill levels.
    """

    def __init__(self, tons_per_foot: float) -> None:
        if not math.isfinite(tons_per_foot) or tons_per_foot <= 0:
            raise ConfigurationError(
                f"tons_per_foot must be positive, got {tons_per_foot!r}"
            )
        self._tons_per_foot = float(tons_per_foot)

    @property
    def tons_per_foot(self) -> float:
        """Conversion ratio in tons per foot."""
        return self._tons_per_foot

    def feet_to_tons(self, feet: float) -> float:
        return feet * self._tons_per_foot

    def tons_to_feet(self, tons: float) -> float:
        return tons / self._tons_per_foot
