from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

__all__ = ["IntegrationConfig"]

_MAX_QUADRATURE_POINTS = 512


@dataclass
class IntegrationConfig:
    """
    Switches shared by products and integral objects.

    Key behaviors:
    * ``cache_size`` bounds the number of live partial-integral lists per
      product; the least recently used list is sterilized when the bound is hit.
    * ``force_numeric`` makes products decline analytic factorization.
    * ``allow_numeric`` controls whether :class:`~partint.core.integral.Integral`
      may fall back to quadrature when no analytic integral covers all variables.
    """

    cache_size: int = 10
    force_numeric: bool = False
    allow_numeric: bool = True
    quadrature_points: int = 32  # Gauss-Legendre nodes per dimension
    name_prefix: str = "SUBPROD_"

    def normalized(self) -> "IntegrationConfig":
        cache_size = int(self.cache_size)
        if cache_size <= 0:
            raise ValueError("cache_size must be positive")
        points = int(self.quadrature_points)
        if points < 1 or points > _MAX_QUADRATURE_POINTS:
            raise ValueError(
                f"quadrature_points must be within 1..{_MAX_QUADRATURE_POINTS}; "
                f"received {self.quadrature_points}"
            )
        prefix = str(self.name_prefix or "")
        if not prefix:
            raise ValueError("name_prefix must be a non-empty string")
        return IntegrationConfig(
            cache_size=cache_size,
            force_numeric=bool(self.force_numeric),
            allow_numeric=bool(self.allow_numeric),
            quadrature_points=points,
            name_prefix=prefix,
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "IntegrationConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(key) for key in mapping if key not in known)
        if unknown:
            raise ValueError(f"Unknown integration config keys: {', '.join(unknown)}")
        return cls(**dict(mapping)).normalized()
