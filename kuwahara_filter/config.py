"""Shell configuration and logging setup.

:class:`Config` groups the defaults the interactive shell and ``main.py`` use.
The filtering engine never reads it; callers convert it into
:class:`~kuwahara_filter.params.FilterParameters` with :meth:`Config.to_parameters`.
"""

import logging
from dataclasses import dataclass, fields
from typing import Optional

from .params import FilterParameters, SelectionPolicy

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


@dataclass
class Config:
    """Tunable settings for a filtering session.

    Instantiate without arguments for the defaults, or override single
    fields (``Config(radius=6)``).
    """

    # ------------------------------------------------------------------
    # Filter parameters.
    # ------------------------------------------------------------------
    radius: int = 4
    sector_count: int = 4
    policy: str = "hard"
    sharpness: float = 8.0

    # ------------------------------------------------------------------
    # Engine scheduling. None lets the engine decide.
    # ------------------------------------------------------------------
    max_workers: Optional[int] = None
    rows_per_partition: Optional[int] = None

    # ------------------------------------------------------------------
    # Shell behaviour.
    # ------------------------------------------------------------------
    resize_factor: float = 1.0  # >1 shrinks the image before filtering
    log_level: str = "INFO"

    def to_parameters(self) -> FilterParameters:
        """Build validated filter parameters from this configuration.

        Raises:
            InvalidParameters: If any filter setting is out of range.
        """
        return FilterParameters(
            radius=self.radius,
            sector_count=self.sector_count,
            policy=SelectionPolicy.parse(self.policy),
            sharpness=self.sharpness,
        ).validate()

    def engine_options(self) -> dict:
        """Keyword arguments for :func:`~kuwahara_filter.engine.apply_kuwahara`."""
        return {"max_workers": self.max_workers, "rows_per_partition": self.rows_per_partition}

    @classmethod
    def from_namespace(cls, namespace) -> 'Config':
        """Create a Config from an ``argparse.Namespace``.

        Attributes that are missing or ``None`` keep their defaults.
        """
        values = {}
        for f in fields(cls):
            value = getattr(namespace, f.name, None)
            if value is not None:
                values[f.name] = value
        return cls(**values)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


__all__ = ["Config", "setup_logging"]
