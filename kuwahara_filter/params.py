"""Filter parameters and their validation."""

from dataclasses import dataclass
from enum import Enum
from numbers import Integral, Real

from .errors import InvalidParameters

MAX_SHARPNESS = 64.0
# A (2r+1)^2 window keeps n * sum(x^2) below 2**53, so dispersions stay exact in float64.
MAX_RADIUS = 128


class SelectionPolicy(Enum):
    """How the output colour is chosen from the sector statistics."""

    HARD = "hard"
    WEIGHTED = "weighted"

    @classmethod
    def parse(cls, value) -> 'SelectionPolicy':
        """Convert a policy name (case-insensitive) or member into a member.

        Raises:
            InvalidParameters: If the name matches no policy.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(p.value for p in cls)
            raise InvalidParameters("policy", value, f"expected one of: {names}") from None


def _is_int(value) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def _is_real(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class FilterParameters:
    """Configuration of a single Kuwahara filter pass.

    Attributes:
        radius (int): Reach of every sector in pixels, at most
            ``MAX_RADIUS``. The neighbourhood is the square
            ``[-radius, radius]`` around the pixel.
        sector_count (int): Number of angular sectors; must divide 360.
        policy (SelectionPolicy): ``HARD`` picks the least dispersed sector,
            ``WEIGHTED`` blends all sectors by inverse dispersion.
        sharpness (float): Exponent applied to the inverse dispersion in the
            weighted policy. Larger values approach the hard policy.
        epsilon (float): Added to every dispersion before weighting so that
            perfectly uniform sectors do not divide by zero.
    """
    radius: int = 4
    sector_count: int = 4
    policy: SelectionPolicy = SelectionPolicy.HARD
    sharpness: float = 8.0
    epsilon: float = 1e-6

    def validate(self) -> 'FilterParameters':
        """Check every field.

        Returns:
            FilterParameters: Self, so calls can be chained.

        Raises:
            InvalidParameters: On the first field outside its allowed range.
        """
        if not _is_int(self.radius) or self.radius < 1:
            raise InvalidParameters("radius", self.radius, "must be an integer >= 1")
        if self.radius > MAX_RADIUS:
            raise InvalidParameters("radius", self.radius, f"must be <= {MAX_RADIUS}")
        if not _is_int(self.sector_count) or self.sector_count < 2:
            raise InvalidParameters("sector_count", self.sector_count, "must be an integer >= 2")
        if 360 % self.sector_count != 0:
            raise InvalidParameters("sector_count", self.sector_count, "must evenly divide 360 degrees")
        if not isinstance(self.policy, SelectionPolicy):
            raise InvalidParameters("policy", self.policy, "must be a SelectionPolicy")
        if not _is_real(self.sharpness) or not 0.0 < self.sharpness <= MAX_SHARPNESS:
            raise InvalidParameters("sharpness", self.sharpness, f"must be in (0, {MAX_SHARPNESS:g}]")
        if not _is_real(self.epsilon) or not self.epsilon > 0.0:
            raise InvalidParameters("epsilon", self.epsilon, "must be > 0")
        return self
