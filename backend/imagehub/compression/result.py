"""Request, search-state and result dataclasses for size-targeted compression."""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import InvalidRequestError


@dataclass(frozen=True)
class CompressionRequest:
    """One call's worth of input for the compression engine.

    Attributes:
        source_bytes: Raw encoded image data
        target_ratio: Desired output size as a fraction of the source size
        output_format: Output format name (jpeg, png, webp, avif)
        strip_metadata: Bake orientation into pixels and drop EXIF/ICC data
        source_size_bytes: Length of source_bytes (computed when omitted)
    """
    source_bytes: bytes
    target_ratio: float
    output_format: str
    strip_metadata: bool = True
    source_size_bytes: Optional[int] = None

    def __post_init__(self):
        if self.source_size_bytes is None:
            object.__setattr__(self, 'source_size_bytes', len(self.source_bytes))
        ratio = self.target_ratio
        if isinstance(ratio, bool) or not isinstance(ratio, (int, float)):
            raise InvalidRequestError(f"target_ratio must be a number, got {ratio!r}")
        if not math.isfinite(ratio) or ratio <= 0:
            raise InvalidRequestError(f"target_ratio must be positive, got {ratio}")

    @property
    def target_size_bytes(self) -> int:
        return int(math.floor(self.source_size_bytes * self.target_ratio))


@dataclass(frozen=True)
class EncodeAttempt:
    """A single successful trial encode."""
    quality: int
    output_bytes: bytes
    target_size_bytes: int

    @property
    def output_size_bytes(self) -> int:
        return len(self.output_bytes)

    @property
    def distance_from_target(self) -> int:
        return abs(self.output_size_bytes - self.target_size_bytes)


@dataclass(frozen=True)
class TrialRecord:
    """Payload-free summary of one trial, kept for diagnostics."""
    quality: int
    output_size_bytes: Optional[int]
    distance_from_target: Optional[int]
    failed: bool = False


@dataclass
class SearchState:
    """Mutable bisection state scoped to one ``compress`` call."""
    quality_low: int = 1
    quality_high: int = 100
    attempts_used: int = 0
    best_result: Optional[EncodeAttempt] = None
    trials: List[TrialRecord] = field(default_factory=list)

    def has_budget(self, max_attempts: int) -> bool:
        return self.attempts_used < max_attempts and self.quality_low <= self.quality_high

    def next_quality(self) -> int:
        return (self.quality_low + self.quality_high) // 2

    def consider(self, attempt: EncodeAttempt) -> bool:
        """Promote ``attempt`` to best if it is strictly closer to target.

        Returns:
            True if the attempt became the new best result
        """
        if self.best_result is None or attempt.distance_from_target < self.best_result.distance_from_target:
            self.best_result = attempt
            return True
        return False

    def narrow(self, attempt: EncodeAttempt):
        if attempt.output_size_bytes > attempt.target_size_bytes:
            self.quality_high = attempt.quality - 1
        else:
            self.quality_low = attempt.quality + 1


@dataclass(frozen=True)
class CompressionResult:
    """Terminal output of the compression engine.

    Attributes:
        final_bytes: The chosen encoded payload
        final_size_bytes: Size of final_bytes
        final_quality: Quality used to produce final_bytes
        format: Output format name
        savings_percent: (1 - final/source) * 100, negative if the file grew
        source_size_bytes: Size of the input payload
        target_size_bytes: floor(source_size_bytes * target_ratio)
        attempts_used: Trial encodes consumed, including failed ones
        within_tolerance: True if the result landed inside the tolerance band
        dimensions: (width, height) of the encoded image
        trials: Ordered trial summaries
    """
    final_bytes: bytes
    final_size_bytes: int
    final_quality: int
    format: str
    savings_percent: float
    source_size_bytes: int
    target_size_bytes: int
    attempts_used: int
    within_tolerance: bool
    dimensions: Tuple[int, int] = (0, 0)
    trials: Tuple[TrialRecord, ...] = ()
