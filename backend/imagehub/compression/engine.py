"""Size-targeted compression engine: bisection over quality driven by file size."""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from PIL import Image

from .codec import ImageCodec, ImageMetadata
from .encoders import FORMATS, FormatSpec, get_format
from .errors import (
    CompressionCancelledError,
    NoViableEncodeError,
    UnsupportedFormatError,
)
from .result import (
    CompressionRequest,
    CompressionResult,
    EncodeAttempt,
    SearchState,
    TrialRecord,
)


logger = logging.getLogger(__name__)

# Defaults
MAX_ATTEMPTS = 10
TOLERANCE = 0.05  # Accept if within 5% of target
MIN_QUALITY = 1
MAX_QUALITY = 100


@dataclass(frozen=True)
class EngineConfig:
    """Explicit engine configuration.

    Attributes:
        max_attempts: Upper bound on trial encodes per call
        tolerance: Fraction of the target size accepted as a match
        min_quality: Lower quality bound of the search
        max_quality: Upper quality bound of the search
        formats: Format table used to validate and encode
    """
    max_attempts: int = MAX_ATTEMPTS
    tolerance: float = TOLERANCE
    min_quality: int = MIN_QUALITY
    max_quality: int = MAX_QUALITY
    formats: Dict[str, FormatSpec] = field(default_factory=lambda: dict(FORMATS))

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if not 0 <= self.tolerance < 1:
            raise ValueError(f"tolerance must be in [0, 1), got {self.tolerance}")
        if not 1 <= self.min_quality <= self.max_quality <= 100:
            raise ValueError(
                f"quality bounds must satisfy 1 <= min <= max <= 100, "
                f"got {self.min_quality}..{self.max_quality}"
            )


class CompressionEngine:
    """Finds the quality whose encoded size best matches a target size.

    Quality -> size is only roughly monotonic (palette effects, encoder
    internals), so the search is a heuristic bisection that keeps the
    closest attempt seen rather than trusting the last one.

    The engine holds no per-call state and can be shared between threads.
    """

    def __init__(self, config: Optional[EngineConfig] = None, codec: Optional[ImageCodec] = None):
        self.config = config or EngineConfig()
        self.codec = codec or ImageCodec(self.config.formats)

    def compress(
        self,
        request: CompressionRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> CompressionResult:
        """Compress ``request.source_bytes`` towards the requested size.

        Args:
            request: Validated compression request
            cancel_event: Optional event checked between trials

        Returns:
            CompressionResult holding the accepted or closest attempt

        Raises:
            UnsupportedFormatError: Format unknown or not searchable
            ImageDecodeError: Source bytes are not a decodable image
            NoViableEncodeError: Every trial encode failed
            CompressionCancelledError: cancel_event was set mid-search
        """
        start_time = time.time()
        spec = self._resolve_format(request.output_format)

        image, metadata = self.codec.decode(request.source_bytes)
        if request.strip_metadata:
            image = self.codec.normalize_orientation(image)
            encode_metadata = None
        else:
            encode_metadata = metadata

        target_size = request.target_size_bytes
        tolerance_bytes = target_size * self.config.tolerance

        state = SearchState(
            quality_low=self.config.min_quality,
            quality_high=self.config.max_quality,
        )
        accepted: Optional[EncodeAttempt] = None

        while state.has_budget(self.config.max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                raise CompressionCancelledError(
                    f"Compression cancelled after {state.attempts_used} attempts"
                )

            quality = state.next_quality()
            attempt = self._try_encode(image, spec, quality, target_size, encode_metadata)
            if attempt is None:
                state.trials.append(TrialRecord(quality, None, None, failed=True))
                state.attempts_used += 1
                continue

            state.trials.append(
                TrialRecord(quality, attempt.output_size_bytes, attempt.distance_from_target)
            )
            logger.debug(
                'Trial encode',
                extra={'quality': quality, 'size': attempt.output_size_bytes, 'format': spec.name},
            )

            if attempt.distance_from_target <= tolerance_bytes:
                accepted = attempt
                state.best_result = attempt
                state.attempts_used += 1
                break

            state.consider(attempt)
            state.narrow(attempt)
            state.attempts_used += 1

        final = accepted or state.best_result
        if final is None:
            raise NoViableEncodeError(
                f"All {state.attempts_used} encode attempts failed for format {spec.name}"
            )

        result = self._build_result(request, spec, final, state, image, accepted is not None)
        logger.info(
            'Compression finished',
            extra={
                'format': spec.name,
                'quality': result.final_quality,
                'attempts': result.attempts_used,
                'duration_ms': int((time.time() - start_time) * 1000),
                'status': 'accepted' if result.within_tolerance else 'closest',
            },
        )
        return result

    def _resolve_format(self, name: str) -> FormatSpec:
        spec = get_format(name, self.config.formats)
        if not spec.searchable:
            raise UnsupportedFormatError(
                f"Format {spec.name} does not support size-targeted compression"
            )
        return spec

    def _try_encode(
        self,
        image: Image.Image,
        spec: FormatSpec,
        quality: int,
        target_size: int,
        metadata: Optional[ImageMetadata],
    ) -> Optional[EncodeAttempt]:
        """Run one trial encode; a failing trial is logged and returns None."""
        try:
            output = self.codec.encode(image, spec.name, quality, metadata)
        except UnsupportedFormatError:
            raise
        except Exception as e:
            logger.warning(f'Trial encode failed at quality {quality}: {e}', exc_info=True)
            return None
        if not output:
            logger.warning(f'Trial encode at quality {quality} produced no data')
            return None
        return EncodeAttempt(quality=quality, output_bytes=output, target_size_bytes=target_size)

    def _build_result(
        self,
        request: CompressionRequest,
        spec: FormatSpec,
        final: EncodeAttempt,
        state: SearchState,
        image: Image.Image,
        within_tolerance: bool,
    ) -> CompressionResult:
        source_size = request.source_size_bytes
        if source_size:
            savings = (1 - final.output_size_bytes / source_size) * 100
        else:
            savings = 0.0
        return CompressionResult(
            final_bytes=final.output_bytes,
            final_size_bytes=final.output_size_bytes,
            final_quality=final.quality,
            format=spec.name,
            savings_percent=round(savings, 2) if math.isfinite(savings) else 0.0,
            source_size_bytes=source_size,
            target_size_bytes=request.target_size_bytes,
            attempts_used=state.attempts_used,
            within_tolerance=within_tolerance,
            dimensions=image.size,
            trials=tuple(state.trials),
        )
