"""One-time code generation."""

from __future__ import annotations

import logging

from .collaborators import RandomSource
from .exceptions import ConfigError, RandomnessError

logger = logging.getLogger(__name__)

ENTROPY_BYTES = 4


def generate_code(length: int, source: RandomSource) -> str:
    """Render one unsigned 32-bit draw in decimal, cut to at most ``length`` digits.

    The result is not padded, so it can be shorter than ``length`` when the
    draw has fewer digits.
    """
    if length <= 0:
        raise ConfigError(
            "[ERROR] Unable to read configuration",
            f"code length must be positive, got {length}",
        )

    try:
        raw = source.read(ENTROPY_BYTES)
    except (OSError, NotImplementedError) as exc:
        logger.error("Randomness source unavailable: %s", exc)
        raise RandomnessError("[ERROR] Unable to generate a code", str(exc)) from exc

    if len(raw) != ENTROPY_BYTES:
        raise RandomnessError(
            "[ERROR] Unable to generate a code",
            f"expected {ENTROPY_BYTES} random bytes, got {len(raw)}",
        )

    value = int.from_bytes(raw, "little", signed=False)
    return str(value)[:length]
