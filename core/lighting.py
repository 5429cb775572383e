"""
Ambient lighting estimate from the luma plane.
"""
from __future__ import annotations
import numpy as np

from core.models import LightingAssessment

LOW_LIGHT_BELOW = 0.3
TOO_BRIGHT_ABOVE = 0.8
DEFAULT_STRIDE = 10


def estimate_lighting(luma: bytes, stride: int = DEFAULT_STRIDE) -> LightingAssessment:
    """
    Classify lighting from every `stride`-th luma byte, starting at index 0.

    brightness = mean(samples) / 255
    contrast   = mean(|sample - previous sample|) / 255, previous of the first sample is 0

    Args:
        luma: Y plane bytes (stride padding included is fine).
        stride: Sampling step.

    Returns:
        LightingAssessment
    """
    samples = np.frombuffer(luma, dtype=np.uint8)[::max(1, int(stride))].astype(np.int64)
    if samples.size == 0:
        return LightingAssessment(status="Low Light", brightness=0.0, contrast=0.0, is_low_light=True)

    count = float(samples.size)
    deltas = np.abs(np.diff(samples, prepend=0))
    brightness = float(samples.sum()) / count / 255.0
    contrast = float(deltas.sum()) / count / 255.0

    if brightness < LOW_LIGHT_BELOW:
        status = "Low Light"
    elif brightness > TOO_BRIGHT_ABOVE:
        status = "Too Bright"
    else:
        status = "Good Lighting"

    return LightingAssessment(
        status=status,
        brightness=brightness,
        contrast=contrast,
        is_low_light=brightness < LOW_LIGHT_BELOW,
    )
