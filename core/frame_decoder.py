"""
Camera frame relayout for the face detector.

- yuv420_to_nv21: planar Y/U/V (4:2:0) -> single NV21 buffer (Y, then V/U pairs)
- rotation_from_sensor: sensor orientation degrees -> detector rotation tag
- to_detector_input: both of the above, wrapped as a DetectorInputFrame

This is a byte relayout, not a resample: output is bit-exact for the same input.
"""
from __future__ import annotations
import logging
import numpy as np

from core.models import RawFrame, DetectorInputFrame

logger = logging.getLogger(__name__)

_ROTATIONS = (0, 90, 180, 270)


def yuv420_to_nv21(width: int, height: int, y: bytes, u: bytes, v: bytes) -> bytes:
    """
    Interleave planar chroma into NV21.

    Args:
        width, height: Frame size in pixels.
        y: Luma plane; only the first width*height bytes are used.
        u, v: Chroma planes in scan order.

    Returns:
        bytes of length width*height*3//2.

    Raises:
        ValueError: non-positive size or a luma plane shorter than width*height.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid frame size: {width}x{height}")
    frame_size = width * height
    if len(y) < frame_size:
        raise ValueError(f"Luma plane too short: {len(y)} < {frame_size}")

    total = frame_size * 3 // 2
    out = np.zeros(total, dtype=np.uint8)
    out[:frame_size] = np.frombuffer(y, dtype=np.uint8, count=frame_size)

    # A pair lands at frame_size + 2k and needs frame_size + 2k < total - 1;
    # everything past that (stride padding) is dropped.
    pairs = min(len(u), len(v), (total - frame_size) // 2)
    if pairs > 0:
        end = frame_size + 2 * pairs
        out[frame_size:end:2] = np.frombuffer(v, dtype=np.uint8, count=pairs)
        out[frame_size + 1:end:2] = np.frombuffer(u, dtype=np.uint8, count=pairs)
    return out.tobytes()


def rotation_from_sensor(degrees: int) -> int:
    """Map sensor orientation to a rotation tag; unknown values map to 0."""
    return int(degrees) if degrees in _ROTATIONS else 0


def to_detector_input(frame: RawFrame, sensor_orientation: int = 0) -> DetectorInputFrame:
    data = yuv420_to_nv21(frame.width, frame.height, frame.y, frame.u, frame.v)
    rotation = rotation_from_sensor(sensor_orientation)
    logger.debug(f"[decoder] {frame.width}x{frame.height} -> nv21 len={len(data)} rotation={rotation}")
    return DetectorInputFrame(
        data=data,
        width=frame.width,
        height=frame.height,
        rotation=rotation,
        bytes_per_row=frame.planes[0].bytes_per_row or frame.width,
    )
