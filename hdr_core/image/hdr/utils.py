# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module provides utility functions to make merged high-dynamic range images viewable.
"""
from __future__ import annotations
from typing import Tuple
import numpy as np

from hdr_core.errors import ValidationError, DimensionError


def channel_ranges(buffer: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Minimum and maximum of every channel of a (H, W, C) buffer.

    :param buffer: Input buffer of shape (H, W, C).
    :type buffer: numpy.ndarray
    :returns: Tuple ``(min_values, max_values)``, each of shape (C,).
    :rtype: Tuple[numpy.ndarray, numpy.ndarray]
    """
    return np.min(buffer, axis=(0, 1)), np.max(buffer, axis=(0, 1))


def histogram_stretch(buffer: np.ndarray) -> np.ndarray:
    """
    Contrast stretch a linear radiance buffer to [0, 1], independently for every channel.

    For each channel the minimum and maximum over all pixels are determined first; afterwards every pixel is mapped
    to ``(x - min) / (max - min)``, so the minimum lands on exactly 0.0 and the maximum on exactly 1.0.
    A channel with the same value at every pixel has no range to stretch and is set to 0.0.

    :param buffer: Radiance buffer of shape (H, W, C), arbitrary (unbounded) value range.
    :type buffer: numpy.ndarray
    :returns: Display buffer of the same shape, float32, values in [0, 1].
    :rtype: numpy.ndarray
    :raises DimensionError: If the buffer is not three-dimensional.
    :raises ValidationError: If the buffer does not contain any pixel.
    """
    buffer = np.asarray(buffer, dtype=np.float32)
    if buffer.ndim != 3:
        raise DimensionError(f'Expected buffer of shape (height, width, channels), got {buffer.shape}')
    if buffer.shape[0] * buffer.shape[1] == 0:
        raise ValidationError(f'image must contain at least one pixel, got shape {buffer.shape}',
                              parameter_name='buffer')

    # the reduction over all pixels has to be complete before any pixel is rescaled
    min_values, max_values = channel_ranges(buffer)
    value_range = max_values - min_values
    constant = value_range == 0
    value_range = np.where(constant, np.float32(1.0), value_range)

    stretched = (buffer - min_values) / value_range
    stretched[..., constant] = 0.0
    return np.clip(stretched, 0.0, 1.0).astype(np.float32)


# alias used by the public pipeline
stretch = histogram_stretch
