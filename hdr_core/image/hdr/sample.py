# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module provides the data model of an exposure series: single exposures with their exposure time and gain, and
the validated set of exposures which is merged into one high-dynamic range image.
"""
from __future__ import annotations

import math
from typing import Iterable, Tuple

import numpy as np

from hdr_core.config.constants import SUPPORTED_CHANNELS, DEFAULT_GAIN
from hdr_core.errors import ValidationError


_FLOAT32 = np.finfo(np.float32)


def _check_positive_finite(value, parameter_name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'must be a number, got {value!r}', parameter_name=parameter_name)
    if not math.isfinite(value):
        raise ValidationError('must be a finite number', parameter_name=parameter_name)
    if value <= 0:
        raise ValidationError('must be a positive non-zero number', parameter_name=parameter_name)
    # the merge computes in float32, values must neither vanish nor overflow there
    if not _FLOAT32.tiny <= value <= _FLOAT32.max:
        raise ValidationError(f'must be within [{_FLOAT32.tiny:g}, {_FLOAT32.max:g}], got {value:g}',
                              parameter_name=parameter_name)
    return value


class ExposureSample:
    """
    One exposure of an exposure series.

    Holds a normalized float32 pixel buffer of shape (height, width, channels) with values in [0, 1], together with
    the exposure time in seconds and the linear sensor gain used for the capture. The buffer is copied on
    construction and stored read-only, so neither the caller nor the merge can modify it afterwards.

    :param buffer: Pixel buffer of shape (H, W, C), values expected in [0, 1].
    :type buffer: numpy.ndarray
    :param exposure_seconds: Exposure (shutter) time in seconds, positive and finite.
    :type exposure_seconds: float
    :param gain: Linear sensor gain, e.g. derived from the ISO speed. Positive and finite. Default is ``1.0``.
    :type gain: float
    :raises ValidationError: If the buffer is not a non-empty 3-D array or exposure time/gain are invalid.
    """

    def __init__(self, buffer, exposure_seconds, gain=DEFAULT_GAIN):
        self._exposure_seconds = _check_positive_finite(exposure_seconds, 'exposure_seconds')
        self._gain = _check_positive_finite(gain, 'gain')
        with np.errstate(over='ignore', under='ignore'):
            scaling = np.float32(self._exposure_seconds) * np.float32(self._gain)
        if not (np.isfinite(scaling) and scaling >= _FLOAT32.tiny):
            raise ValidationError(f'exposure time times gain ({self._exposure_seconds:g} * {self._gain:g}) is out of '
                                  f'float32 range', parameter_name='gain')

        buffer = np.array(buffer, dtype=np.float32, copy=True)
        if buffer.ndim != 3:
            raise ValidationError(f'expected shape (height, width, channels), got {buffer.shape}',
                                  parameter_name='buffer')
        if buffer.size == 0:
            raise ValidationError(f'image must contain at least one pixel, got shape {buffer.shape}',
                                  parameter_name='buffer')
        buffer.setflags(write=False)
        self._buffer = buffer

    @property
    def buffer(self) -> np.ndarray:
        return self._buffer

    @property
    def exposure_seconds(self) -> float:
        return self._exposure_seconds

    @property
    def gain(self) -> float:
        return self._gain

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self._buffer.shape

    @property
    def height(self) -> int:
        return self._buffer.shape[0]

    @property
    def width(self) -> int:
        return self._buffer.shape[1]

    @property
    def channels(self) -> int:
        return self._buffer.shape[2]

    @property
    def scaling_factor(self) -> float:
        """Factor which converts pixel values of this exposure to radiance (exposure time times gain)."""
        return self._exposure_seconds * self._gain

    def __repr__(self):
        return (f'{type(self).__name__}(shape={self.shape}, exposure_seconds={self._exposure_seconds:g}, '
                f'gain={self._gain:g})')


class SampleSet:
    """
    Ordered, validated collection of exposures which are merged into one HDR image.

    The order of the samples is the capture order. It does not influence the merge result, but keeps diagnostics
    reproducible.

    :param samples: Exposures of the same, pixel-registered scene.
    :type samples: Iterable[ExposureSample]
    :raises ValidationError: If less than two samples are given, a sample has neither 1 nor 3 channels or the
        samples differ in height, width or number of channels or their exposure times sum up to infinity in
        float32.
    """

    def __init__(self, samples: Iterable[ExposureSample]):
        samples = tuple(samples)
        for sample in samples:
            if not isinstance(sample, ExposureSample):
                raise ValidationError(f'expected ExposureSample, got {type(sample).__name__}',
                                      parameter_name='samples')
        if len(samples) < 2:
            raise ValidationError('at least two images required')
        if any(sample.channels not in SUPPORTED_CHANNELS for sample in samples):
            raise ValidationError('unsupported channel layout')
        reference_shape = samples[0].shape
        if any(sample.shape != reference_shape for sample in samples[1:]):
            raise ValidationError('dimension mismatch')
        with np.errstate(over='ignore'):
            total_exposure = np.sum([np.float32(s.exposure_seconds) for s in samples], dtype=np.float32)
        if not np.isfinite(total_exposure):
            raise ValidationError('sum of exposure times is out of float32 range', parameter_name='exposure_seconds')
        self._samples = samples

    def __len__(self):
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def __getitem__(self, index):
        return self._samples[index]

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self._samples[0].shape

    @property
    def channels(self) -> int:
        return self._samples[0].channels

    @property
    def exposure_times(self) -> np.ndarray:
        return np.array([sample.exposure_seconds for sample in self._samples], dtype=np.float32)

    @property
    def gains(self) -> np.ndarray:
        return np.array([sample.gain for sample in self._samples], dtype=np.float32)

    def __repr__(self):
        return f'{type(self).__name__}(n_samples={len(self)}, shape={self.shape})'


def build_sample(buffer, exposure_seconds, gain=DEFAULT_GAIN) -> ExposureSample:
    """
    Create an exposure sample from a normalized pixel buffer and its exposure settings.

    :param buffer: Pixel buffer of shape (H, W, C) with values in [0, 1], see
        :func:`hdr_core.image.conversion.image_to_buffer`.
    :type buffer: numpy.ndarray
    :param exposure_seconds: Exposure time in seconds.
    :type exposure_seconds: float
    :param gain: Linear sensor gain. Default is ``1.0``.
    :type gain: float
    :returns: Validated exposure sample.
    :rtype: ExposureSample
    :raises ValidationError: If exposure time or gain are not positive finite numbers, naming the parameter.
    """
    return ExposureSample(buffer, exposure_seconds, gain)


def build_sample_set(samples) -> SampleSet:
    """
    Validate a sequence of exposure samples and group them for merging.

    :param samples: Exposure samples in capture order.
    :type samples: Iterable[ExposureSample]
    :returns: Validated sample set.
    :rtype: SampleSet
    :raises ValidationError: ``"at least two images required"``, ``"unsupported channel layout"`` or
        ``"dimension mismatch"``.
    """
    if isinstance(samples, SampleSet):
        return samples
    return SampleSet(samples)
