# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module provides functionality of merging exposure series for high-dynamic range imaging.

The radiance is estimated with the Poisson Photon Noise Estimator described in
Hanji, P., Zhong, F., Mantiuk, R. K. (2020). Noise-Aware Merging of High Dynamic Range Image Stacks without Camera
Calibration. ECCV Workshops.
"""

import logging
import math

import numpy as np

from hdr_core.config.constants import DEFAULT_CHANNEL_COEFFICIENTS, OUTPUT_FILETYPES
from hdr_core.errors import ValidationError
from hdr_core.image.conversion import image_to_buffer, buffer_to_image
from hdr_core.image.hdr.sample import build_sample, build_sample_set
from hdr_core.image.hdr.utils import histogram_stretch

logger = logging.getLogger(__name__)


def _channel_coefficients(channel_coefficients, channels):
    """
    Return calibration coefficients as float32 array broadcastable to a (H, W, C) buffer.

    For grayscale buffers only the first coefficient is used.
    """
    if channel_coefficients is None:
        channel_coefficients = DEFAULT_CHANNEL_COEFFICIENTS
    try:
        coefficients = [float(c) for c in channel_coefficients]
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'coefficients must be numbers, got {channel_coefficients!r}',
                              parameter_name='channel_coefficients')
    if len(coefficients) != len(DEFAULT_CHANNEL_COEFFICIENTS):
        raise ValidationError(f'expected {len(DEFAULT_CHANNEL_COEFFICIENTS)} coefficients, got {len(coefficients)}',
                              parameter_name='channel_coefficients')
    if not all(math.isfinite(c) and 0 < c <= np.finfo(np.float32).max for c in coefficients):
        raise ValidationError('coefficients must be positive finite numbers', parameter_name='channel_coefficients')
    return np.asarray(coefficients[:channels], dtype=np.float32).reshape(1, 1, channels)


def estimate_radiance(sample, coefficients):
    """
    Convert a single exposure to radiance by undoing the effect of exposure time, gain and channel calibration.

    :param sample: Exposure to convert.
    :type sample: hdr_core.image.hdr.sample.ExposureSample
    :param coefficients: Per-channel calibration coefficients of shape (1, 1, C).
    :type coefficients: numpy.ndarray
    :returns: Radiance estimate of the exposure, float32 array of shape (H, W, C).
    :rtype: numpy.ndarray
    :raises ValidationError: If exposure time, gain and coefficient multiply to zero or infinity in float32.
    """
    with np.errstate(over='ignore', under='ignore'):
        scaling = np.float32(sample.exposure_seconds) * np.float32(sample.gain) * coefficients
    if not (np.all(np.isfinite(scaling)) and np.all(scaling >= np.finfo(np.float32).tiny)):
        raise ValidationError(f'scaling of {sample} is out of float32 range', parameter_name='channel_coefficients')
    return sample.buffer / scaling


def fuse(samples, channel_coefficients=None):
    """
    Merge an exposure series into one radiance image with the Poisson Photon Noise Estimator.

    Each exposure is divided by its exposure time, gain and channel calibration coefficient to get a radiance
    estimate. The estimates are then averaged, weighted by exposure time::

        phi = sum_i(radiance_i * t_i) / sum_i(t_i)

    Longer exposures collect more photons and therefore have a lower relative shot noise, which is why they get a
    proportionally higher weight. The weighting uses exposure time only, gain does not enter the weights.

    All arithmetic is done in float32. Sample buffers are not modified.

    :param samples: Validated sample set or a sequence of exposure samples, which is validated first.
    :type samples: hdr_core.image.hdr.sample.SampleSet | list[hdr_core.image.hdr.sample.ExposureSample]
    :param channel_coefficients: Calibration coefficients for the (R, G, B) channels. Default is ``(1.0, 1.0, 1.0)``.
        For grayscale images only the first coefficient is used.
    :type channel_coefficients: tuple[float, float, float] | None
    :returns: Radiance buffer of shape (H, W, C), float32, not bounded to [0, 1].
    :rtype: numpy.ndarray
    :raises ValidationError: If the samples do not form a valid sample set or the coefficients are invalid.
    """
    sample_set = build_sample_set(samples)
    coefficients = _channel_coefficients(channel_coefficients, sample_set.channels)

    exposure_times = sample_set.exposure_times
    sum_exposures = np.sum(exposure_times, dtype=np.float32)
    logger.debug(f'Fusing {len(sample_set)} exposures of shape {sample_set.shape}, '
                 f'exposure times {exposure_times.tolist()}, gains {sample_set.gains.tolist()}')

    phi = np.zeros(sample_set.shape, dtype=np.float32)
    for sample, exposure in zip(sample_set, exposure_times):
        radiance = estimate_radiance(sample, coefficients)
        phi += radiance * (exposure / sum_exposures)
    return phi


def merge_exposure_series(
    img_series,
    exposure_times,
    gains=None,
    channel_coefficients=None,
    apply_stretch=True,
    filetype='.tiff'):
    """
    Merge a series of differently exposed images into a single HDR image ready to be written to disk.

    :param img_series: Sequence of decoded images (RGB order) as NumPy arrays or Pillow images, see
        :func:`hdr_core.image.conversion.image_to_buffer`.
    :type img_series: list[numpy.ndarray]
    :param exposure_times: Exposure times corresponding to each image (in seconds).
    :type exposure_times: list[float]
    :param gains: Sensor gains corresponding to each image. Default is ``1.0`` for every image.
    :type gains: list[float] | None
    :param channel_coefficients: Calibration coefficients for the (R, G, B) channels. Default is ``(1.0, 1.0, 1.0)``.
    :type channel_coefficients: tuple[float, float, float] | None
    :param apply_stretch: Whether to stretch the radiance image to [0, 1] per channel. Default is ``True``.
        Without stretching, radiance values are kept for float outputs and clamped for integer outputs.
    :type apply_stretch: bool
    :param filetype: Output file type (``'.tiff'``, ``'.tif'``, ``'.png'``, ``'.jp2'`` or ``'.jpg'``).
        Default ``'.tiff'``.
    :type filetype: str
    :returns: Merged image, float32 for TIFF color images, otherwise quantized to the file type's bit depth.
    :rtype: numpy.ndarray
    """
    filetype = filetype.lower()
    if filetype not in OUTPUT_FILETYPES:
        raise ValueError(f'Unsupported file type {filetype}')
    if gains is None:
        gains = [1.0] * len(exposure_times)
    if not (len(img_series) == len(exposure_times) == len(gains)):
        raise ValidationError(f'Inconsistent parameters #images={len(img_series)}, '
                              f'#exposure_times={len(exposure_times)}, #gains={len(gains)}')

    samples = [build_sample(image_to_buffer(img), exposure, gain)
               for img, exposure, gain in zip(img_series, exposure_times, gains)]
    merged = fuse(build_sample_set(samples), channel_coefficients=channel_coefficients)

    if apply_stretch:
        merged = histogram_stretch(merged)

    return buffer_to_image(merged, dtype=OUTPUT_FILETYPES[filetype])
