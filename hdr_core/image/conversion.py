# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module converts decoded images of any supported pixel encoding into the float32 (height, width, channels)
buffers used by the HDR merge, and buffers back into arrays which can be written by an image encoder.

Supported inputs are 8-bit, 16-bit and other integer arrays, floating point arrays and Pillow images, each with one
(luma) or three (color) channels and with or without an alpha channel. Alpha channels are dropped, integer values are
divided by the maximum value of their data type and non-RGB Pillow modes (CMYK, YCbCr, palette, ...) are converted to
RGB. Arrays are expected in RGB channel order, see :func:`hdr_core.image.image_loading.load_image`.
"""
from __future__ import annotations

import numpy as np
from PIL import Image

from hdr_core.errors import ValidationError, DimensionError

# Pillow modes which are read as a single luma channel
_LUMA_MODES = {'L', 'I', 'I;16', 'I;16L', 'I;16B', 'I;16N', 'F'}
# luma with alpha, bilevel
_CONVERT_TO_LUMA_MODES = {'LA', 'La', '1'}


def pil_to_array(image: Image.Image) -> np.ndarray:
    """Convert a Pillow image to an array with 1 or 3 channels in its native data type."""
    mode = image.mode
    if mode in _LUMA_MODES:
        array = np.asarray(image)
        if mode == 'I':
            # 32-bit integer mode is what Pillow uses for 16-bit grayscale PNGs
            array = np.clip(array, 0, np.iinfo(np.uint16).max).astype(np.uint16)
        return array
    if mode in _CONVERT_TO_LUMA_MODES:
        return np.asarray(image.convert('L'))
    if mode != 'RGB':
        image = image.convert('RGB')
    return np.asarray(image)


def _normalize_dtype(array: np.ndarray) -> np.ndarray:
    """Scale integer arrays by the maximum of their data type, keep floating point values as they are."""
    if array.dtype == np.bool_:
        return array.astype(np.float32)
    if np.issubdtype(array.dtype, np.integer):
        return array.astype(np.float32) / np.float32(np.iinfo(array.dtype).max)
    if np.issubdtype(array.dtype, np.floating):
        return array.astype(np.float32)
    raise ValidationError(f'unsupported pixel data type {array.dtype}', parameter_name='image')


def image_to_buffer(image) -> np.ndarray:
    """
    Convert a decoded image into a float32 buffer of shape (height, width, channels) with 1 or 3 channels.

    :param image: Decoded image as NumPy array of shape (H, W), (H, W, 1), (H, W, 2), (H, W, 3) or (H, W, 4) in RGB
        channel order, or as Pillow image.
    :type image: numpy.ndarray | PIL.Image.Image
    :returns: Buffer with values normalized to [0, 1] for integer inputs.
    :rtype: numpy.ndarray
    :raises ValidationError: If the image layout cannot be mapped to 1 or 3 channels.
    """
    if isinstance(image, Image.Image):
        array = pil_to_array(image)
    else:
        array = np.asarray(image)

    if array.ndim == 2:
        array = array[:, :, np.newaxis]
    elif array.ndim != 3:
        raise ValidationError('unsupported channel layout', parameter_name='image')

    channels = array.shape[2]
    if channels == 2:
        # luma + alpha
        array = array[:, :, :1]
    elif channels == 4:
        # RGB + alpha
        array = array[:, :, :3]
    elif channels not in (1, 3):
        raise ValidationError('unsupported channel layout', parameter_name='image')

    return np.ascontiguousarray(_normalize_dtype(array))


def quantize(buffer: np.ndarray, dtype) -> np.ndarray:
    """
    Quantize a buffer with values in [0, 1] to an integer data type.

    Values outside of [0, 1] are clamped, then multiplied by the maximum value of ``dtype`` and rounded.

    :param buffer: Input buffer, values expected in [0, 1].
    :type buffer: numpy.ndarray
    :param dtype: Target integer data type, e.g. ``np.uint8`` or ``np.uint16``.
    :returns: Quantized array.
    :rtype: numpy.ndarray
    """
    dtype = np.dtype(dtype)
    max_value = np.iinfo(dtype).max
    return np.round(np.clip(buffer, 0.0, 1.0) * max_value).astype(dtype)


def buffer_to_image(buffer: np.ndarray, dtype=None) -> np.ndarray:
    """
    Convert a (height, width, channels) buffer into an array which can be passed to an image encoder.

    - 1 channel: 2-D grayscale array, quantized to ``uint16`` unless another ``dtype`` is given.
    - 3 channels: RGB array. Without ``dtype`` the float32 values are kept unclamped (radiance images), with an
      integer ``dtype`` the values are clamped to [0, 1] and quantized.

    :param buffer: Buffer of shape (H, W, C).
    :type buffer: numpy.ndarray
    :param dtype: Target data type or None for the defaults listed above.
    :returns: Encoder ready array of shape (H, W) or (H, W, 3).
    :rtype: numpy.ndarray
    :raises DimensionError: If the buffer does not have 1 or 3 channels.
    """
    buffer = np.asarray(buffer)
    if buffer.ndim != 3 or buffer.shape[2] not in (1, 3):
        raise DimensionError(f'Unexpected buffer dimensions {buffer.shape}, expected (height, width, 1 or 3)')

    if buffer.shape[2] == 1:
        dtype = np.uint16 if dtype is None else dtype
        image = buffer[:, :, 0]
    else:
        image = buffer

    if dtype is None or np.issubdtype(np.dtype(dtype), np.floating):
        return np.array(image, dtype=np.float32 if dtype is None else dtype)
    return quantize(image, dtype)
