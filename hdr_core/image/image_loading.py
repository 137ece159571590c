# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module provides functions to load (and save) image files as NumPy arrays.
"""

import logging
from pathlib import Path

import cv2
import numpy as np
import rawpy
from PIL import Image
from fastcore.parallel import parallel

from hdr_core.config.constants import RAW_EXTENSIONS
from hdr_core.image.conversion import pil_to_array

logger = logging.getLogger(__name__)


def _to_channel_order(image, format):
    """Convert an image as read by OpenCV (BGR/BGRA) to the requested channel order."""
    if format == 'bgr' or image.ndim == 2:
        return image
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return image


def _load_raw_image(image_file):
    """Demosaic a camera raw file with LibRaw to linear 16-bit RGB."""
    with rawpy.imread(str(image_file)) as raw:
        return raw.postprocess(
            output_color=rawpy.ColorSpace.sRGB,
            output_bps=16,
            gamma=(1, 1),
            no_auto_bright=True,
            use_camera_wb=True,
            user_flip=0,
        )


def load_image(image_file, format='rgb'):
    """
    Load an image file with its native bit depth and channel count.

    Camera raw files (see ``hdr_core.config.constants.RAW_EXTENSIONS``) are demosaiced with rawpy to linear 16-bit
    RGB. Other files are read with OpenCV; files OpenCV cannot decode are read with Pillow (Pillow images are always
    RGB ordered).

    :param image_file: Path of the image file.
    :type image_file: str | Path
    :param format: Channel order of color images, ``'rgb'`` (default) or ``'bgr'``.
    :type format: str
    :returns: Image as NumPy array of shape (H, W) or (H, W, C) in the file's data type (uint8, uint16 or float32).
    :rtype: numpy.ndarray
    """
    if format not in ('rgb', 'bgr'):
        raise ValueError(f'Unknown image format {format!r}, choose from "rgb" and "bgr".')
    image_file = Path(image_file)
    if not image_file.is_file():
        raise FileNotFoundError(f'Image file {image_file} does not exist.')

    if image_file.suffix.lower() in RAW_EXTENSIONS:
        image = _load_raw_image(image_file)
        logger.debug(f'Decoded raw image {image_file.name} with shape {image.shape}.')
        return np.ascontiguousarray(image[..., ::-1]) if format == 'bgr' else image

    image = cv2.imread(str(image_file), cv2.IMREAD_UNCHANGED)
    if image is not None:
        return _to_channel_order(image, format)

    logger.debug(f'OpenCV could not decode {image_file}, falling back to Pillow.')
    with Image.open(image_file) as pil_image:
        pil_image.load()
        image = pil_to_array(pil_image)
    if format == 'bgr' and image.ndim == 3 and image.shape[2] >= 3:
        image = image[:, :, [2, 1, 0] + list(range(3, image.shape[2]))]
    return image


def load_images(image_files, format='rgb', n_workers=0):
    """
    Load several image files, see :func:`load_image`.

    :param image_files: Paths of the image files.
    :type image_files: Iterable[str | Path]
    :param format: Channel order of color images, ``'rgb'`` (default) or ``'bgr'``.
    :type format: str
    :param n_workers: Number of parallel workers. Default is 0 (sequential).
    :type n_workers: int
    :returns: Loaded images in the order of ``image_files``.
    :rtype: list[numpy.ndarray]
    """
    return list(parallel(load_image, list(image_files), format=format, n_workers=n_workers, threadpool=True))


def save_image(image, output_path, format='rgb'):
    """
    Write an image array to disk with OpenCV.

    :param image: Image of shape (H, W) or (H, W, 3), e.g. as returned by
        :func:`hdr_core.image.conversion.buffer_to_image`.
    :type image: numpy.ndarray
    :param output_path: Path of the output file, the suffix determines the file type.
    :type output_path: str | Path
    :param format: Channel order of ``image``, ``'rgb'`` (default) or ``'bgr'``.
    :type format: str
    :returns: The output path.
    :rtype: Path
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image = np.asarray(image)
    if format == 'rgb' and image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)

    if output_path.suffix.lower() == '.png':
        success = cv2.imwrite(str(output_path), image, [int(cv2.IMWRITE_PNG_COMPRESSION), 9])
    else:
        success = cv2.imwrite(str(output_path), image)
    if not success:
        raise IOError(f'Could not write image to {output_path}')
    return output_path
