# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module extracts exposure time and sensor gain of an image from its EXIF metadata.
"""

import logging
from pathlib import Path

from PIL import Image, ExifTags, UnidentifiedImageError

from hdr_core.config.constants import BASE_ISO

logger = logging.getLogger(__name__)

# ISO tags in order of preference
ISO_TAGS = [
    ExifTags.Base.ISOSpeed,
    ExifTags.Base.StandardOutputSensitivity,
    ExifTags.Base.ISOSpeedRatings,  # called PhotographicSensitivity since EXIF 2.3
]


class ExifError(LookupError):
    """Raised if the EXIF metadata of an image is missing a required tag."""
    pass


def _to_float(value):
    """Convert EXIF values (rationals, (numerator, denominator) tuples, lists) to float, None if not possible."""
    if value is None:
        return None
    if isinstance(value, (tuple, list)):
        if len(value) == 2 and all(isinstance(v, int) for v in value) and value[1] != 0:
            return value[0] / value[1]
        if len(value) == 0:
            return None
        value = value[0]
    try:
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


def get_exif_data(image_file):
    """
    Read the EXIF tags of an image file.

    Tags of the primary image directory and of the EXIF sub-directory are merged into one dictionary.

    :param image_file: Path of the image file.
    :type image_file: str | Path
    :returns: Mapping of EXIF tag ids to values. Empty if the image has no EXIF data or Pillow cannot read the file.
    :rtype: dict
    """
    image_file = Path(image_file)
    try:
        with Image.open(image_file) as image:
            exif = image.getexif()
            tags = dict(exif)
            tags.update(exif.get_ifd(ExifTags.IFD.Exif))
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f'No EXIF data read from {image_file}: {e}')
        return {}
    return tags


def get_exposure(exif):
    """
    Get the exposure time in seconds.

    Uses the ``ExposureTime`` tag and falls back to the APEX ``ShutterSpeedValue`` (t = 2^-value).

    :param exif: EXIF tags as returned by :func:`get_exif_data`.
    :type exif: dict
    :returns: Exposure time in seconds.
    :rtype: float
    :raises ExifError: If neither tag is present.
    """
    exposure = _to_float(exif.get(ExifTags.Base.ExposureTime))
    if exposure is None:
        apex = _to_float(exif.get(ExifTags.Base.ShutterSpeedValue))
        if apex is not None:
            exposure = 2.0 ** (-apex)
    if exposure is None:
        raise ExifError('ExposureTime not found')
    return exposure


def get_iso(exif):
    """
    Get the ISO speed of the capture.

    :param exif: EXIF tags as returned by :func:`get_exif_data`.
    :type exif: dict
    :returns: ISO speed.
    :rtype: float
    :raises ExifError: If no ISO tag is present.
    """
    for tag in ISO_TAGS:
        iso = _to_float(exif.get(tag))
        if iso is not None:
            return iso
    raise ExifError('ISO not found')


def get_gain(exif, base_iso=BASE_ISO):
    """
    Get the linear sensor gain, i.e. the ISO speed relative to ``base_iso``.

    :param exif: EXIF tags as returned by :func:`get_exif_data`.
    :type exif: dict
    :param base_iso: ISO speed corresponding to a gain of 1.0. Default is ``100``.
    :type base_iso: float
    :returns: Sensor gain.
    :rtype: float
    :raises ExifError: If no ISO tag is present.
    """
    return get_iso(exif) / base_iso
