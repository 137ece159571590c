# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module provides all processing steps for merging exposure series stored as image files to high-dynamic range
images: loading images and exposure settings, merging, stretching and saving.
"""

import logging
from functools import partial
from pathlib import Path

import pandas as pd
from fastcore.basics import ifnone
from fastcore.parallel import parallel
from tqdm import tqdm

from hdr_core.config.constants import BASE_ISO, DEFAULT_GAIN, DEFAULT_HDR_SUFFIX, OUTPUT_FILETYPES
from hdr_core.errors import ValidationError
from hdr_core.image.conversion import image_to_buffer, buffer_to_image
from hdr_core.image.exif import ExifError, get_exif_data, get_exposure, get_gain
from hdr_core.image.image_loading import load_image, save_image
from hdr_core.image.hdr.merge import fuse
from hdr_core.image.hdr.sample import build_sample, build_sample_set
from hdr_core.image.hdr.utils import histogram_stretch
from hdr_core.utils.filesystem import get_image_files, parse_exposure_from_name

logger = logging.getLogger(__name__)


def _resolve_exposure(image_file, exif):
    """Exposure time from EXIF, falling back to the file name."""
    try:
        return get_exposure(exif)
    except ExifError:
        exposure = parse_exposure_from_name(Path(image_file).name)
    if exposure is None:
        raise ValidationError(f'exposure time of {image_file} neither given nor found in EXIF data or file name',
                              parameter_name='exposure_seconds')
    logger.debug(f'No EXIF exposure time in {image_file}, using {exposure:g}s from file name.')
    return exposure


def _resolve_gain(image_file, exif, default_gain, base_iso):
    try:
        return get_gain(exif, base_iso=base_iso)
    except ExifError:
        logger.debug(f'No ISO in EXIF data of {image_file}, using gain {default_gain}.')
        return default_gain


def load_exposure_sample(image_file, exposure_seconds=None, gain=None, default_gain=DEFAULT_GAIN, base_iso=BASE_ISO):
    """
    Load an image file and create an exposure sample from it.

    Exposure time and gain which are not given explicitly are read from the EXIF metadata. If the exposure time is
    not in the metadata either, it is parsed from the file name (``*_<exposure in microseconds>.<ext>``). A missing
    gain falls back to ``default_gain``.

    :param image_file: Path of the image file.
    :type image_file: str | Path
    :param exposure_seconds: Exposure time in seconds, overrides the metadata.
    :type exposure_seconds: float | None
    :param gain: Sensor gain, overrides the metadata.
    :type gain: float | None
    :param default_gain: Gain used when neither given nor found in the metadata. Default is ``1.0``.
    :type default_gain: float
    :param base_iso: ISO speed corresponding to a gain of 1.0. Default is ``100``.
    :type base_iso: float
    :returns: Exposure sample.
    :rtype: hdr_core.image.hdr.sample.ExposureSample
    :raises ValidationError: If no valid exposure time or gain can be determined.
    """
    image_file = Path(image_file)
    exif = get_exif_data(image_file) if exposure_seconds is None or gain is None else {}
    if exposure_seconds is None:
        exposure_seconds = _resolve_exposure(image_file, exif)
    if gain is None:
        gain = _resolve_gain(image_file, exif, default_gain, base_iso)

    buffer = image_to_buffer(load_image(image_file, format='rgb'))
    sample = build_sample(buffer, exposure_seconds, gain)
    logger.debug(f'Loaded {image_file.name}: {sample}')
    return sample


def load_sample_set(image_files, exposure_times=None, gains=None, n_workers=0, **kwargs):
    """
    Load the images of one exposure series and validate them as sample set.

    :param image_files: Image files of the exposure series in capture order.
    :type image_files: list[str | Path]
    :param exposure_times: Exposure times in seconds per image, overriding the metadata. Default is None.
    :type exposure_times: list[float] | None
    :param gains: Sensor gains per image, overriding the metadata. Default is None.
    :type gains: list[float] | None
    :param n_workers: Number of parallel workers to load the images. Default is 0 (sequential).
    :type n_workers: int
    :param kwargs: Additional keyword arguments passed to :func:`load_exposure_sample`.
    :returns: Validated sample set.
    :rtype: hdr_core.image.hdr.sample.SampleSet
    """
    image_files = [Path(f) for f in image_files]
    exposure_times = ifnone(exposure_times, [None] * len(image_files))
    gains = ifnone(gains, [None] * len(image_files))
    if not (len(image_files) == len(exposure_times) == len(gains)):
        raise ValidationError(f'Inconsistent parameters #images={len(image_files)}, '
                              f'#exposure_times={len(exposure_times)}, #gains={len(gains)}')

    samples = parallel(_load_sample_args, list(zip(image_files, exposure_times, gains)), n_workers=n_workers,
                       threadpool=True, **kwargs)
    return build_sample_set(list(samples))


def _load_sample_args(args, **kwargs):
    image_file, exposure_seconds, gain = args
    return load_exposure_sample(image_file, exposure_seconds=exposure_seconds, gain=gain, **kwargs)


def hdr_merge_images(image_files, exposure_times=None, gains=None, channel_coefficients=None, n_workers=0,
                     **kwargs):
    """
    Merge image files of one exposure series into a radiance buffer.

    :param image_files: Image files of the exposure series (at least two).
    :type image_files: list[str | Path]
    :param exposure_times: Exposure times in seconds, overriding the metadata. Default is None.
    :type exposure_times: list[float] | None
    :param gains: Sensor gains, overriding the metadata. Default is None.
    :type gains: list[float] | None
    :param channel_coefficients: Calibration coefficients for the (R, G, B) channels. Default is None (all 1.0).
    :type channel_coefficients: tuple[float, float, float] | None
    :param n_workers: Number of parallel workers to load the images. Default is 0 (sequential).
    :type n_workers: int
    :returns: Radiance buffer of shape (H, W, C), not bounded to [0, 1].
    :rtype: numpy.ndarray
    """
    if len(image_files) < 2:
        raise ValidationError('at least two images required')
    sample_set = load_sample_set(image_files, exposure_times=exposure_times, gains=gains, n_workers=n_workers,
                                 **kwargs)
    return fuse(sample_set, channel_coefficients=channel_coefficients)


def create_and_save_hdr(image_files, output_path, apply_stretch=True, **kwargs_merging):
    """
    Creates an HDR image from image files of an exposure series and saves it to a file.

    The data type of the written image depends on the file type: TIFF keeps float32 values for color images,
    PNG and JPEG 2000 are written with 16 bit and JPEG with 8 bit (clamped to [0, 1]).

    :param image_files: Image files of the exposure series.
    :type image_files: list[str | Path]
    :param output_path: Path where the HDR image will be saved.
    :type output_path: str | Path
    :param apply_stretch: Whether to stretch the radiance image to [0, 1] per channel. Default is ``True``.
    :type apply_stretch: bool
    :param kwargs_merging: Additional parameters for :func:`hdr_merge_images`.
    :returns: Path of the saved image.
    :rtype: Path
    """
    output_path = Path(output_path)
    filetype = output_path.suffix.lower()
    if filetype not in OUTPUT_FILETYPES:
        raise ValueError(f'Unsupported file type {filetype}')

    merged = hdr_merge_images(image_files, **kwargs_merging)
    if apply_stretch:
        merged = histogram_stretch(merged)

    save_image(buffer_to_image(merged, dtype=OUTPUT_FILETYPES[filetype]), output_path, format='rgb')
    logger.info(f"Saved HDR image to {output_path}")
    return output_path


def process_exposure_series(timestamp_group, root_dir, save_dir, suffix=DEFAULT_HDR_SUFFIX, **kwargs):
    """
    Merge the images of a single (rounded) timestamp and save the result.

    Errors are logged and not raised, so a single broken exposure series does not stop the processing of a
    directory.

    :param timestamp_group: Tuple of timestamp and Series of image paths, as yielded by ``Series.groupby``.
    :param root_dir: Root directory of the images, relative sub directories are kept in ``save_dir``.
    :param save_dir: Directory to save the HDR image.
    :param suffix: Suffix of the output file name, including the file type. Default is ``'_hdr.tiff'``.
    :param kwargs: Additional parameters for :func:`create_and_save_hdr`.
    :returns: Path of the saved image or None if no image was created.
    :rtype: Path | None
    """
    timestamp, image_paths = timestamp_group
    image_paths = sorted(image_paths)
    if len(image_paths) < 2:
        logger.warning(f'Skipping {timestamp}: only {len(image_paths)} image(s) in exposure series.')
        return None

    relative_path = Path(image_paths[0]).parent.relative_to(root_dir)
    output_path = Path(save_dir) / relative_path / (timestamp.strftime('%Y%m%d%H%M%S') + suffix)
    try:
        return create_and_save_hdr(image_paths, output_path, **kwargs)
    except Exception as e:
        logger.exception(f"Exposure series of timestamp {timestamp} failed with error {e}")
        return None


def process_directory(directory, save_dir, round_ts_to='30s', n_workers=0, **kwargs):
    """
    Processes a directory of images by grouping them into short time intervals and creating HDR images.

    This function performs the following steps:

    1. Groups image files in the specified directory by the timestamp in their file names, floored to
       ``round_ts_to``.
    2. For each group with at least two images, merges the exposure series to an HDR image.
    3. Saves the resulting HDR images to the specified output directory, keeping relative sub directories.

    :param directory: Path to the directory containing images named ``<%Y%m%d%H%M%S>[_<exposure in µs>].<ext>``.
    :type directory: str | Path
    :param save_dir: Path to the directory where HDR images will be saved.
    :type save_dir: str | Path
    :param round_ts_to: Time resolution for grouping images (e.g., '30s' (default), '1min').
    :type round_ts_to: str
    :param n_workers: Number of exposure series merged in parallel. Default is 0 (sequential).
    :type n_workers: int
    :param kwargs: Additional keyword arguments passed to :func:`create_and_save_hdr`.
    :type kwargs: dict
    :returns: Paths of the created HDR images (None for failed series) indexed by timestamp.
    :rtype: pandas.Series
    """
    directory = Path(directory)
    save_dir = Path(save_dir)
    if not directory.is_dir():
        raise FileNotFoundError(f'Directory {directory.absolute()} does not exist.')

    logger.info(f"Process directory {directory.absolute()} and save results in {save_dir.absolute()}")
    image_files = get_image_files(directory, as_series=True, round_to=round_ts_to)
    logger.info(f"Found {len(image_files)} images in total.")

    groups = [(timestamp, list(group)) for timestamp, group in image_files.groupby(level=0)]
    timestamps = [timestamp for timestamp, _ in groups]
    logger.info(f"Creating {len(timestamps)} hdr images.")
    if not timestamps:
        return pd.Series([], index=pd.DatetimeIndex([]), name='created_hdr', dtype=object)

    process = partial(process_exposure_series, root_dir=directory, save_dir=save_dir, **kwargs)
    if n_workers:
        results = parallel(process, groups, n_workers=n_workers, total=len(groups), progress=True)
    else:
        results = [process(group) for group in tqdm(groups)]
    return pd.Series(list(results), index=pd.DatetimeIndex(timestamps), name='created_hdr', dtype=object)
