# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
Main tool for high-dynamic range (HDR) generation from exposure series


The tool works in two modes:

- ``--images``: merge the given image files (one exposure series) into a single HDR image ``--output``.
- ``--image_dir``: process a directory of exposure series. Images are grouped by the timestamp in their file names
  (``<%Y%m%d%H%M%S>_<exposure time in µs>.<ext>``) and each group is merged into one HDR image in ``--save_dir``.

Exposure times and gains are read from the EXIF metadata unless given with ``--exposures`` and ``--gains``.
Optional settings can be provided in a YAML config file (``--config``) under the key ``hdr``::

    hdr:
      channel_coefficients: [1.0, 1.0, 1.0]
      stretch: true
      round_ts_to: 30s
      n_workers: 0
      default_gain: 1.0

The merging is handled by the `hdr_core.image.hdr.pipeline` module.
"""

import argparse
import logging
import sys
from pathlib import Path

from fastcore.basics import ifnone

from hdr_core.config import config_loader
from hdr_core.config.logging_config import configure_logging
from hdr_core.errors import ValidationError
from hdr_core.image.hdr.pipeline import create_and_save_hdr, process_directory

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """
    Parse command-line arguments for HDR image generation.

    :param argv: Arguments to parse. Default is None (``sys.argv``).
    :type argv: list[str] | None
    :returns: Parsed arguments.
    :rtype: argparse.Namespace
    """
    parser = argparse.ArgumentParser(
        description="Script to merge exposure series to hdr images."
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--images',
        type=str,
        nargs='+',
        help="Image files of a single exposure series (at least two)."
    )
    source.add_argument(
        '--image_dir',
        type=str,
        help="Path of image source directory, containing exposure series. " \
             "Each image file is expected to be named as follows <%%Y%%m%%d%%H%%M%%S>_<exposure_time>.* " \
             "where exposure_time is an integer indicating the exposure time in microseconds " \
             "(only used if the EXIF metadata does not contain it)."
    )
    parser.add_argument(
        '--output',
        type=str,
        default='hdr_merged.tiff',
        help="Output file for --images. The suffix selects the file type (.tiff, .png, .jp2, .jpg)."
    )
    parser.add_argument(
        '--save_dir',
        type=str,
        help="Path of target directory to save merged images for --image_dir."
    )
    parser.add_argument(
        '--exposures',
        type=float,
        nargs='+',
        help="Exposure times in seconds, one per image of --images. Overrides EXIF metadata."
    )
    parser.add_argument(
        '--gains',
        type=float,
        nargs='+',
        help="Sensor gains, one per image of --images. Overrides EXIF metadata."
    )
    parser.add_argument(
        '--no_stretch', '--no-stretch',
        dest='no_stretch',
        action='store_true',
        help="Do not stretch the merged radiance image to [0, 1]."
    )
    parser.add_argument(
        '--config',
        type=str,
        required=False,
        help="Path of a YAML config file."
    )
    parser.add_argument(
        '--log_file',
        type=str,
        required=False,
        help="Path of log file to write logs."
    )
    args = parser.parse_args(argv)
    if args.image_dir is not None and args.save_dir is None:
        parser.error('--save_dir is required with --image_dir')
    if args.image_dir is not None and (args.exposures or args.gains):
        parser.error('--exposures and --gains can only be used with --images')
    return args


def main(argv=None):
    """
    Main execution function for HDR merging.

    This function:

    1. Parses command-line arguments and the optional config file.
    2. Configures logging.
    3. Merges the given images or calls `process_directory` to merge all exposure series of a directory.

    :param argv: Command line arguments. Default is None (``sys.argv``).
    :returns: Exit code, 0 on success.
    :rtype: int
    """
    args = parse_arguments(argv)
    configure_logging(log_file=args.log_file)

    if args.config is not None:
        config_loader.load_config(args.config)
    config = config_loader.get('hdr', {}) or {}

    kwargs = dict(
        channel_coefficients=config.get('channel_coefficients'),
        apply_stretch=not args.no_stretch and config.get('stretch', True),
        default_gain=config.get('default_gain', 1.0),
    )
    n_workers = ifnone(config.get('n_workers'), 0)

    try:
        if args.images is not None:
            create_and_save_hdr(args.images, Path(args.output), exposure_times=args.exposures, gains=args.gains,
                                n_workers=n_workers, **kwargs)
        else:
            process_directory(Path(args.image_dir), Path(args.save_dir),
                              round_ts_to=config.get('round_ts_to', '30s'), n_workers=n_workers, **kwargs)
    except ValidationError as e:
        logger.error(f'Could not merge images: {e}')
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
