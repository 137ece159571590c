# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

import os
import re
from pathlib import Path

import pandas as pd

from hdr_core.utils.datetime_handling import parse_datetime
from hdr_core.config.constants import IMAGE_EXTENSIONS, EXPOSURE_TIME_UNIT

_EXPOSURE_RE = re.compile(r"_([0-9]+)\.[A-Za-z0-9]+$")


def _get_files(p, fs, extensions=None, substring=None):
    """
    Get all files in path with 'extensions' and a name containing a 'substring'.

    :param p: (str) directory path
    :param fs: (list str) filenames.
    :param extensions: (set str) File extensions to filter file list. Default is None.
    :param substring: (str) Substring in filename to filter file list. Default is None.
    :return: (list Path) File paths.
    """

    p = Path(p)
    res = [p / f for f in fs if not f.startswith('.')
           and ((not extensions) or f'.{f.split(".")[-1].lower()}' in extensions)
           and ((not substring) or substring in f)]

    return res


def get_files(path, extensions=(), substring=None, recursive=True, followlinks=True):
    """
    Get all files in `path` with optional `extensions` or `substring`, optionally `recursive`.

    :param path: (str) directory path
    :param extensions: (list str) File extensions to filter file list, i.e. [".tif", ".jpg"]. Default is ().
    :param substring: (str) Substring in filename to filter file list. Default is None.
    :param recursive: (bool) If True, visit files in subfolders. Default is True.
    :param followlinks: (bool) If True, visit directories pointed to by symlinks, on systems that support them.
        Default is True.
    :return: (list Path) File paths, sorted.
    """

    path = Path(path)

    extensions = {e.lower() for e in extensions}

    if recursive:
        res = []
        for p, d, f in os.walk(path, followlinks=followlinks):
            d.sort()
            f.sort()
            d[:] = [o for o in d if not o.startswith('.')]
            res += _get_files(p, f, extensions, substring)
    else:
        f = [o.name for o in os.scandir(path) if o.is_file()]
        res = _get_files(path, f, extensions, substring)
        res.sort(key=lambda p: str(p))
    return res


def get_image_files(path, recursive=True, extensions=IMAGE_EXTENSIONS, substring=None, as_series=False,
                    dt_format="%Y%m%d%H%M%S", round_to=None):
    """
    Get image files in `path`, optionally recursive and with `substring`.

    :param path: (str) directory path
    :param recursive: (bool) If True, visit files in subfolders. Default is True.
    :param extensions: (list str) File extension to filter file list. Default is IMAGE_EXTENSIONS.
    :param substring: (str) Substring in filename to filter file list. Default is None.
    :param as_series: (bool) if True, return a pandas series indexed by the timestamps in the file names.
        Default is False.
    :param dt_format: (str) Datetime format template of the file names. Default is "%Y%m%d%H%M%S".
    :param round_to: (str) Value to round to, i.e. '1min', '30s'. When None no rounding is done. Default is None.
    :return: (list Path or Pandas series) Image file paths.
    """

    img_files = get_files(path, extensions=extensions, substring=substring, recursive=recursive)

    if as_series:
        img_files = image_filelist_to_pandas_series(img_files, dt_format=dt_format, round_to=round_to)

    return img_files


def image_filelist_to_pandas_series(img_files, dt_format="%Y%m%d%H%M%S", round_to=None, drop_nat=True):
    """
    Convert list of image files with datetime names into pandas Series.

    :param img_files: (list Path) Image file paths
    :param dt_format: (str) Datetime format template, see :func:`parse_datetime`. Default is "%Y%m%d%H%M%S".
    :param round_to: (str) Value to floor to, i.e. '1min', '30s'. When None no rounding is done. Default is None.
    :param drop_nat: (bool) Flag to determine whether to drop entries where the timestamp could not be extracted.
        Default is True.
    :return: (Pandas series) Image file paths.
    """

    series = pd.Series(img_files, dtype=object)
    series.index = pd.DatetimeIndex([parse_datetime(Path(x).stem, datetime_format=dt_format) for x in img_files])

    if drop_nat:
        series = series[series.index.notnull()]

    if round_to is not None:
        series.index = series.index.floor(round_to)

    return series


def parse_exposure_from_name(name, unit=EXPOSURE_TIME_UNIT):
    """
    Parse the exposure time from a file name tail: \\*_<exposure>.<ext>

    :param name: (str) File name.
    :param unit: (float) Unit of the integer exposure in the file name in seconds. Default is microseconds.
    :return: (float) Exposure time in seconds or None if the file name does not contain one.
    """
    m = _EXPOSURE_RE.search(str(name))
    return int(m.group(1)) * unit if m else None
