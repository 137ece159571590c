# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

import re
from datetime import datetime

_PLACEHOLDER_RE = {
    '%Y': r'\d{4}',
    '%y': r'\d{2}',
    '%m': r'\d{2}',
    '%d': r'\d{2}',
    '%H': r'\d{2}',
    '%M': r'\d{2}',
    '%S': r'\d{2}',
}


def parse_datetime(dt_string, datetime_format="%Y%m%d%H%M%S", raise_on_fail=False):
    """
    Extract timestamp from string into datetime object.

    :param dt_string: String containing a timestamp, e.g. a file name like ``20240501123000_1000.jpg``.
    :type dt_string: str
    :param datetime_format: Datetime format template with the following placeholders:
        %Y year, %y two-digit year, %m month, %d day, %H hour, %M minute, %S second. Default is "%Y%m%d%H%M%S".
    :type datetime_format: str
    :param raise_on_fail: Flag to decide whether to raise an error or return None
        if no timestamp could be extracted. Default is ``False``.
    :type raise_on_fail: bool
    :return: Timestamp from given string.
    :rtype: datetime.datetime
    """
    pattern = re.escape(datetime_format)
    for placeholder, regex in _PLACEHOLDER_RE.items():
        pattern = pattern.replace(re.escape(placeholder), regex)
    match = re.search(pattern, dt_string)

    if match is None:
        if raise_on_fail:
            raise ValueError(f"Could not extract timestamp from filename: {dt_string}")
        return None

    try:
        return datetime.strptime(match.group(0), datetime_format)
    except ValueError:
        # digits at the right place, but not a valid date (e.g. month 13)
        if raise_on_fail:
            raise
        return None
