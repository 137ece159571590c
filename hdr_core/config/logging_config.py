# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
Logging setup shared by the command-line tools.
"""

import logging
from pathlib import Path

LOG_FORMAT = '%(levelname)s - %(asctime)s - %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(log_file=None, level=logging.INFO):
    """
    Configure the root logger with a console handler and, optionally, a file handler.

    Calling it again replaces the handlers set up by a previous call.

    :param log_file: Path of the log file. If None, logs are only written to the console.
    :type log_file: str | Path | None
    :param level: Logging level. Default is ``logging.INFO``.
    :type level: int
    """
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT, handlers=handlers, force=True)
