# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
This module defines the errors raised while building exposure samples and merging them to high-dynamic range images.
"""


class ValidationError(ValueError):
    """
    Raised when caller-supplied data violates a precondition of the HDR merge.

    Examples are too few images, images of different size, an unsupported channel layout or a non-positive exposure
    time or gain. It is always raised before any numeric work starts.

    :param message: Human readable description of the failed precondition.
    :type message: str
    :param parameter_name: Name of the offending parameter, if the error refers to a single parameter.
    :type parameter_name: str | None
    """

    def __init__(self, message, parameter_name=None):
        super().__init__(message)
        self.message = message
        self.parameter_name = parameter_name

    def __str__(self):
        if self.parameter_name is None:
            return self.message
        return f'Invalid value for {self.parameter_name!r}: {self.message}'


class DimensionError(RuntimeError):
    """
    Raised when a pixel buffer does not have the (height, width, channels) layout with 1 or 3 channels.

    This indicates a programming error in a collaborator rather than bad user input and is not meant to be retried.
    """
    pass
