# Licensed under the Apache License: http://www.apache.org/licenses/LICENSE-2.0
# For details: https://github.com/DLR-SF/sky_imaging/blob/main/NOTICE.txt

"""
Constants shared by the HDR modules and tools.
"""

# camera raw formats, decoded with LibRaw
RAW_EXTENSIONS = ['.dng', '.cr2', '.cr3', '.nef', '.arw', '.raf', '.orf', '.rw2', '.pef', '.srw']

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.tif', '.tiff', '.bmp', '.webp', '.jp2'] + RAW_EXTENSIONS

# channel counts the radiance estimator works on: grayscale or RGB
SUPPORTED_CHANNELS = (1, 3)

# per-channel calibration coefficients (R, G, B) applied on top of exposure time and gain
DEFAULT_CHANNEL_COEFFICIENTS = (1.0, 1.0, 1.0)

# ISO speed which corresponds to a sensor gain of 1.0
BASE_ISO = 100

DEFAULT_GAIN = 1.0

# output file type -> dtype of the encoded image, None keeps the float32 radiance values
OUTPUT_FILETYPES = {
    '.tiff': None,
    '.tif': None,
    '.png': 'uint16',
    '.jp2': 'uint16',
    '.jpg': 'uint8',
    '.jpeg': 'uint8',
}

DEFAULT_HDR_SUFFIX = '_hdr.tiff'

# filenames of exposure series are expected as <timestamp>_<exposure time in microseconds>.<ext>
EXPOSURE_TIME_UNIT = 1e-6
