import numpy as np
import pytest
from PIL import Image

from hdr_core.errors import DimensionError, ValidationError
from hdr_core.image.conversion import buffer_to_image, image_to_buffer, quantize


def test_uint8_rgb_is_normalized():
    image = np.array([[[0, 51, 255]]], dtype=np.uint8)
    buffer = image_to_buffer(image)
    assert buffer.dtype == np.float32
    assert buffer.shape == (1, 1, 3)
    np.testing.assert_allclose(buffer[0, 0], [0.0, 0.2, 1.0], rtol=1e-6)


def test_uint16_grayscale_gets_channel_axis():
    image = np.array([[0, 65535], [32768, 13107]], dtype=np.uint16)
    buffer = image_to_buffer(image)
    assert buffer.shape == (2, 2, 1)
    np.testing.assert_allclose(buffer[..., 0], image / 65535.0, rtol=1e-6)


def test_float_values_are_kept():
    image = np.array([[[0.25, 1.5, -0.1]]], dtype=np.float64)
    buffer = image_to_buffer(image)
    assert buffer.dtype == np.float32
    np.testing.assert_allclose(buffer, image, rtol=1e-6)


def test_alpha_channels_are_dropped():
    rgba = np.zeros((3, 2, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    rgba[..., 1] = 255
    buffer = image_to_buffer(rgba)
    assert buffer.shape == (3, 2, 3)
    np.testing.assert_array_equal(buffer[..., 1], 1.0)
    np.testing.assert_array_equal(buffer[..., [0, 2]], 0.0)

    luma_alpha = np.stack([np.full((3, 2), 255, dtype=np.uint8), np.zeros((3, 2), dtype=np.uint8)], axis=-1)
    buffer = image_to_buffer(luma_alpha)
    assert buffer.shape == (3, 2, 1)
    np.testing.assert_array_equal(buffer, 1.0)


@pytest.mark.parametrize('shape', [(2, 2, 5), (2, 2, 3, 1), (4,)])
def test_unsupported_layouts_are_rejected(shape):
    with pytest.raises(ValidationError, match='unsupported channel layout'):
        image_to_buffer(np.zeros(shape, dtype=np.uint8))


def test_pil_images():
    gray = Image.fromarray(np.array([[0, 255]], dtype=np.uint8))
    assert image_to_buffer(gray).shape == (1, 2, 1)

    gray16 = Image.fromarray(np.array([[0, 65535]], dtype=np.uint16))
    np.testing.assert_allclose(image_to_buffer(gray16)[0, :, 0], [0.0, 1.0])

    rgba = Image.new('RGBA', (3, 2), (255, 0, 0, 10))
    buffer = image_to_buffer(rgba)
    assert buffer.shape == (2, 3, 3)
    np.testing.assert_array_equal(buffer[0, 0], [1.0, 0.0, 0.0])

    luma_alpha = Image.new('LA', (3, 2), (128, 0))
    assert image_to_buffer(luma_alpha).shape == (2, 3, 1)


def test_pil_non_rgb_modes_are_converted_to_rgb():
    cmyk = Image.new('CMYK', (2, 2), (0, 0, 0, 0))
    buffer = image_to_buffer(cmyk)
    assert buffer.shape == (2, 2, 3)
    np.testing.assert_array_equal(buffer, 1.0)

    palette = Image.new('RGB', (2, 2), (0, 255, 0)).convert('P')
    buffer = image_to_buffer(palette)
    assert buffer.shape == (2, 2, 3)
    np.testing.assert_array_equal(buffer[..., 1], 1.0)


def test_pil_palette_with_alpha_keeps_color():
    palette = Image.new('P', (2, 2), 1)
    palette.putpalette([0, 0, 0, 0, 255, 0])
    buffer = image_to_buffer(palette.convert('PA'))
    assert buffer.shape == (2, 2, 3)
    np.testing.assert_array_equal(buffer[..., 1], 1.0)
    np.testing.assert_array_equal(buffer[..., [0, 2]], 0.0)


def test_quantize_clamps_and_rounds():
    buffer = np.array([-0.5, 0.0, 0.25, 1.0, 3.0], dtype=np.float32)
    np.testing.assert_array_equal(quantize(buffer, np.uint16), [0, 0, 16384, 65535, 65535])
    np.testing.assert_array_equal(quantize(buffer, np.uint8), [0, 0, 64, 255, 255])


def test_single_channel_buffer_becomes_uint16_grayscale():
    buffer = np.array([[[0.0], [0.25]], [[1.0], [1.5]]], dtype=np.float32)
    image = buffer_to_image(buffer)
    assert image.dtype == np.uint16
    assert image.shape == (2, 2)
    np.testing.assert_array_equal(image, [[0, 16384], [65535, 65535]])


def test_rgb_buffer_keeps_float_radiance():
    buffer = np.array([[[0.5, 2.5, 100.0]]], dtype=np.float32)
    image = buffer_to_image(buffer)
    assert image.dtype == np.float32
    np.testing.assert_array_equal(image, buffer)
    assert image is not buffer


def test_rgb_buffer_quantized_output():
    buffer = np.array([[[0.5, 2.5, -1.0]]], dtype=np.float32)
    image = buffer_to_image(buffer, dtype=np.uint8)
    assert image.dtype == np.uint8
    np.testing.assert_array_equal(image, [[[128, 255, 0]]])


@pytest.mark.parametrize('shape', [(2, 2, 2), (2, 2, 4), (2, 2)])
def test_buffer_to_image_rejects_other_channel_counts(shape):
    with pytest.raises(DimensionError):
        buffer_to_image(np.zeros(shape, dtype=np.float32))


def test_roundtrip_of_8bit_image():
    image = np.arange(24, dtype=np.uint8).reshape(2, 4, 3) * 10
    np.testing.assert_array_equal(buffer_to_image(image_to_buffer(image), dtype=np.uint8), image)
