import logging

import cv2
import numpy as np
import pytest

from hdr_core.config import config_loader
from hdr_tools.hdr.__main__ import main, parse_arguments


@pytest.fixture(autouse=True)
def restore_logging_and_config():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    config_loader.reset()


def _write_series(directory, values=(20, 80, 240), exposures=(1000, 4000, 16000), start=0):
    directory.mkdir(parents=True, exist_ok=True)
    files = []
    for i, (value, exposure) in enumerate(zip(values, exposures)):
        image = np.zeros((4, 5, 3), dtype=np.uint8)
        image[..., 0] = value
        image[:, 2:, 1] = 255
        path = directory / f'202405011200{start + 5 * i:02d}_{exposure}.png'
        assert cv2.imwrite(str(path), image)
        files.append(path)
    return files


def test_parse_arguments_requires_source():
    with pytest.raises(SystemExit):
        parse_arguments([])


def test_parse_arguments_rejects_image_dir_without_save_dir(tmp_path):
    with pytest.raises(SystemExit):
        parse_arguments(['--image_dir', str(tmp_path)])


def test_parse_arguments_rejects_exposures_with_image_dir(tmp_path):
    with pytest.raises(SystemExit):
        parse_arguments(['--image_dir', str(tmp_path), '--save_dir', str(tmp_path), '--exposures', '0.1'])


def test_parse_arguments_defaults(tmp_path):
    args = parse_arguments(['--images', 'a.png', 'b.png'])
    assert args.images == ['a.png', 'b.png']
    assert args.output == 'hdr_merged.tiff'
    assert not args.no_stretch
    assert args.exposures is None


def test_merge_images(tmp_path):
    files = _write_series(tmp_path / 'in')
    output = tmp_path / 'out' / 'merged.png'
    log_file = tmp_path / 'logs' / 'hdr.log'

    exit_code = main(['--images', *map(str, files), '--exposures', '0.001', '0.004', '0.016',
                      '--output', str(output), '--log_file', str(log_file)])

    assert exit_code == 0
    merged = cv2.imread(str(output), cv2.IMREAD_UNCHANGED)
    assert merged.dtype == np.uint16
    assert merged.shape == (4, 5, 3)
    assert 'Saved HDR image' in log_file.read_text()


def test_invalid_exposure_returns_error_code(tmp_path):
    files = _write_series(tmp_path / 'in', values=(20, 80), exposures=(1000, 4000))
    output = tmp_path / 'merged.png'

    exit_code = main(['--images', *map(str, files), '--exposures', '0', '0.004', '--output', str(output)])

    assert exit_code == 1
    assert not output.exists()


def test_config_disables_stretch(tmp_path):
    files = _write_series(tmp_path / 'in')
    config_file = tmp_path / 'hdr_cfg.yaml'
    config_file.write_text('hdr:\n  stretch: false\n  channel_coefficients: [2.0, 1.0, 1.0]\n')
    output = tmp_path / 'merged.tiff'

    assert main(['--images', *map(str, files), '--output', str(output), '--config', str(config_file)]) == 0

    merged = cv2.imread(str(output), cv2.IMREAD_UNCHANGED)
    assert merged.dtype == np.float32
    # OpenCV returns BGR, the green channel is the middle one in both orders
    expected_green = 3.0 / (1e-3 + 4e-3 + 16e-3)
    np.testing.assert_allclose(merged[0, 4, 1], expected_green, rtol=1e-5)


def test_image_dir(tmp_path):
    _write_series(tmp_path / 'in' / 'cam1')
    _write_series(tmp_path / 'in' / 'cam1', start=30)
    save_dir = tmp_path / 'hdr'

    assert main(['--image_dir', str(tmp_path / 'in'), '--save_dir', str(save_dir)]) == 0

    assert sorted(p.name for p in (save_dir / 'cam1').iterdir()) == ['20240501120000_hdr.tiff',
                                                                      '20240501120030_hdr.tiff']


@pytest.mark.parametrize('flag', ['--no_stretch', '--no-stretch'])
def test_no_stretch_flag(tmp_path, flag):
    assert parse_arguments(['--images', 'a.png', 'b.png', flag]).no_stretch

    files = _write_series(tmp_path / 'in')
    output = tmp_path / 'merged.tiff'
    assert main(['--images', *map(str, files), '--output', str(output), flag]) == 0
    assert cv2.imread(str(output), cv2.IMREAD_UNCHANGED).max() > 1.0
