from datetime import datetime

import pandas as pd
import pytest

from hdr_core.utils.datetime_handling import parse_datetime
from hdr_core.utils.filesystem import get_files, get_image_files, parse_exposure_from_name


def test_parse_datetime():
    assert parse_datetime('20240501123005_1000') == datetime(2024, 5, 1, 12, 30, 5)
    assert parse_datetime('cam1_2024-05-01_12-30', datetime_format='%Y-%m-%d_%H-%M') == datetime(2024, 5, 1, 12, 30)
    assert parse_datetime('no_timestamp') is None
    with pytest.raises(ValueError):
        parse_datetime('no_timestamp', raise_on_fail=True)


def test_parse_exposure_from_name():
    assert parse_exposure_from_name('20240501123005_1000.jpg') == pytest.approx(1e-3)
    assert parse_exposure_from_name('20240501123005_250.PNG', unit=1e-3) == pytest.approx(0.25)
    assert parse_exposure_from_name('20240501123005.jpg') is None


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b'')
    return path


def test_get_files_filters_extensions_and_hidden(tmp_path):
    _touch(tmp_path / 'a.jpg')
    _touch(tmp_path / 'b.TXT')
    _touch(tmp_path / '.hidden.jpg')
    _touch(tmp_path / 'sub' / 'c.png')
    _touch(tmp_path / '.cache' / 'd.png')

    assert [p.name for p in get_files(tmp_path, extensions=['.jpg', '.png'])] == ['a.jpg', 'c.png']
    assert [p.name for p in get_files(tmp_path, extensions=['.jpg', '.png'], recursive=False)] == ['a.jpg']
    assert [p.name for p in get_files(tmp_path, extensions=['.txt'])] == ['b.TXT']


def test_get_image_files_as_series(tmp_path):
    _touch(tmp_path / '20240501120000_1000.jpg')
    _touch(tmp_path / '20240501120010_4000.jpg')
    _touch(tmp_path / '20240501120040_1000.jpg')
    _touch(tmp_path / 'notes.jpg')

    series = get_image_files(tmp_path, as_series=True, round_to='30s')

    assert len(series) == 3
    assert list(series.index) == [pd.Timestamp('2024-05-01 12:00:00')] * 2 + [pd.Timestamp('2024-05-01 12:00:30')]
