import threading

import cv2
import numpy as np
import pytest

from kuwahara_filter import engine, processing
from kuwahara_filter.engine import apply_kuwahara, filter_pixel
from kuwahara_filter.errors import EmptyInput, FilterCancelled, InvalidParameters
from kuwahara_filter.params import FilterParameters, SelectionPolicy
from kuwahara_filter.raster import Raster


def _random_raster(height, width, seed=0, alpha=False):
    rng = np.random.default_rng(seed)
    channels = 4 if alpha else 3
    return Raster.from_array(rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8))


def _split_raster(width, height, left, right):
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, : width // 2] = left
    pixels[:, width // 2:] = right
    return Raster.from_array(pixels)


def test_output_keeps_dimensions():
    raster = _random_raster(7, 11)
    result = apply_kuwahara(raster, FilterParameters(radius=2))

    assert isinstance(result, Raster)
    assert (result.width, result.height) == (11, 7)
    assert result is not raster


@pytest.mark.parametrize("policy", list(SelectionPolicy))
def test_output_independent_of_partitioning(policy):
    raster = _random_raster(23, 17, seed=1)
    params = FilterParameters(radius=3, sector_count=6, policy=policy)

    reference = apply_kuwahara(raster, params, max_workers=1).tobytes()
    for workers, rows in [(2, 1), (4, 5), (3, 7), (8, None), (2, 100)]:
        result = apply_kuwahara(raster, params, max_workers=workers, rows_per_partition=rows)
        assert result.tobytes() == reference

    assert apply_kuwahara(raster, params).tobytes() == reference


@pytest.mark.parametrize("sector_count", [2, 4, 8])
@pytest.mark.parametrize("policy", list(SelectionPolicy))
def test_uniform_input_is_fixpoint(sector_count, policy):
    raster = Raster.uniform(9, 6, (37, 150, 222, 255))
    params = FilterParameters(radius=3, sector_count=sector_count, policy=policy)

    assert apply_kuwahara(raster, params) == raster


def test_single_pixel_is_unchanged():
    raster = Raster.uniform(1, 1, (12, 34, 56, 78))
    assert apply_kuwahara(raster, FilterParameters(radius=5)) == raster


def test_vertical_edge_is_preserved():
    raster = _split_raster(12, 8, (200, 30, 30), (20, 40, 220))

    result = apply_kuwahara(raster, FilterParameters(radius=2))

    assert result == raster
    blurred = cv2.blur(raster.rgb.copy(), (5, 5))
    assert not np.array_equal(blurred, raster.rgb)


def test_salt_noise_is_suppressed():
    pixels = np.zeros((5, 5, 3), dtype=np.uint8)
    pixels[2, 2] = 255
    raster = Raster.from_array(pixels)

    result = apply_kuwahara(raster, FilterParameters(radius=2, sector_count=4))

    # the widest quadrant holds 9 samples, one of them white
    assert result.pixel(2, 2) == (28, 28, 28, 255)


def test_salt_noise_is_suppressed_on_every_edge():
    pixels = np.zeros((9, 9, 3), dtype=np.uint8)
    for x, y in [(4, 0), (0, 4), (4, 8), (8, 4), (4, 4)]:
        pixels[y, x] = 255
    raster = Raster.from_array(pixels)

    result = apply_kuwahara(raster, FilterParameters(radius=2, sector_count=4))

    # top and left keep a full 3x3 quadrant, bottom and right reach 7 samples at best
    assert result.pixel(4, 0) == (28, 28, 28, 255)
    assert result.pixel(0, 4) == (28, 28, 28, 255)
    assert result.pixel(4, 8) == (36, 36, 36, 255)
    assert result.pixel(8, 4) == (36, 36, 36, 255)
    assert result.pixel(4, 4) == (28, 28, 28, 255)


@pytest.mark.parametrize("policy", list(SelectionPolicy))
def test_border_rows_and_columns_are_filtered(policy):
    raster = _random_raster(30, 30, seed=3)

    result = apply_kuwahara(raster, FilterParameters(radius=3, policy=policy))

    changed = np.any(result.rgb != raster.rgb, axis=-1)
    for edge in (changed[0], changed[-1], changed[:, 0], changed[:, -1]):
        assert edge.mean() > 0.5
    assert changed[1:-1, 1:-1].mean() > 0.5


def test_more_sectors_than_offsets_still_filters():
    raster = _random_raster(20, 20, seed=4)

    result = apply_kuwahara(raster, FilterParameters(radius=1, sector_count=12))

    assert result != raster
    assert np.any(result.rgb != raster.rgb, axis=-1).mean() > 0.5
    assert filter_pixel(raster, 7, 7, FilterParameters(radius=1, sector_count=12)) == result.pixel(7, 7)


@pytest.mark.parametrize("params, options", [
    (FilterParameters(radius=0), {}),
    (FilterParameters(sector_count=1), {}),
    (FilterParameters(sector_count=7), {}),
    (FilterParameters(sharpness=0.0), {}),
    (FilterParameters(), {"max_workers": 0}),
    (FilterParameters(), {"rows_per_partition": -2}),
])
def test_invalid_parameters_do_no_pixel_work(monkeypatch, params, options):
    calls = {"count": 0}

    def counting(*args, **kwargs):
        calls["count"] += 1
        raise AssertionError("sampling must not run")

    monkeypatch.setattr(processing, "accumulate_sectors", counting)
    monkeypatch.setattr(processing, "sample_neighborhood", counting)
    monkeypatch.setattr(processing, "pad_source", counting)

    raster = _random_raster(4, 4)
    with pytest.raises(InvalidParameters):
        apply_kuwahara(raster, params, **options)
    if not options:
        with pytest.raises(InvalidParameters):
            filter_pixel(raster, 0, 0, params)
    assert calls["count"] == 0


@pytest.mark.parametrize("shape", [(0, 5, 3), (5, 0, 4), (0, 0)])
def test_empty_input_rejected(shape):
    with pytest.raises(EmptyInput):
        apply_kuwahara(np.zeros(shape, dtype=np.uint8))


def test_accepts_plain_arrays():
    pixels = np.full((3, 4, 3), 90, dtype=np.uint8)
    result = apply_kuwahara(pixels, FilterParameters(radius=1))
    np.testing.assert_array_equal(result.rgb, pixels)


def test_alpha_copied_from_source():
    raster = _random_raster(6, 6, seed=5, alpha=True)
    result = apply_kuwahara(raster, FilterParameters(radius=2))
    np.testing.assert_array_equal(result.alpha, raster.alpha)


@pytest.mark.parametrize("sector_count", [4, 6, 8])
def test_scalar_path_matches_engine(sector_count):
    raster = _random_raster(7, 9, seed=sector_count, alpha=True)
    params = FilterParameters(radius=2, sector_count=sector_count)

    result = apply_kuwahara(raster, params, max_workers=2, rows_per_partition=2)

    for y in range(raster.height):
        for x in range(raster.width):
            assert filter_pixel(raster, x, y, params) == result.pixel(x, y)


def test_weighted_scalar_path_close_to_engine():
    raster = _random_raster(5, 6, seed=11)
    params = FilterParameters(radius=2, policy=SelectionPolicy.WEIGHTED, sharpness=2.0)

    result = apply_kuwahara(raster, params)

    for y in range(raster.height):
        for x in range(raster.width):
            expected = np.array(filter_pixel(raster, x, y, params), dtype=int)
            np.testing.assert_allclose(np.array(result.pixel(x, y), dtype=int), expected, atol=1)


def test_weighted_policy_differs_from_hard():
    raster = _random_raster(8, 8, seed=2)
    hard = apply_kuwahara(raster, FilterParameters(radius=2))
    weighted = apply_kuwahara(raster, FilterParameters(radius=2, policy=SelectionPolicy.WEIGHTED, sharpness=1.0))
    assert hard != weighted


def test_progress_reports_every_band():
    reports = []
    apply_kuwahara(_random_raster(10, 4), FilterParameters(radius=1), max_workers=3,
                   rows_per_partition=3, progress_callback=lambda done, total: reports.append((done, total)))

    assert len(reports) == 4
    assert sorted(done for done, _ in reports) == [1, 2, 3, 4]
    assert all(total == 4 for _, total in reports)


def test_cancel_before_start():
    event = threading.Event()
    event.set()

    with pytest.raises(FilterCancelled) as info:
        apply_kuwahara(_random_raster(6, 6), FilterParameters(radius=1), cancel_event=event)
    assert info.value.completed == 0


def test_cancel_between_partitions():
    event = threading.Event()

    def cancel_after_first(done, total):
        event.set()

    with pytest.raises(FilterCancelled) as info:
        apply_kuwahara(_random_raster(6, 6), FilterParameters(radius=1), max_workers=1,
                       rows_per_partition=1, cancel_event=event, progress_callback=cancel_after_first)
    assert info.value.completed == 1
    assert info.value.total == 6


def test_numpy_integer_options_accepted():
    raster = _random_raster(9, 5, seed=6)
    params = FilterParameters(radius=1)

    result = apply_kuwahara(raster, params, max_workers=np.int64(2), rows_per_partition=np.int32(2))

    assert result == apply_kuwahara(raster, params, max_workers=1)


def test_default_worker_count_is_positive():
    assert 1 <= engine.default_worker_count() <= engine.DEFAULT_MAX_WORKERS
