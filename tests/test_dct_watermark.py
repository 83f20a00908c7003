import numpy as np
import pytest

from attacks import png_compression
from dct_watermark import DctParams, block_capacity, dct_watermark_embed, dct_watermark_extract
from evaluation import calculate_ber
from jpeg_pipeline import transform_block
from watermark_errors import InvalidInputError, OversizeWatermarkError


def _to_uint8(plane):
    return np.clip(np.round(plane), 0, 255).astype(np.uint8)


def test_exact_recovery_on_64x64(mid_plane, bitmap_8):
    params = DctParams(block_size=8, coef_a=(3, 1), coef_b=(4, 1), strength=10.0)
    marked = dct_watermark_embed(mid_plane, bitmap_8, params)
    assert np.array_equal(dct_watermark_extract(marked, 8, 8, params), bitmap_8)


def test_png_cycle_keeps_watermark(mid_plane, bitmap_8):
    params = DctParams(strength=10.0)
    marked = _to_uint8(dct_watermark_embed(mid_plane, bitmap_8, params))
    attacked = png_compression(marked, level=9)
    extracted = dct_watermark_extract(attacked.astype(np.float64), 8, 8, params)
    assert calculate_ber(bitmap_8, extracted) < 0.05


def test_ordering_invariant_holds_per_block(mid_plane, bitmap_8):
    params = DctParams(strength=10.0)
    marked = dct_watermark_embed(mid_plane, bitmap_8, params)
    for index, bit in enumerate(bitmap_8.ravel()):
        by, bx = divmod(index, 8)
        coeffs = transform_block(marked[by * 8:(by + 1) * 8, bx * 8:(bx + 1) * 8])
        a, b = coeffs[3, 1], coeffs[4, 1]
        if bit:
            assert a <= b
        else:
            assert a > b
        assert abs(a - b) >= 10.0 - 1e-6


@pytest.mark.parametrize("coef_a,coef_b", [((3, 1), (4, 1)), ((4, 3), (5, 2))])
@pytest.mark.parametrize("strength", [5.0, 10.0, 15.0])
def test_round_trip_parameter_grid(mid_plane, rng, coef_a, coef_b, strength):
    bits = rng.randint(0, 2, size=(6, 8)).astype(bool)
    params = DctParams(coef_a=coef_a, coef_b=coef_b, strength=strength)
    marked = dct_watermark_embed(mid_plane, bits, params)
    assert np.array_equal(dct_watermark_extract(marked, 8, 6, params), bits)


def test_blocks_after_the_last_bit_are_untouched(mid_plane):
    bits = np.ones((1, 3), dtype=bool)
    marked = dct_watermark_embed(mid_plane, bits, DctParams())
    # blocks 0-2 of the first block row carry the bits
    assert np.allclose(marked[:8, 24:], mid_plane[:8, 24:])
    assert np.allclose(marked[8:, :], mid_plane[8:, :])


def test_partial_edge_blocks_are_ignored(rng):
    plane = rng.uniform(50, 200, size=(20, 20))
    assert block_capacity(plane.shape, 8) == 4
    bits = np.array([[True, False], [False, True]])
    marked = dct_watermark_embed(plane, bits, DctParams())
    assert np.array_equal(marked[16:, :], plane[16:, :])
    assert np.array_equal(dct_watermark_extract(marked, 2, 2, DctParams()), bits)


def test_capacity_violation(mid_plane):
    with pytest.raises(OversizeWatermarkError):
        dct_watermark_embed(mid_plane, np.ones((9, 8), dtype=bool), DctParams())
    with pytest.raises(OversizeWatermarkError):
        dct_watermark_extract(mid_plane, 8, 9, DctParams())


def test_input_plane_is_not_modified(mid_plane, bitmap_8):
    before = mid_plane.copy()
    dct_watermark_embed(mid_plane, bitmap_8, DctParams())
    assert np.array_equal(mid_plane, before)


def test_parameter_validation():
    with pytest.raises(InvalidInputError):
        DctParams(coef_a=(8, 1))
    with pytest.raises(InvalidInputError):
        DctParams(coef_a=(3, 1), coef_b=(3, 1))
    with pytest.raises(InvalidInputError):
        DctParams(strength=0)
    with pytest.raises(InvalidInputError):
        DctParams(block_size=7)


def test_lists_are_accepted_for_positions():
    params = DctParams(coef_a=[4, 3], coef_b=[5, 2])
    assert params.coef_a == (4, 3)
    assert params.describe() == "Block: 8, Coef1: (4,3), Coef2: (5,2), Strength: 10.0"
