import numpy as np
import pytest

from jpeg_pipeline import (LUMA_TABLE, CHROMA_TABLE, block_transform, compress_internal, from_luma_chroma,
                           hadamard_matrix, inverse_block_transform, quantization_matrix, quantize,
                           inverse_quantize, to_luma_chroma, transform_block)
from watermark_errors import InvalidInputError


@pytest.mark.parametrize("kind", ["dct", "wht"])
def test_block_transform_is_invertible(rng, kind):
    plane = rng.uniform(0, 255, size=(32, 48))
    coeffs = block_transform(plane, kind, 8)
    assert np.allclose(inverse_block_transform(coeffs, kind, 8), plane)


@pytest.mark.parametrize("kind", ["dct", "wht"])
def test_dc_coefficient_of_constant_block(kind):
    coeffs = transform_block(np.full((8, 8), 10.0), kind)
    assert coeffs[0, 0] == pytest.approx(80.0)
    assert np.allclose(coeffs.ravel()[1:], 0.0)


def test_partial_blocks_are_copied(rng):
    plane = rng.uniform(0, 255, size=(10, 12))
    coeffs = block_transform(plane, "dct", 8)
    assert np.array_equal(coeffs[8:, :], plane[8:, :])
    assert np.array_equal(coeffs[:, 8:], plane[:, 8:])


def test_hadamard_is_orthonormal():
    h = hadamard_matrix(8)
    assert np.allclose(h @ h.T, np.eye(8))


def test_invalid_block_sizes():
    with pytest.raises(InvalidInputError):
        block_transform(np.zeros((8, 8)), "wht", 6)
    with pytest.raises(InvalidInputError):
        block_transform(np.zeros((8, 8)), "dct", 3)
    with pytest.raises(InvalidInputError):
        block_transform(np.zeros((8, 8)), "fft", 8)


def test_quantization_tables_scale_with_quality():
    assert np.array_equal(quantization_matrix(100), np.ones((8, 8)))
    assert np.allclose(quantization_matrix(50), LUMA_TABLE)
    assert np.allclose(quantization_matrix(25, luma=False), 2 * CHROMA_TABLE)
    assert np.allclose(quantization_matrix(75), 0.5 * LUMA_TABLE)
    assert quantization_matrix(50, block_size=16).shape == (16, 16)


def test_quantize_round_trip_error_is_bounded(rng):
    coeffs = rng.uniform(-200, 200, size=(16, 16))
    restored = inverse_quantize(quantize(coeffs, 50), 50)
    table = np.tile(LUMA_TABLE, (2, 2))
    assert np.all(np.abs(restored - coeffs) <= table / 2 + 1e-9)


def test_color_round_trip_is_near_lossless(rng):
    image = rng.randint(0, 256, size=(16, 16, 3)).astype(np.uint8)
    y, cb, cr = to_luma_chroma(image)
    assert y.shape == (16, 16)
    restored = from_luma_chroma(y, cb, cr)
    assert restored.dtype == np.uint8
    assert np.max(np.abs(restored.astype(int) - image.astype(int))) <= 1


def test_luma_matches_bt601(rng):
    image = np.array([[[0, 0, 255]]], dtype=np.uint8)
    y, _, _ = to_luma_chroma(image)
    assert y[0, 0] == pytest.approx(0.299 * 255, abs=0.5)


def test_gray_has_no_chroma(gray_cover):
    y, cb, cr = to_luma_chroma(gray_cover)
    assert cb is None and cr is None
    assert np.array_equal(from_luma_chroma(y), gray_cover)


def test_internal_compression(color_cover, gray_cover):
    high = compress_internal(color_cover, 100)
    low = compress_internal(color_cover, 10)
    assert high.shape == color_cover.shape and high.dtype == np.uint8
    err_high = np.mean(np.abs(high.astype(float) - color_cover))
    err_low = np.mean(np.abs(low.astype(float) - color_cover))
    assert err_high < 2.0
    assert err_low > err_high
    assert compress_internal(gray_cover, 50).shape == gray_cover.shape
