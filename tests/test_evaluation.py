import dataclasses
import math

import numpy as np
import pytest

from attack_registry import AttackKind
from evaluation import (EvaluationResult, calculate_ber, calculate_nc, calculate_psnr, calculate_ssim,
                        calculate_wnr, quality_rating, robustness_rating, robustness_threshold)
from watermark_errors import DimensionMismatchError


def test_identity_metrics(color_cover, bitmap_32):
    assert calculate_psnr(color_cover, color_cover) == 100.0
    assert calculate_ber(bitmap_32, bitmap_32) == 0.0
    assert calculate_nc(bitmap_32, bitmap_32) == pytest.approx(1.0)
    assert calculate_wnr(color_cover, color_cover) == 0.0
    assert calculate_ssim(color_cover, color_cover) == pytest.approx(1.0)


def test_ber_counts_mismatches():
    a = np.array([[True, True, False, False]])
    b = np.array([[True, False, True, False]])
    assert calculate_ber(a, b) == 0.5


def test_ber_accepts_images():
    image = np.array([[0, 255], [255, 0]], dtype=np.uint8)
    assert calculate_ber(image, image > 128) == 0.0


def test_ber_dimension_mismatch():
    a, b = np.zeros((4, 4), dtype=bool), np.zeros((4, 5), dtype=bool)
    assert calculate_ber(a, b) == 1.0
    with pytest.raises(DimensionMismatchError):
        calculate_ber(a, b, strict=True)


def test_nc_of_inverted_watermark(bitmap_32):
    assert calculate_nc(bitmap_32, ~bitmap_32) == pytest.approx(-1.0)
    assert -1.0 <= calculate_nc(bitmap_32, np.ones_like(bitmap_32)) <= 1.0


def test_nc_dimension_mismatch():
    assert calculate_nc(np.zeros((2, 2), dtype=bool), np.zeros((3, 3), dtype=bool)) == 0.0


def test_psnr_known_value():
    a = np.zeros((8, 8, 3), dtype=np.uint8)
    b = np.ones((8, 8, 3), dtype=np.uint8)
    assert calculate_psnr(a, b) == pytest.approx(10 * math.log10(255.0 ** 2))


def test_psnr_dimension_mismatch():
    a, b = np.zeros((8, 8), dtype=np.uint8), np.zeros((8, 9), dtype=np.uint8)
    assert calculate_psnr(a, b) == 0.0
    with pytest.raises(DimensionMismatchError):
        calculate_psnr(a, b, strict=True)


def test_wnr_known_value():
    original = np.full((2, 2), 10.0)
    watermarked = np.full((2, 2), 11.0)
    assert calculate_wnr(original, watermarked) == pytest.approx(20.0)


@pytest.mark.parametrize("ber,label", [
    (0.0, "Excellent"), (0.0099, "Excellent"), (0.01, "Very Good"), (0.05, "Good"),
    (0.1, "Fair"), (0.2, "Poor"), (0.39, "Poor"), (0.4, "Failed"), (1.0, "Failed"),
])
def test_quality_rating(ber, label):
    assert quality_rating(ber) == label


def test_robustness_thresholds():
    assert robustness_threshold(AttackKind.JPEG_COMPRESSION) == 0.15
    assert robustness_threshold(AttackKind.PNG_COMPRESSION) == 0.15
    assert robustness_threshold(AttackKind.ROTATION_45) == 0.30
    assert robustness_threshold(AttackKind.CROPPING) == 0.25
    assert robustness_threshold(AttackKind.GAUSSIAN_NOISE) == 0.22
    assert robustness_threshold(AttackKind.MEDIAN_FILTER) == 0.18
    assert robustness_threshold(AttackKind.RESIZE_50) == 0.20
    assert robustness_threshold("unknown") == 0.20


@pytest.mark.parametrize("ber,label", [(0.03, "High"), (0.05, "Good"), (0.1, "Moderate"), (0.15, "Low")])
def test_robustness_rating_for_compression(ber, label):
    assert robustness_rating(ber, AttackKind.JPEG_COMPRESSION) == label


def test_robustness_rating_default_threshold():
    assert robustness_rating(0.04) == "High"
    assert robustness_rating(0.19) == "Moderate"
    assert robustness_rating(0.25, AttackKind.ROTATION_90) == "Moderate"


def test_evaluation_result_record():
    result = EvaluationResult(attack=AttackKind.CROPPING, method="DCT", component="Y",
                              parameter="Block: 8", ber=0.02, nc=0.95, psnr=38.0, wnr=30.0)
    assert result.quality_rating == "Very Good"
    assert result.robustness_rating == "High"
    assert not result.failed
    data = result.to_dict()
    assert data["attack"] == "CROPPING"
    assert data["attack_name"] == "Cropping"
    assert data["robustness_rating"] == "High"
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.ber = 0.5
