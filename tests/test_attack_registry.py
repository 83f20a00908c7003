import numpy as np
import pytest

import attacks
from attack_registry import (ATTACKS, AttackKind, apply_attack, attack_category, default_parameters,
                             describe_parameters, get_attack)
from watermark_errors import InvalidInputError


def test_every_kind_is_registered():
    assert set(ATTACKS) == set(AttackKind)


@pytest.mark.parametrize("kind,expected", [
    (AttackKind.NONE, "None"),
    (AttackKind.JPEG_COMPRESSION, "Quality: 75.0%"),
    (AttackKind.JPEG_COMPRESSION_INTERNAL, "Quality: 75.0%"),
    (AttackKind.PNG_COMPRESSION, "Level: 5 (1-9)"),
    (AttackKind.ROTATION_45, "Angle: 45.0°"),
    (AttackKind.ROTATION_90, "Angle: 90.0°"),
    (AttackKind.RESIZE_75, "Scale: 75.0%"),
    (AttackKind.RESIZE_50, "Scale: 50.0%"),
    (AttackKind.MIRRORING, "Direction: horizontal"),
    (AttackKind.CROPPING, "Crop: 20.0%"),
    (AttackKind.GAUSSIAN_NOISE, "StdDev: 10.0"),
    (AttackKind.MEDIAN_FILTER, "Radius: 1"),
    (AttackKind.SHARPENING, "Amount: 1.0"),
])
def test_default_descriptions(kind, expected):
    assert describe_parameters(kind) == expected


def test_overrides_are_described():
    assert describe_parameters(AttackKind.JPEG_COMPRESSION, {"quality": 25}) == "Quality: 25.0%"
    assert describe_parameters(AttackKind.CROPPING, {"percentage": 0.1}) == "Crop: 10.0%"


def test_default_parameters_are_copies():
    params = default_parameters(AttackKind.JPEG_COMPRESSION)
    params["quality"] = 1
    assert default_parameters(AttackKind.JPEG_COMPRESSION) == {"quality": 75.0}


def test_lookup_by_name():
    assert get_attack("median_filter").func is attacks.median_filter
    assert get_attack(AttackKind.CROPPING).defaults == {"percentage": 0.2}
    with pytest.raises(InvalidInputError):
        get_attack("blur")


def test_categories():
    assert attack_category(AttackKind.PNG_COMPRESSION) == "compression"
    assert attack_category(AttackKind.ROTATION_90) == "rotation"
    assert attack_category(AttackKind.SHARPENING) == "filtering"


def test_apply_none_returns_a_copy(color_cover):
    out = apply_attack(color_cover, AttackKind.NONE)
    assert np.array_equal(out, color_cover)
    assert out is not color_cover


def test_apply_merges_parameters(color_cover):
    out = apply_attack(color_cover, AttackKind.MIRRORING, {"direction": "vertical"})
    assert np.array_equal(out, color_cover[::-1])
    a = apply_attack(color_cover, "GAUSSIAN_NOISE", {"seed": 5})
    b = apply_attack(color_cover, "GAUSSIAN_NOISE", {"seed": 5})
    assert np.array_equal(a, b)


def test_unknown_parameter_is_rejected(color_cover):
    with pytest.raises(InvalidInputError):
        apply_attack(color_cover, AttackKind.JPEG_COMPRESSION, {"qualty": 50})
    with pytest.raises(InvalidInputError):
        apply_attack(color_cover, AttackKind.MEDIAN_FILTER, {"seed": 1})


def test_display_names():
    assert AttackKind.ROTATION_45.display_name == "Rotation 45°"
    assert AttackKind.JPEG_COMPRESSION.display_name == "JPEG Compression"
