"""
Bảng tra từ loại tấn công tới hàm thực hiện, tham số mặc định và mô tả.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional

import numpy as np

import attacks
from watermark_errors import InvalidInputError

logger = logging.getLogger(__name__)


class AttackKind(Enum):
    NONE = "No Attack"
    JPEG_COMPRESSION = "JPEG Compression"
    JPEG_COMPRESSION_INTERNAL = "JPEG Compression (Internal)"
    PNG_COMPRESSION = "PNG Compression"
    ROTATION_45 = "Rotation 45°"
    ROTATION_90 = "Rotation 90°"
    RESIZE_75 = "Resize 75%"
    RESIZE_50 = "Resize 50%"
    MIRRORING = "Mirroring"
    CROPPING = "Cropping"
    GAUSSIAN_NOISE = "Gaussian Noise"
    MEDIAN_FILTER = "Median Filter"
    HISTOGRAM_EQUALIZATION = "Histogram Equalization"
    SHARPENING = "Sharpening"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name) -> "AttackKind":
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise InvalidInputError(f"Không có tấn công '{name}'") from None


class AttackSpec(NamedTuple):
    func: Callable[..., np.ndarray]
    defaults: Dict[str, Any]
    describe: Callable[[Dict[str, Any]], str]
    # Nhóm dùng cho đánh giá độ bền vững
    category: str


def _no_attack(image: np.ndarray) -> np.ndarray:
    return np.array(image, copy=True)


ATTACKS = {
    AttackKind.NONE: AttackSpec(
        _no_attack, {}, lambda p: "None", "none"),
    AttackKind.JPEG_COMPRESSION: AttackSpec(
        attacks.jpeg_compression, {"quality": 75.0},
        lambda p: f"Quality: {float(p['quality'])}%", "compression"),
    AttackKind.JPEG_COMPRESSION_INTERNAL: AttackSpec(
        attacks.jpeg_compression_internal, {"quality": 75.0},
        lambda p: f"Quality: {float(p['quality'])}%", "compression"),
    AttackKind.PNG_COMPRESSION: AttackSpec(
        attacks.png_compression, {"level": 5},
        lambda p: f"Level: {int(p['level'])} (1-9)", "compression"),
    AttackKind.ROTATION_45: AttackSpec(
        attacks.rotation, {"degrees": 45.0},
        lambda p: f"Angle: {float(p['degrees'])}°", "rotation"),
    AttackKind.ROTATION_90: AttackSpec(
        attacks.rotation, {"degrees": 90.0},
        lambda p: f"Angle: {float(p['degrees'])}°", "rotation"),
    AttackKind.RESIZE_75: AttackSpec(
        attacks.resize, {"scale": 0.75},
        lambda p: f"Scale: {round(float(p['scale']) * 100, 2)}%", "resize"),
    AttackKind.RESIZE_50: AttackSpec(
        attacks.resize, {"scale": 0.5},
        lambda p: f"Scale: {round(float(p['scale']) * 100, 2)}%", "resize"),
    AttackKind.MIRRORING: AttackSpec(
        attacks.mirroring, {"direction": attacks.MIRROR_HORIZONTAL},
        lambda p: f"Direction: {p['direction']}", "geometric"),
    AttackKind.CROPPING: AttackSpec(
        attacks.cropping, {"percentage": 0.2},
        lambda p: f"Crop: {round(float(p['percentage']) * 100, 2)}%", "cropping"),
    AttackKind.GAUSSIAN_NOISE: AttackSpec(
        attacks.gaussian_noise, {"stddev": 10.0},
        lambda p: f"StdDev: {float(p['stddev'])}", "noise"),
    AttackKind.MEDIAN_FILTER: AttackSpec(
        attacks.median_filter, {"radius": 1},
        lambda p: f"Radius: {int(p['radius'])}", "filtering"),
    AttackKind.HISTOGRAM_EQUALIZATION: AttackSpec(
        attacks.histogram_equalization, {},
        lambda p: "Default", "filtering"),
    AttackKind.SHARPENING: AttackSpec(
        attacks.sharpening, {"amount": 1.0},
        lambda p: f"Amount: {float(p['amount'])}", "filtering"),
}


def get_attack(kind) -> AttackSpec:
    return ATTACKS[AttackKind.from_name(kind)]


def default_parameters(kind) -> Dict[str, Any]:
    return dict(get_attack(kind).defaults)


def merge_parameters(kind, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Ghi đè params lên tham số mặc định của kind, từ chối tên không xác định"""
    spec = get_attack(kind)
    merged = dict(spec.defaults)
    extra = dict(params or {})
    # seed là tham số tùy chọn của tấn công nhiễu
    allowed = set(spec.defaults) | ({"seed"} if spec.func is attacks.gaussian_noise else set())
    unknown = set(extra) - allowed
    if unknown:
        raise InvalidInputError(f"Tham số không hợp lệ cho {AttackKind.from_name(kind).name}: {sorted(unknown)}")
    merged.update(extra)
    return merged


def describe_parameters(kind, params: Optional[Mapping[str, Any]] = None) -> str:
    return get_attack(kind).describe(merge_parameters(kind, params))


def attack_category(kind) -> str:
    return get_attack(kind).category


def apply_attack(image: np.ndarray, kind, params: Optional[Mapping[str, Any]] = None) -> np.ndarray:
    """
    Thực hiện một tấn công với params ghi đè lên tham số mặc định.

    Parameters:
    -----------
    image: ảnh xám hoặc BGR kiểu uint8
    kind: AttackKind hoặc tên của nó
    params: tham số ghi đè (tùy chọn)

    Returns:
    --------
    attacked: ảnh uint8 sau tấn công
    """
    kind = AttackKind.from_name(kind)
    merged = merge_parameters(kind, params)
    logger.debug("Áp dụng %s (%s)", kind.display_name, get_attack(kind).describe(merged))
    return get_attack(kind).func(image, **merged)
