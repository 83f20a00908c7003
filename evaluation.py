# evaluation.py
"""
Các độ đo chất lượng và độ bền vững của thủy vân.

- BER: tỷ lệ bit thủy vân bị sai
- NC: tương quan chuẩn hóa của hai ảnh nhị phân ánh xạ về +/-1
- PSNR: tỷ số tín hiệu đỉnh trên nhiễu của hai ảnh (100 dB khi giống hệt)
- WNR: tỷ số thủy vân trên nhiễu giữa ảnh gốc và ảnh đã nhúng
- SSIM: độ tương đồng cấu trúc (scikit-image)

Kèm theo các mức đánh giá suy ra từ BER và bản ghi kết quả cho mỗi tấn
công được đánh giá.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np
from skimage.metrics import mean_squared_error
from skimage.metrics import structural_similarity as ssim

from attack_registry import AttackKind, attack_category
from binary_watermark import to_bitmap
from watermark_errors import DimensionMismatchError, InvalidInputError

logger = logging.getLogger(__name__)

PERFECT_PSNR = 100.0

ROBUSTNESS_THRESHOLDS = {
    "compression": 0.15,
    "rotation": 0.30,
    "cropping": 0.25,
    "noise": 0.22,
    "filtering": 0.18,
}
DEFAULT_ROBUSTNESS_THRESHOLD = 0.20

QUALITY_LEVELS = (
    (0.01, "Excellent"),
    (0.05, "Very Good"),
    (0.10, "Good"),
    (0.20, "Fair"),
    (0.40, "Poor"),
)


def _same_size(a, b, metric: str, strict: bool) -> bool:
    if a is None or b is None:
        raise InvalidInputError(f"{metric}: ảnh đầu vào là None")
    if a.shape[:2] == b.shape[:2]:
        return True
    message = f"{metric}: hai ảnh có kích thước khác nhau {a.shape[:2]} và {b.shape[:2]}"
    if strict:
        raise DimensionMismatchError(message)
    logger.error(message)
    return False


def calculate_ber(original, extracted, strict: bool = False) -> float:
    """
    Tỷ lệ lỗi bit giữa hai thủy vân (ảnh nhị phân hoặc ảnh thường).

    Hai ảnh khác kích thước cho 1.0 (trường hợp xấu nhất), hoặc ném
    DimensionMismatchError khi strict.
    """
    if original is None or extracted is None:
        raise InvalidInputError("BER: đầu vào là None")
    original, extracted = np.asarray(original), np.asarray(extracted)
    if not _same_size(original, extracted, "BER", strict):
        return 1.0
    a, b = to_bitmap(original), to_bitmap(extracted)
    return float(np.mean(a != b))


def calculate_nc(original, extracted, strict: bool = False) -> float:
    """Tương quan chuẩn hóa của hai thủy vân ánh xạ về -1/+1"""
    if original is None or extracted is None:
        raise InvalidInputError("NC: đầu vào là None")
    original, extracted = np.asarray(original), np.asarray(extracted)
    if not _same_size(original, extracted, "NC", strict):
        return 0.0
    a = np.where(to_bitmap(original), 1.0, -1.0)
    b = np.where(to_bitmap(extracted), 1.0, -1.0)

    sum_a, sum_b = np.sum(a * a), np.sum(b * b)
    if sum_a == 0 or sum_b == 0:
        return 0.0
    return float(np.sum(a * b) / math.sqrt(sum_a * sum_b))


def calculate_psnr(original, processed, strict: bool = False) -> float:
    """PSNR (dB) trên mọi kênh màu; 100 khi hai ảnh giống hệt"""
    if original is None or processed is None:
        raise InvalidInputError("PSNR: ảnh đầu vào là None")
    original, processed = np.asarray(original), np.asarray(processed)
    if not _same_size(original, processed, "PSNR", strict) or original.shape != processed.shape:
        if strict:
            raise DimensionMismatchError(f"PSNR: kích thước {original.shape} và {processed.shape} khác nhau")
        return 0.0
    mse = mean_squared_error(original.astype(np.float64), processed.astype(np.float64))
    if mse == 0:
        return PERFECT_PSNR
    return float(10.0 * math.log10(255.0 ** 2 / mse))


def calculate_wnr(original, watermarked, strict: bool = False) -> float:
    """
    Tỷ số thủy vân trên nhiễu (dB).

    Năng lượng của ảnh gốc chia cho năng lượng của phần chênh lệch; bằng 0
    khi hai ảnh giống hệt.
    """
    if original is None or watermarked is None:
        raise InvalidInputError("WNR: ảnh đầu vào là None")
    original = np.asarray(original, dtype=np.float64)
    watermarked = np.asarray(watermarked, dtype=np.float64)
    if not _same_size(original, watermarked, "WNR", strict) or original.shape != watermarked.shape:
        if strict:
            raise DimensionMismatchError(f"WNR: kích thước {original.shape} và {watermarked.shape} khác nhau")
        return 0.0

    signal = float(np.sum(original ** 2))
    noise = float(np.sum((original - watermarked) ** 2))
    if noise == 0:
        return 0.0
    if signal == 0:
        return float("-inf")
    return 10.0 * math.log10(signal / noise)


def calculate_ssim(original, processed) -> float:
    """Độ tương đồng cấu trúc của hai ảnh uint8 cùng kích thước"""
    original, processed = np.asarray(original), np.asarray(processed)
    _same_size(original, processed, "SSIM", strict=True)
    smallest = min(original.shape[:2])
    win_size = min(7, smallest if smallest % 2 else smallest - 1)
    if win_size < 3:
        raise InvalidInputError(f"SSIM cần ảnh tối thiểu 3x3, nhận được {original.shape[:2]}")
    channel_axis = -1 if original.ndim == 3 else None
    return float(ssim(original, processed, data_range=255, win_size=win_size, channel_axis=channel_axis))


def quality_rating(ber: float) -> str:
    for limit, label in QUALITY_LEVELS:
        if ber < limit:
            return label
    return "Failed"


def robustness_threshold(attack) -> float:
    """Ngưỡng BER của một loại tấn công (hoặc tên nhóm tấn công)"""
    if attack in ROBUSTNESS_THRESHOLDS:
        return ROBUSTNESS_THRESHOLDS[attack]
    try:
        category = attack_category(attack)
    except InvalidInputError:
        return DEFAULT_ROBUSTNESS_THRESHOLD
    return ROBUSTNESS_THRESHOLDS.get(category, DEFAULT_ROBUSTNESS_THRESHOLD)


def robustness_rating(ber: float, attack=None) -> str:
    threshold = robustness_threshold(attack) if attack is not None else DEFAULT_ROBUSTNESS_THRESHOLD
    if ber < threshold / 4.0:
        return "High"
    if ber < threshold / 2.0:
        return "Good"
    if ber < threshold:
        return "Moderate"
    return "Low"


@dataclass(frozen=True)
class EvaluationResult:
    """Kết quả của một lần nhúng, tấn công và trích xuất"""
    attack: AttackKind
    method: str
    component: str
    parameter: str
    ber: float
    nc: float
    psnr: float
    wnr: float
    attack_parameters: str = ""
    watermark_config: str = ""
    extraction: str = ""
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))

    @property
    def quality_rating(self) -> str:
        return quality_rating(self.ber)

    @property
    def robustness_rating(self) -> str:
        return robustness_rating(self.ber, self.attack)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["attack"] = self.attack.name
        data["attack_name"] = self.attack.display_name
        data["quality_rating"] = self.quality_rating
        data["robustness_rating"] = self.robustness_rating
        return data
