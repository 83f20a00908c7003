# attacks.py
"""
Các tấn công làm suy giảm ảnh dùng để đo độ bền vững của thủy vân.

Mỗi tấn công nhận ảnh uint8 (xám hoặc BGR) cùng tham số và trả về ảnh
uint8 mới cùng kích thước. Tham số số nằm ngoài khoảng cho phép được kẹp
lại. Tấn công đi qua bộ mã hóa ảnh trả về ảnh đầu vào khi mã hóa lỗi.
"""

import logging
import math
from typing import Optional

import cv2
import numpy as np

from jpeg_pipeline import compress_internal
from watermark_errors import CodecFailureError, InvalidInputError

logger = logging.getLogger(__name__)

MIRROR_HORIZONTAL = "horizontal"
MIRROR_VERTICAL = "vertical"


def _check_image(image: np.ndarray) -> np.ndarray:
    if image is None:
        raise InvalidInputError("Ảnh cần tấn công là None")
    image = np.asarray(image)
    if image.ndim not in (2, 3) or image.size == 0:
        raise InvalidInputError(f"Kích thước ảnh không được hỗ trợ: {image.shape}")
    return image


def _clamp(value, low, high):
    return max(low, min(high, value))


def _encode_decode(image: np.ndarray, ext: str, flags) -> np.ndarray:
    ok, buffer = cv2.imencode(ext, image, flags)
    if not ok:
        raise CodecFailureError(f"Mã hóa sang {ext} thất bại")
    decoded = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if decoded is None:
        raise CodecFailureError(f"Giải mã dữ liệu {ext} thất bại")
    return decoded


# Nén ảnh
def jpeg_compression(image: np.ndarray, quality: float = 75.0) -> np.ndarray:
    """Nén rồi giải nén bằng bộ mã hóa JPEG của OpenCV với chất lượng cho trước (1-100)"""
    image = _check_image(image)
    quality = _clamp(float(quality), 1.0, 100.0)
    try:
        return _encode_decode(image, ".jpg", [cv2.IMWRITE_JPEG_QUALITY, int(round(quality))])
    except (cv2.error, CodecFailureError) as e:
        logger.error("Tấn công nén JPEG thất bại, trả về ảnh đầu vào: %s", e)
        return image.copy()


def jpeg_compression_internal(image: np.ndarray, quality: float = 75.0) -> np.ndarray:
    """DCT theo khối và lượng tử hóa, không dùng bộ mã hóa ngoài"""
    image = _check_image(image)
    quality = _clamp(float(quality), 1.0, 100.0)
    return compress_internal(image, quality)


def png_compression(image: np.ndarray, level: int = 5) -> np.ndarray:
    """
    Nén và giải nén PNG nhiều lần.

    Mức càng thấp càng nhiều vòng: max(1, 10 - level) lần.
    """
    image = _check_image(image)
    level = int(_clamp(int(level), 1, 9))
    cycles = max(1, 10 - level)
    result = image.copy()
    try:
        for _ in range(cycles):
            result = _encode_decode(result, ".png", [cv2.IMWRITE_PNG_COMPRESSION, level])
    except (cv2.error, CodecFailureError) as e:
        logger.error("Tấn công nén PNG thất bại, trả về ảnh đầu vào: %s", e)
        return image.copy()
    return result


# Biến đổi hình học
def rotation(image: np.ndarray, degrees: float = 45.0) -> np.ndarray:
    """
    Xoay ảnh theo chiều kim đồng hồ một góc degrees.

    Bội số của 90 được ánh xạ chính xác, giữ toàn bộ nội dung (kích thước
    bị hoán đổi với 90 và 270). Góc khác được xoay quanh tâm trên khung lớn
    hơn rồi cắt về kích thước ban đầu nên mất các góc ảnh.
    """
    image = _check_image(image)
    normalized = float(degrees) % 360.0
    if normalized % 90.0 == 0:
        return np.ascontiguousarray(np.rot90(image, k=-int(normalized // 90)))

    h, w = image.shape[:2]
    rad = math.radians(normalized)
    cos, sin = abs(math.cos(rad)), abs(math.sin(rad))
    new_w = max(w, int(math.floor(w * cos + h * sin)))
    new_h = max(h, int(math.floor(w * sin + h * cos)))

    # Góc của OpenCV ngược chiều kim đồng hồ
    matrix = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), -normalized, 1.0)
    matrix[0, 2] += (new_w - w) / 2.0
    matrix[1, 2] += (new_h - h) / 2.0
    rotated = cv2.warpAffine(image, matrix, (new_w, new_h), flags=cv2.INTER_LINEAR,
                             borderMode=cv2.BORDER_CONSTANT, borderValue=0)

    x0, y0 = (new_w - w) // 2, (new_h - h) // 2
    return np.ascontiguousarray(rotated[y0:y0 + h, x0:x0 + w])


def resize(image: np.ndarray, scale: float = 0.75) -> np.ndarray:
    """Thu nhỏ theo tỷ lệ scale (0-1, tối thiểu 1x1) rồi phóng to lại"""
    image = _check_image(image)
    scale = _clamp(float(scale), 0.0, 1.0)
    h, w = image.shape[:2]
    small_w, small_h = max(1, int(w * scale)), max(1, int(h * scale))
    small = cv2.resize(image, (small_w, small_h), interpolation=cv2.INTER_LINEAR)
    return cv2.resize(small, (w, h), interpolation=cv2.INTER_LINEAR)


def mirroring(image: np.ndarray, direction: str = MIRROR_HORIZONTAL) -> np.ndarray:
    """Lật trái phải ('horizontal') hoặc trên dưới ('vertical')"""
    image = _check_image(image)
    direction = str(direction).lower()
    if direction not in (MIRROR_HORIZONTAL, MIRROR_VERTICAL):
        logger.warning("Không rõ hướng lật '%s', lật theo chiều dọc", direction)
    return cv2.flip(image, 1 if direction == MIRROR_HORIZONTAL else 0)


def crop_region(image: np.ndarray, percentage: float = 0.2) -> np.ndarray:
    """Cắt bỏ percentage x kích thước ở mỗi cạnh (0-0.5)"""
    image = _check_image(image)
    percentage = _clamp(float(percentage), 0.0, 0.5)
    h, w = image.shape[:2]
    dx, dy = int(w * percentage), int(h * percentage)
    # Giữ lại ít nhất một điểm ảnh
    dx, dy = min(dx, (w - 1) // 2), min(dy, (h - 1) // 2)
    return image[dy:h - dy, dx:w - dx].copy()


def cropping(image: np.ndarray, percentage: float = 0.2) -> np.ndarray:
    """Cắt mọi cạnh rồi phóng phần còn lại về kích thước ban đầu"""
    image = _check_image(image)
    h, w = image.shape[:2]
    cropped = crop_region(image, percentage)
    return cv2.resize(cropped, (w, h), interpolation=cv2.INTER_LINEAR)


# Nhiễu và lọc
def gaussian_noise(image: np.ndarray, stddev: float = 10.0, seed: Optional[int] = None) -> np.ndarray:
    """Thêm nhiễu Gauss cho từng kênh; truyền seed để có kết quả lặp lại được"""
    image = _check_image(image)
    stddev = max(0.0, float(stddev))
    rng = np.random.RandomState(seed)
    noisy = image.astype(np.float64) + rng.normal(0.0, stddev, image.shape)
    # Cắt phần thập phân như ép kiểu số nguyên, rồi kẹp giá trị
    return np.clip(noisy.astype(np.int64), 0, 255).astype(np.uint8)


def median_filter(image: np.ndarray, radius: int = 1) -> np.ndarray:
    """Trung vị trên lân cận (2r+1)^2, r trong 1-5, biên được nhân bản"""
    image = _check_image(image)
    radius = int(_clamp(int(radius), 1, 5))
    return cv2.medianBlur(np.ascontiguousarray(image, dtype=np.uint8), 2 * radius + 1)


def histogram_equalization(image: np.ndarray) -> np.ndarray:
    """Cân bằng histogram của kênh Y, giữ nguyên các kênh màu"""
    image = _check_image(image)
    color = image.ndim == 3 and image.shape[2] >= 3
    if color:
        ycrcb = cv2.cvtColor(np.ascontiguousarray(image[:, :, :3]), cv2.COLOR_BGR2YCrCb)
        y = ycrcb[:, :, 0]
    else:
        y = image if image.ndim == 2 else image[:, :, 0]

    hist = np.bincount(y.ravel(), minlength=256)
    cdf = np.cumsum(hist)
    lut = np.clip(np.round(255.0 * cdf / y.size), 0, 255).astype(np.uint8)
    equalized = lut[y]

    if not color:
        return equalized.reshape(image.shape)
    ycrcb[:, :, 0] = equalized
    return cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2BGR)


def sharpening(image: np.ndarray, amount: float = 1.0) -> np.ndarray:
    """
    Làm sắc nét 3x3: tâm 1+4a, lân cận cạnh -a, lân cận góc -a/4 (a trong 0-2).

    Điểm ảnh ở biên được chép từ ảnh đầu vào.
    """
    image = _check_image(image)
    amount = _clamp(float(amount), 0.0, 2.0)
    side, corner = -amount, -amount / 4.0
    kernel = np.array([[corner, side, corner],
                       [side, 1.0 + 4.0 * amount, side],
                       [corner, side, corner]], dtype=np.float32)

    filtered = cv2.filter2D(image.astype(np.float32), -1, kernel, borderType=cv2.BORDER_REPLICATE)
    result = np.clip(np.round(filtered), 0, 255).astype(np.uint8)
    result[0, :], result[-1, :] = image[0, :], image[-1, :]
    result[:, 0], result[:, -1] = image[:, 0], image[:, -1]
    return result
