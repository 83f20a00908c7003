# dct_watermark.py
"""
Thủy vân DCT theo khối dùng cặp hệ số.

Mỗi khối của ảnh gốc mang một bit thủy vân, mã hóa bằng thứ tự tương đối
của hai hệ số DCT trong khối:

- bit 0: hệ số A > hệ số B
- bit 1: hệ số A <= hệ số B

Khi hai hệ số cách nhau ít hơn cường độ nhúng, chúng được đẩy ra xa để
thứ tự vẫn giữ được sau nhiễu lượng tử hóa nhẹ. Các khối được duyệt theo
hàng, song song với thứ tự bit của thủy vân; khi trích xuất chỉ cần kích
thước khối, hai vị trí hệ số và kích thước thủy vân (phương pháp mù).
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from binary_watermark import to_bitmap
from jpeg_pipeline import inverse_transform_block, transform_block
from watermark_errors import InvalidInputError, OversizeWatermarkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DctParams:
    block_size: int = 8
    coef_a: Tuple[int, int] = (3, 1)
    coef_b: Tuple[int, int] = (4, 1)
    strength: float = 10.0

    def __post_init__(self):
        # Cấu hình JSON trả về list
        object.__setattr__(self, "coef_a", tuple(int(v) for v in self.coef_a))
        object.__setattr__(self, "coef_b", tuple(int(v) for v in self.coef_b))
        if self.block_size < 2 or self.block_size % 2:
            raise InvalidInputError(f"Kích thước khối phải là số chẵn >= 2, nhận được {self.block_size}")
        for coef in (self.coef_a, self.coef_b):
            if len(coef) != 2 or not all(0 <= v < self.block_size for v in coef):
                raise InvalidInputError(f"Hệ số {coef} nằm ngoài khối {self.block_size}x{self.block_size}")
        if self.coef_a == self.coef_b:
            raise InvalidInputError("Hai vị trí hệ số phải khác nhau")
        if self.strength <= 0:
            raise InvalidInputError(f"Cường độ phải dương, nhận được {self.strength}")

    def describe(self) -> str:
        return (f"Block: {self.block_size}, Coef1: ({self.coef_a[0]},{self.coef_a[1]}), "
                f"Coef2: ({self.coef_b[0]},{self.coef_b[1]}), Strength: {float(self.strength)}")


def block_capacity(shape: Tuple[int, int], block_size: int) -> int:
    """Số khối đầy đủ (= số bit nhúng được) của mặt phẳng ảnh"""
    return (shape[0] // block_size) * (shape[1] // block_size)


def _block_origins(shape: Tuple[int, int], block_size: int, count: int):
    """Góc trên trái của `count` khối đầu tiên theo thứ tự hàng"""
    blocks_x = shape[1] // block_size
    for index in range(count):
        by, bx = divmod(index, blocks_x)
        yield by * block_size, bx * block_size


def _order_pair(a: float, b: float, bit: bool, strength: float) -> Tuple[float, float]:
    """Trả về (A, B) thỏa thứ tự của bit với khoảng cách ít nhất bằng strength"""
    lo, hi = min(a, b), max(a, b)
    if hi - lo <= strength:
        lo -= strength / 2.0
        hi += strength / 2.0
    if bit:
        return lo, hi
    # bit 0 cần A lớn hơn hẳn B
    return hi, lo


def dct_watermark_embed(plane: np.ndarray, watermark: np.ndarray, params: DctParams = DctParams()) -> np.ndarray:
    """
    Nhúng thủy vân nhị phân vào các cặp hệ số DCT.

    Parameters:
    -----------
    plane: mặt phẳng ảnh gốc (H, W)
    watermark: ảnh nhị phân (h, w) hoặc ảnh thủy vân
    params: DctParams

    Returns:
    --------
    watermarked: mặt phẳng float64 cùng kích thước
    """
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh gốc là None")
    bits = to_bitmap(watermark).ravel()
    watermarked = np.array(plane, dtype=np.float64, copy=True)
    if watermarked.ndim != 2:
        raise InvalidInputError(f"Mặt phẳng ảnh gốc phải là mảng 2 chiều, nhận được {watermarked.shape}")

    n = params.block_size
    capacity = block_capacity(watermarked.shape, n)
    if capacity < bits.size:
        raise OversizeWatermarkError(
            f"Thủy vân cần {bits.size} khối nhưng ảnh chỉ có {capacity} khối {n}x{n}"
        )

    (ay, ax), (by, bx) = params.coef_a, params.coef_b
    for bit, (y, x) in zip(bits, _block_origins(watermarked.shape, n, bits.size)):
        coeffs = transform_block(watermarked[y:y + n, x:x + n])
        coeffs[ay, ax], coeffs[by, bx] = _order_pair(coeffs[ay, ax], coeffs[by, bx], bool(bit), params.strength)
        watermarked[y:y + n, x:x + n] = inverse_transform_block(coeffs)

    logger.debug("Đã nhúng DCT %d bit (%s)", bits.size, params.describe())
    return watermarked


def dct_watermark_extract(plane: np.ndarray, width: int, height: int, params: DctParams = DctParams()) -> np.ndarray:
    """
    Khôi phục thủy vân từ thứ tự của các cặp hệ số.

    Parameters:
    -----------
    plane: mặt phẳng đã nhúng (có thể đã bị tấn công)
    width, height: kích thước thủy vân
    params: DctParams đã dùng khi nhúng

    Returns:
    --------
    bitmap: mảng bool (height, width)
    """
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh là None")
    plane = np.asarray(plane, dtype=np.float64)
    n = params.block_size
    count = width * height
    capacity = block_capacity(plane.shape, n)
    if capacity < count:
        raise OversizeWatermarkError(
            f"Thủy vân cần {count} khối nhưng ảnh chỉ có {capacity} khối {n}x{n}"
        )

    (ay, ax), (by, bx) = params.coef_a, params.coef_b
    bits = np.zeros(count, dtype=bool)
    for index, (y, x) in enumerate(_block_origins(plane.shape, n, count)):
        coeffs = transform_block(plane[y:y + n, x:x + n])
        bits[index] = coeffs[ay, ax] <= coeffs[by, bx]
    return bits.reshape(height, width)
