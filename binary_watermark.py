# binary_watermark.py
"""
Các hàm xử lý thủy vân nhị phân.

Chuyển ảnh thủy vân bất kỳ thành ảnh nhị phân theo ngưỡng độ sáng
ITU-R BT.601 và xáo trộn / khôi phục ảnh nhị phân bằng hoán vị Fisher-Yates
có khóa. Mọi phương pháp nhúng đều làm việc trên ảnh nhị phân tạo ở đây.
"""

import hashlib
from typing import Optional

import numpy as np

from watermark_errors import InvalidInputError

LUMA_THRESHOLD = 128


# Các hàm xử lý bit
def get_bit(val, pos):
    """Lấy bit ở vị trí pos (0-7) từ byte val"""
    return (val >> pos) & 1

def set_bit(val, pos):
    """Đặt bit 1 ở vị trí pos (0-7) trong byte val"""
    return (val | (1 << pos)) & 0xFF

def clear_bit(val, pos):
    """Đặt bit 0 ở vị trí pos (0-7) trong byte val"""
    return (val & ((~(1 << pos)) & 0xFF)) & 0xFF


def luma(image: np.ndarray) -> np.ndarray:
    """
    Độ sáng BT.601 (số nguyên) của ảnh.

    Parameters:
    -----------
    image: ảnh xám (H, W) hoặc ảnh BGR/BGRA (H, W, C)

    Returns:
    --------
    luma: mảng số nguyên (H, W)
    """
    img = np.asarray(image, dtype=np.float64)
    if img.ndim == 2:
        return np.floor(img).astype(np.int64)
    if img.ndim == 3 and img.shape[2] == 1:
        return np.floor(img[:, :, 0]).astype(np.int64)
    if img.ndim == 3 and img.shape[2] >= 3:
        # Thứ tự kênh của OpenCV: B, G, R
        b, g, r = img[:, :, 0], img[:, :, 1], img[:, :, 2]
        return np.floor(0.299 * r + 0.587 * g + 0.114 * b).astype(np.int64)
    raise InvalidInputError(f"Kích thước ảnh không được hỗ trợ: {img.shape}")


def to_bitmap(image: Optional[np.ndarray]) -> np.ndarray:
    """
    Chuyển ảnh thủy vân thành ảnh nhị phân.

    Điểm ảnh có độ sáng lớn hơn 128 thành 1. Đầu vào kiểu bool được trả
    về dưới dạng bản sao.

    Parameters:
    -----------
    image: ảnh thủy vân (xám, BGR hoặc bool)

    Returns:
    --------
    bitmap: mảng bool (h, w)
    """
    if image is None:
        raise InvalidInputError("Ảnh thủy vân là None")
    image = np.asarray(image)
    if image.size == 0:
        raise InvalidInputError("Ảnh thủy vân rỗng")
    if image.dtype == np.bool_:
        if image.ndim != 2:
            raise InvalidInputError("Thủy vân kiểu bool phải là mảng 2 chiều")
        return image.copy()
    return luma(image) > LUMA_THRESHOLD


def bitmap_to_image(bitmap: np.ndarray) -> np.ndarray:
    """Chuyển ảnh nhị phân thành ảnh đen trắng uint8 (1 -> 255, 0 -> 0)"""
    if bitmap is None:
        raise InvalidInputError("Ảnh nhị phân là None")
    return np.where(np.asarray(bitmap, dtype=bool), 255, 0).astype(np.uint8)


def key_to_seed(key: str) -> int:
    """Tạo hạt giống 32 bit cho bộ sinh số ngẫu nhiên từ khóa văn bản"""
    hashed = hashlib.sha256(str(key).encode()).digest()
    return int.from_bytes(hashed[:4], "big")


def permutation_table(size: int, key: str) -> np.ndarray:
    """
    Tạo bảng hoán vị có khóa cho `size` phần tử.

    Xáo trộn Fisher-Yates từ chỉ số cuối về 1, đổi chỗ phần tử i với j
    chọn ngẫu nhiên đều trong [0, i].
    """
    if size < 0:
        raise InvalidInputError("Kích thước hoán vị không được âm")
    rng = np.random.RandomState(key_to_seed(key))
    table = np.arange(size, dtype=np.int64)
    for i in range(size - 1, 0, -1):
        j = rng.randint(0, i + 1)
        table[i], table[j] = table[j], table[i]
    return table


def permute_bits(bitmap: np.ndarray, key: str) -> np.ndarray:
    """
    Xáo trộn ảnh nhị phân bằng hoán vị sinh từ khóa.

    Phần tử ở chỉ số i được chuyển tới table[i] (chỉ số theo hàng).
    """
    if bitmap is None:
        raise InvalidInputError("Ảnh nhị phân là None")
    bits = np.asarray(bitmap, dtype=bool)
    flat = bits.ravel()
    table = permutation_table(flat.size, key)
    out = np.empty_like(flat)
    out[table] = flat
    return out.reshape(bits.shape)


def unpermute_bits(bitmap: np.ndarray, key: str) -> np.ndarray:
    """Nghịch đảo của permute_bits: vị trí i được đọc lại từ table[i]"""
    if bitmap is None:
        raise InvalidInputError("Ảnh nhị phân là None")
    bits = np.asarray(bitmap, dtype=bool)
    flat = bits.ravel()
    table = permutation_table(flat.size, key)
    return flat[table].reshape(bits.shape)
