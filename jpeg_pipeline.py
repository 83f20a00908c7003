# jpeg_pipeline.py
"""
Các thành phần kiểu JPEG: chuyển không gian màu, biến đổi theo khối
(DCT / Walsh-Hadamard) và lượng tử hóa với bảng JPEG chuẩn.

Phương pháp DCT dùng biến đổi theo khối, còn tấn công JPEG nội bộ chạy cả
chuỗi biến đổi, lượng tử hóa và biến đổi ngược.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from watermark_errors import InvalidInputError

logger = logging.getLogger(__name__)

LUMA_TABLE = np.array([
    [16, 11, 10, 16, 24, 40, 51, 61],
    [12, 12, 14, 19, 26, 58, 60, 55],
    [14, 13, 16, 24, 40, 57, 69, 56],
    [14, 17, 22, 29, 51, 87, 80, 62],
    [18, 22, 37, 56, 68, 109, 103, 77],
    [24, 35, 55, 64, 81, 104, 113, 92],
    [49, 64, 78, 87, 103, 121, 120, 101],
    [72, 92, 95, 98, 112, 100, 103, 99],
], dtype=np.float64)

CHROMA_TABLE = np.array([
    [17, 18, 24, 47, 99, 99, 99, 99],
    [18, 21, 26, 66, 99, 99, 99, 99],
    [24, 26, 56, 99, 99, 99, 99, 99],
    [47, 66, 99, 99, 99, 99, 99, 99],
    [99, 99, 99, 99, 99, 99, 99, 99],
    [99, 99, 99, 99, 99, 99, 99, 99],
    [99, 99, 99, 99, 99, 99, 99, 99],
    [99, 99, 99, 99, 99, 99, 99, 99],
], dtype=np.float64)

TRANSFORM_KINDS = ("dct", "wht")


# Không gian màu
def to_luma_chroma(image: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
    """
    Tách ảnh thành các mặt phẳng Y, Cb, Cr (float64, khoảng 0-255).

    Ảnh xám không có thành phần màu: trả về (Y, None, None).
    """
    if image is None:
        raise InvalidInputError("Ảnh đầu vào là None")
    if image.ndim == 2:
        return image.astype(np.float64), None, None
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0].astype(np.float64), None, None

    bgr = image[:, :, :3].astype(np.float32) / 255.0
    ycrcb = cv2.cvtColor(bgr, cv2.COLOR_BGR2YCrCb).astype(np.float64) * 255.0
    return ycrcb[:, :, 0], ycrcb[:, :, 2], ycrcb[:, :, 1]


def from_luma_chroma(y: np.ndarray, cb: Optional[np.ndarray] = None, cr: Optional[np.ndarray] = None) -> np.ndarray:
    """Dựng lại ảnh uint8 (ảnh xám khi thiếu thành phần màu, ngược lại là BGR)"""
    if y is None:
        raise InvalidInputError("Mặt phẳng Y là None")
    if cb is None or cr is None:
        return np.clip(np.round(y), 0, 255).astype(np.uint8)

    ycrcb = np.dstack([y, cr, cb]).astype(np.float32) / 255.0
    bgr = cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2BGR).astype(np.float64) * 255.0
    return np.clip(np.round(bgr), 0, 255).astype(np.uint8)


# Biến đổi theo khối
def _check_block_size(kind: str, block_size: int):
    if kind not in TRANSFORM_KINDS:
        raise InvalidInputError(f"Không có phép biến đổi '{kind}', cần một trong {TRANSFORM_KINDS}")
    if block_size < 2:
        raise InvalidInputError(f"Kích thước khối phải ít nhất là 2, nhận được {block_size}")
    if kind == "dct" and block_size % 2:
        raise InvalidInputError(f"Kích thước khối DCT phải là số chẵn, nhận được {block_size}")
    if kind == "wht" and block_size & (block_size - 1):
        raise InvalidInputError(f"Kích thước khối Hadamard phải là lũy thừa của 2, nhận được {block_size}")


def hadamard_matrix(n: int) -> np.ndarray:
    """Ma trận Hadamard Sylvester trực chuẩn bậc n (lũy thừa của 2)"""
    h = np.array([[1.0]])
    while h.shape[0] < n:
        h = np.block([[h, h], [h, -h]])
    return h / np.sqrt(n)


def transform_block(block: np.ndarray, kind: str = "dct") -> np.ndarray:
    """Biến đổi thuận 2 chiều của một khối vuông"""
    block = block.astype(np.float64)
    if kind == "dct":
        return cv2.dct(block)
    h = hadamard_matrix(block.shape[0])
    return h @ block @ h.T


def inverse_transform_block(coeffs: np.ndarray, kind: str = "dct") -> np.ndarray:
    """Nghịch đảo của transform_block"""
    coeffs = coeffs.astype(np.float64)
    if kind == "dct":
        return cv2.idct(coeffs)
    h = hadamard_matrix(coeffs.shape[0])
    return h.T @ coeffs @ h


def _apply_blockwise(matrix: np.ndarray, block_size: int, func) -> np.ndarray:
    if matrix is None:
        raise InvalidInputError("Ma trận là None")
    out = np.array(matrix, dtype=np.float64, copy=True)
    rows, cols = out.shape[:2]
    # Khối thiếu ở mép phải/dưới được giữ nguyên
    for i in range(0, rows - block_size + 1, block_size):
        for j in range(0, cols - block_size + 1, block_size):
            out[i:i + block_size, j:j + block_size] = func(out[i:i + block_size, j:j + block_size])
    return out


def block_transform(matrix: np.ndarray, kind: str = "dct", block_size: int = 8) -> np.ndarray:
    """
    Áp dụng biến đổi thuận cho mọi khối đầy đủ của mặt phẳng ảnh.

    Parameters:
    -----------
    matrix: mặt phẳng 2 chiều
    kind: 'dct' hoặc 'wht'
    block_size: cạnh của khối

    Returns:
    --------
    coefficients: mảng float64 cùng kích thước
    """
    _check_block_size(kind, block_size)
    return _apply_blockwise(matrix, block_size, lambda b: transform_block(b, kind))


def inverse_block_transform(matrix: np.ndarray, kind: str = "dct", block_size: int = 8) -> np.ndarray:
    """Nghịch đảo của block_transform (sai khác do làm tròn số thực)"""
    _check_block_size(kind, block_size)
    return _apply_blockwise(matrix, block_size, lambda b: inverse_transform_block(b, kind))


# Lượng tử hóa
def quantization_matrix(quality: float, block_size: int = 8, luma: bool = True) -> np.ndarray:
    """
    Bảng JPEG chuẩn co giãn theo chất lượng (1-100).

    Chất lượng 100 cho bảng toàn số 1. Bảng cho kích thước khối khác được
    kéo giãn từ bảng 8x8 bằng nội suy lân cận gần nhất.
    """
    quality = float(np.clip(quality, 1, 100))
    if quality >= 100:
        return np.ones((block_size, block_size))

    if quality >= 50:
        alpha = 2.0 - 2.0 * quality / 100.0
    else:
        alpha = 50.0 / quality

    base = LUMA_TABLE if luma else CHROMA_TABLE
    if block_size != 8:
        base = cv2.resize(base, (block_size, block_size), interpolation=cv2.INTER_NEAREST)
    return base * alpha


def quantize(coeffs: np.ndarray, quality: float, block_size: int = 8, luma: bool = True) -> np.ndarray:
    """Chia mỗi khối đầy đủ cho bảng lượng tử rồi làm tròn"""
    table = quantization_matrix(quality, block_size, luma)
    return _apply_blockwise(coeffs, block_size, lambda b: np.round(b / table))


def inverse_quantize(levels: np.ndarray, quality: float, block_size: int = 8, luma: bool = True) -> np.ndarray:
    table = quantization_matrix(quality, block_size, luma)
    return _apply_blockwise(levels, block_size, lambda b: b * table)


def compress_plane(plane: np.ndarray, quality: float, luma: bool = True, kind: str = "dct",
                   block_size: int = 8) -> np.ndarray:
    """Dịch mức, biến đổi, lượng tử hóa, giải lượng tử và biến đổi ngược một mặt phẳng"""
    shifted = np.asarray(plane, dtype=np.float64) - 128.0
    coeffs = block_transform(shifted, kind, block_size)
    restored = inverse_quantize(quantize(coeffs, quality, block_size, luma), quality, block_size, luma)
    return inverse_block_transform(restored, kind, block_size) + 128.0


def compress_internal(image: np.ndarray, quality: float = 75.0, kind: str = "dct", block_size: int = 8) -> np.ndarray:
    """
    Mô phỏng nén JPEG không dùng bộ mã hóa ngoài.

    Parameters:
    -----------
    image: ảnh xám hoặc BGR kiểu uint8
    quality: 1-100
    kind: phép biến đổi khối, 'dct' hoặc 'wht'
    block_size: kích thước khối biến đổi

    Returns:
    --------
    compressed: ảnh uint8 cùng kích thước
    """
    y, cb, cr = to_luma_chroma(image)
    y = compress_plane(y, quality, True, kind, block_size)
    if cb is not None:
        cb = compress_plane(cb, quality, False, kind, block_size)
        cr = compress_plane(cr, quality, False, kind, block_size)
    logger.debug("Nén JPEG nội bộ với chất lượng %.1f (%s, khối %d)", quality, kind, block_size)
    return from_luma_chroma(y, cb, cr)
