# svd_watermark.py
"""
Thủy vân dựa trên phân tích giá trị suy biến (SVD).

Thủy vân được cộng vào phổ giá trị suy biến của mặt phẳng ảnh gốc:

    A = U S V^T,  M = S + alpha * W,  M = Uw Sw Vw^T,  A' = U Sw V^T

Khi trích xuất, M được dựng lại từ giá trị suy biến của ảnh nhận được và
Uw, Vw đã lưu, rồi W = (M - S) / alpha. Phương pháp không mù: thiếu dữ
liệu lưu lúc nhúng thì không có gì để so sánh.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from binary_watermark import to_bitmap
from watermark_errors import DimensionMismatchError, InvalidInputError, MissingSideChannelError, OversizeWatermarkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SvdParams:
    alpha: float = 1.0

    def __post_init__(self):
        if self.alpha <= 0:
            raise InvalidInputError(f"Alpha phải dương, nhận được {self.alpha}")

    def describe(self) -> str:
        return f"Alpha: {float(self.alpha)}"


@dataclass(frozen=True, eq=False)
class SvdSideChannel:
    """Phân tích SVD của ảnh gốc và của phổ đã nhúng, lưu lại lúc nhúng"""
    u: np.ndarray
    s: np.ndarray
    vt: np.ndarray
    uw: np.ndarray
    vwt: np.ndarray
    alpha: float
    shape: Tuple[int, int]


def svd_watermark_embed(
    plane: np.ndarray,
    watermark: np.ndarray,
    params: SvdParams = SvdParams()
) -> Tuple[np.ndarray, SvdSideChannel]:
    """
    Nhúng thủy vân vào các giá trị suy biến của mặt phẳng ảnh.

    Parameters:
    -----------
    plane: mặt phẳng ảnh gốc (H, W)
    watermark: ảnh nhị phân, mỗi chiều không vượt quá min(H, W)
    params: SvdParams

    Returns:
    --------
    watermarked: mặt phẳng float64
    side_channel: SvdSideChannel cần cho việc trích xuất
    """
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh gốc là None")
    plane = np.asarray(plane, dtype=np.float64)
    if plane.ndim != 2:
        raise InvalidInputError(f"Mặt phẳng ảnh gốc phải là mảng 2 chiều, nhận được {plane.shape}")
    bits = to_bitmap(watermark)

    u, s, vt = np.linalg.svd(plane, full_matrices=False)
    rank = s.size
    if bits.shape[0] > rank or bits.shape[1] > rank:
        raise OversizeWatermarkError(
            f"Thủy vân {bits.shape[1]}x{bits.shape[0]} vượt quá phổ suy biến {rank}x{rank}"
        )

    w = np.zeros((rank, rank))
    w[:bits.shape[0], :bits.shape[1]] = bits
    marked = np.diag(s) + params.alpha * w
    uw, sw, vwt = np.linalg.svd(marked)

    watermarked = u @ np.diag(sw) @ vt
    side_channel = SvdSideChannel(u=u, s=s, vt=vt, uw=uw, vwt=vwt,
                                  alpha=float(params.alpha), shape=tuple(plane.shape))
    logger.debug("Đã nhúng SVD %dx%d bit (%s)", bits.shape[1], bits.shape[0], params.describe())
    return watermarked, side_channel


def svd_recover_matrix(plane: np.ndarray, side_channel: Optional[SvdSideChannel]) -> np.ndarray:
    """Khôi phục ma trận thủy vân thực kích thước rank x rank"""
    if side_channel is None:
        raise MissingSideChannelError("Trích xuất SVD cần dữ liệu đã lưu lúc nhúng")
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh là None")
    plane = np.asarray(plane, dtype=np.float64)
    if tuple(plane.shape) != tuple(side_channel.shape):
        raise DimensionMismatchError(f"Kích thước ảnh {plane.shape} khác với lúc nhúng {side_channel.shape}")

    sw = np.linalg.svd(plane, compute_uv=False)
    marked = side_channel.uw @ np.diag(sw) @ side_channel.vwt
    return (marked - np.diag(side_channel.s)) / side_channel.alpha


def svd_watermark_image(matrix: np.ndarray) -> np.ndarray:
    """Ảnh xám của ma trận khôi phục, giới hạn trong 0-255"""
    return np.clip(np.round(matrix * 255.0), 0, 255).astype(np.uint8)


def svd_watermark_extract(
    plane: np.ndarray,
    width: int,
    height: int,
    params: SvdParams = SvdParams(),
    side_channel: Optional[SvdSideChannel] = None
) -> np.ndarray:
    """
    Trích xuất ảnh nhị phân thủy vân; báo lỗi khi thiếu dữ liệu lúc nhúng.

    params chỉ để thống nhất chữ ký giữa các phương pháp; alpha lấy từ dữ
    liệu lúc nhúng.
    """
    matrix = svd_recover_matrix(plane, side_channel)
    if height > matrix.shape[0] or width > matrix.shape[1]:
        raise OversizeWatermarkError(
            f"Thủy vân {width}x{height} vượt quá phổ suy biến {matrix.shape[0]}x{matrix.shape[0]}"
        )
    if params.alpha != side_channel.alpha:
        logger.warning("Alpha %.3f khác với alpha lúc nhúng %.3f", params.alpha, side_channel.alpha)
    return matrix[:height, :width] > 0.5
