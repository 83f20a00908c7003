import logging
from dataclasses import dataclass

import numpy as np

from binary_watermark import clear_bit, get_bit, permute_bits, set_bit, to_bitmap, unpermute_bits
from watermark_errors import InvalidInputError, OversizeWatermarkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LsbParams:
    """
    Tham số LSB trong miền không gian.

    bit_plane: vị trí bit được ghi ở mỗi điểm ảnh (0 = bit thấp nhất)
    permute: hoán vị thủy vân bằng khóa trước khi nhúng
    key: khóa văn bản của hoán vị (chuỗi rỗng vẫn là một khóa hợp lệ)
    """
    bit_plane: int = 0
    permute: bool = False
    key: str = ""

    def __post_init__(self):
        if not 0 <= int(self.bit_plane) <= 7:
            raise InvalidInputError(f"Mặt phẳng bit phải nằm trong [0, 7], nhận được {self.bit_plane}")
        if self.permute and self.key is None:
            raise InvalidInputError("Hoán vị cần có khóa (có thể là chuỗi rỗng)")

    def describe(self) -> str:
        return f"BitPlane: {self.bit_plane}, Permute: {str(bool(self.permute)).lower()}"


def _check_extent(plane: np.ndarray, width: int, height: int):
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh gốc là None")
    if plane.ndim != 2:
        raise InvalidInputError(f"Mặt phẳng ảnh gốc phải là mảng 2 chiều, nhận được {plane.shape}")
    if width > plane.shape[1] or height > plane.shape[0]:
        raise OversizeWatermarkError(
            f"Thủy vân {width}x{height} vượt quá kích thước ảnh gốc {plane.shape[1]}x{plane.shape[0]}"
        )


def embed_lsb(plane: np.ndarray, watermark: np.ndarray, params: LsbParams = LsbParams()) -> np.ndarray:
    """
    Nhúng thủy vân nhị phân vào một mặt phẳng bit của ảnh gốc.

    Parameters:
    -----------
    plane: mặt phẳng ảnh gốc (H, W), giá trị thực hoặc nguyên trong [0, 255]
    watermark: ảnh nhị phân (h, w) hoặc ảnh thủy vân sẽ được nhị phân hóa
    params: LsbParams

    Returns:
    --------
    watermarked: bản sao float64 của mặt phẳng với mặt phẳng bit đã thay
    """
    plane = None if plane is None else np.asarray(plane)
    bits = to_bitmap(watermark)
    height, width = bits.shape
    _check_extent(plane, width, height)

    if params.permute:
        bits = permute_bits(bits, params.key)

    watermarked = np.array(plane, dtype=np.float64, copy=True)
    region = np.floor(watermarked[:height, :width]).astype(np.int64)
    region = np.where(bits, set_bit(region, params.bit_plane), clear_bit(region, params.bit_plane))
    watermarked[:height, :width] = region

    logger.debug("Đã nhúng LSB %dx%d bit (%s)", width, height, params.describe())
    return watermarked


def extract_lsb(plane: np.ndarray, width: int, height: int, params: LsbParams = LsbParams()) -> np.ndarray:
    """
    Trích xuất thủy vân từ một mặt phẳng bit.

    Parameters:
    -----------
    plane: mặt phẳng đã nhúng (H, W)
    width, height: kích thước thủy vân
    params: LsbParams đã dùng khi nhúng

    Returns:
    --------
    bitmap: mảng bool (height, width)
    """
    plane = None if plane is None else np.asarray(plane)
    _check_extent(plane, width, height)

    # Phần nguyên của mỗi điểm ảnh
    values = plane[:height, :width].astype(np.int64)
    bits = get_bit(values, params.bit_plane).astype(bool)

    if params.permute:
        bits = unpermute_bits(bits, params.key)
    return bits
