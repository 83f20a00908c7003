import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pywt

from binary_watermark import to_bitmap
from watermark_errors import InvalidInputError, OversizeWatermarkError

logger = logging.getLogger(__name__)

SUBBANDS = ("LL", "LH", "HL", "HH")
AVERAGING_HAAR = "haar-avg"

# Thứ tự hệ số chi tiết của pywt: (ngang, dọc, chéo)
_PYWT_BANDS = {"LL": 0, "LH": 1, "HL": 2, "HH": 3}


@dataclass(frozen=True)
class DwtParams:
    """
    Tham số dải tần wavelet.

    strength: độ lệch cộng (bit 1) hoặc trừ (bit 0) vào mỗi hệ số
    subband: một trong LL, LH, HL, HH
    wavelet: 'haar-avg' cho Haar trung bình một mức, hoặc tên wavelet
             bất kỳ của PyWavelets ('haar', 'db2', ...)
    """
    strength: float = 5.0
    subband: str = "LL"
    wavelet: str = AVERAGING_HAAR

    def __post_init__(self):
        object.__setattr__(self, "subband", str(self.subband).upper())
        if self.subband not in SUBBANDS:
            raise InvalidInputError(f"Dải tần phải thuộc {SUBBANDS}, nhận được {self.subband}")
        if self.strength <= 0:
            raise InvalidInputError(f"Cường độ phải dương, nhận được {self.strength}")
        if self.wavelet != AVERAGING_HAAR and self.wavelet not in pywt.wavelist(kind="discrete"):
            raise InvalidInputError(f"Không có wavelet '{self.wavelet}'")

    def describe(self) -> str:
        return f"Strength: {float(self.strength)}, Subband: {self.subband}"


@dataclass(frozen=True, eq=False)
class DwtSideChannel:
    """Giá trị dải tần trước khi nhúng, lưu lại cho trích xuất không mù"""
    subband: str
    original: np.ndarray
    strength: float
    shape: Tuple[int, int]
    wavelet: str = AVERAGING_HAAR


def haar_decompose(plane: np.ndarray) -> Dict[str, np.ndarray]:
    """
    Phân tích Haar trung bình một mức.

    Với mỗi nhóm 2x2 (a b / c d):
        LL = (a+b+c+d)/4, LH = (a+b-c-d)/4, HL = (a-b+c-d)/4, HH = (a-b-c+d)/4
    Hàng hoặc cột lẻ cuối cùng bị bỏ qua.
    """
    p = np.asarray(plane, dtype=np.float64)
    h2, w2 = (p.shape[0] // 2) * 2, (p.shape[1] // 2) * 2
    a = p[0:h2:2, 0:w2:2]
    b = p[0:h2:2, 1:w2:2]
    c = p[1:h2:2, 0:w2:2]
    d = p[1:h2:2, 1:w2:2]
    return {
        "LL": (a + b + c + d) / 4.0,
        "LH": (a + b - c - d) / 4.0,
        "HL": (a - b + c - d) / 4.0,
        "HH": (a - b - c + d) / 4.0,
    }


def haar_reconstruct(bands: Dict[str, np.ndarray], template: np.ndarray) -> np.ndarray:
    """
    Nghịch đảo của haar_decompose.

    Hàng/cột lẻ mà phép phân tích bỏ qua được chép từ template, template
    cũng quyết định kích thước đầu ra.
    """
    out = np.array(template, dtype=np.float64, copy=True)
    ll, lh, hl, hh = bands["LL"], bands["LH"], bands["HL"], bands["HH"]
    h2, w2 = ll.shape[0] * 2, ll.shape[1] * 2
    out[0:h2:2, 0:w2:2] = ll + lh + hl + hh
    out[0:h2:2, 1:w2:2] = ll + lh - hl - hh
    out[1:h2:2, 0:w2:2] = ll - lh + hl - hh
    out[1:h2:2, 1:w2:2] = ll - lh - hl + hh
    return out


def dwt_decompose(plane: np.ndarray, wavelet: str = AVERAGING_HAAR) -> Dict[str, np.ndarray]:
    """Phân tích một mức thành LL, LH, HL, HH"""
    if wavelet == AVERAGING_HAAR:
        return haar_decompose(plane)
    cA, (cH, cV, cD) = pywt.dwt2(np.asarray(plane, dtype=np.float64), wavelet, mode="periodization")
    return dict(zip(SUBBANDS, (cA, cH, cV, cD)))


def dwt_reconstruct(bands: Dict[str, np.ndarray], template: np.ndarray, wavelet: str = AVERAGING_HAAR) -> np.ndarray:
    """Nghịch đảo của dwt_decompose, cắt hoặc bù theo kích thước của template"""
    if wavelet == AVERAGING_HAAR:
        return haar_reconstruct(bands, template)
    coeffs = (bands["LL"], (bands["LH"], bands["HL"], bands["HH"]))
    rebuilt = pywt.idwt2(coeffs, wavelet, mode="periodization")
    out = np.array(template, dtype=np.float64, copy=True)
    rows, cols = min(out.shape[0], rebuilt.shape[0]), min(out.shape[1], rebuilt.shape[1])
    out[:rows, :cols] = rebuilt[:rows, :cols]
    return out


def dwt_watermark_embed(
    plane: np.ndarray,
    watermark: np.ndarray,
    params: DwtParams = DwtParams()
) -> Tuple[np.ndarray, DwtSideChannel]:
    """
    Nhúng thủy vân nhị phân vào một dải tần wavelet.

    Parameters:
    -----------
    plane: mặt phẳng ảnh gốc (H, W)
    watermark: ảnh nhị phân (h, w), mỗi chiều tối đa bằng nửa ảnh gốc
    params: DwtParams

    Returns:
    --------
    watermarked: mặt phẳng float64 cùng kích thước
    side_channel: DwtSideChannel dùng cho cách trích xuất có tham chiếu
    """
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh gốc là None")
    plane = np.asarray(plane, dtype=np.float64)
    if plane.ndim != 2:
        raise InvalidInputError(f"Mặt phẳng ảnh gốc phải là mảng 2 chiều, nhận được {plane.shape}")
    bits = to_bitmap(watermark)
    height, width = bits.shape

    bands = dwt_decompose(plane, params.wavelet)
    band = bands[params.subband].copy()
    if height > band.shape[0] or width > band.shape[1]:
        raise OversizeWatermarkError(
            f"Thủy vân {width}x{height} vượt quá dải tần {params.subband} {band.shape[1]}x{band.shape[0]}"
        )

    original = band[:height, :width].copy()
    band[:height, :width] += np.where(bits, params.strength, -params.strength)
    bands[params.subband] = band
    watermarked = dwt_reconstruct(bands, plane, params.wavelet)

    side_channel = DwtSideChannel(
        subband=params.subband,
        original=original,
        strength=float(params.strength),
        shape=tuple(plane.shape),
        wavelet=params.wavelet,
    )
    logger.debug("Đã nhúng DWT %dx%d bit (%s)", width, height, params.describe())
    return watermarked, side_channel


def extraction_mode(side_channel: Optional[DwtSideChannel]) -> str:
    """Tên cách trích xuất tương ứng với dữ liệu lúc nhúng"""
    return "side-channel" if side_channel is not None else "blind-mean"


def dwt_watermark_extract(
    plane: np.ndarray,
    width: int,
    height: int,
    params: DwtParams = DwtParams(),
    side_channel: Optional[DwtSideChannel] = None
) -> np.ndarray:
    """
    Khôi phục thủy vân từ một dải tần wavelet.

    Khi có dữ liệu lúc nhúng, bit là 1 nếu hệ số lớn hơn giá trị trước khi
    nhúng đã lưu. Khi không có, hệ số được so với trung bình của dải tần,
    kém chính xác hơn nhiều.

    Returns:
    --------
    bitmap: mảng bool (height, width)
    """
    if plane is None:
        raise InvalidInputError("Mặt phẳng ảnh là None")
    plane = np.asarray(plane, dtype=np.float64)

    subband, wavelet = params.subband, params.wavelet
    if side_channel is not None:
        if side_channel.subband != subband or side_channel.wavelet != wavelet:
            logger.warning("Dữ liệu lúc nhúng ghi cho %s/%s, dùng nó thay cho %s/%s",
                           side_channel.subband, side_channel.wavelet, subband, wavelet)
            subband, wavelet = side_channel.subband, side_channel.wavelet
        if tuple(plane.shape) != tuple(side_channel.shape):
            logger.warning("Kích thước ảnh %s khác với lúc nhúng %s", plane.shape, side_channel.shape)

    band = dwt_decompose(plane, wavelet)[subband]
    if height > band.shape[0] or width > band.shape[1]:
        raise OversizeWatermarkError(
            f"Thủy vân {width}x{height} vượt quá dải tần {subband} {band.shape[1]}x{band.shape[0]}"
        )

    logger.info("Trích xuất DWT theo cách %s", extraction_mode(side_channel))
    if side_channel is not None:
        original = side_channel.original
        if height > original.shape[0] or width > original.shape[1]:
            raise OversizeWatermarkError(
                f"Thủy vân {width}x{height} lớn hơn dải tần đã lưu {original.shape[1]}x{original.shape[0]}"
            )
        return band[:height, :width] > original[:height, :width]

    return band[:height, :width] > band.mean()
