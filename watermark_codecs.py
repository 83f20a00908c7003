"""
Bảng đăng ký bốn phương pháp thủy vân sau một giao diện nhúng / trích xuất chung.

    embed(plane, bitmap, params) -> (watermarked_plane, side_channel hoặc None)
    extract(plane, width, height, params, side_channel=None) -> bitmap
"""

import logging
from dataclasses import fields
from enum import Enum
from typing import Any, Callable, Mapping, NamedTuple, Optional, Tuple

import numpy as np

from dct_watermark import DctParams, dct_watermark_embed, dct_watermark_extract
from dwt_watermark import DwtParams, dwt_watermark_embed, dwt_watermark_extract
from lsb_watermark import LsbParams, embed_lsb, extract_lsb
from svd_watermark import SvdParams, svd_watermark_embed, svd_watermark_extract
from watermark_errors import InvalidInputError

logger = logging.getLogger(__name__)


class WatermarkType(Enum):
    LSB = "LSB (Least Significant Bit)"
    DCT = "DCT (Discrete Cosine Transform)"
    DWT = "DWT (Discrete Wavelet Transform)"
    SVD = "SVD (Singular Value Decomposition)"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name) -> "WatermarkType":
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).upper()]
        except KeyError:
            raise InvalidInputError(f"Không có phương pháp thủy vân '{name}', cần một trong "
                                    f"{[m.name for m in cls]}") from None


class Codec(NamedTuple):
    name: str
    embed: Callable[..., Tuple[np.ndarray, Any]]
    extract: Callable[..., np.ndarray]
    params_type: type
    blind: bool
    # Thủy vân dùng tối đa host_size // subsampling theo mỗi chiều
    subsampling: int


def _lsb_embed(plane, bitmap, params):
    return embed_lsb(plane, bitmap, params), None


def _lsb_extract(plane, width, height, params, side_channel=None):
    return extract_lsb(plane, width, height, params)


def _dct_embed(plane, bitmap, params):
    return dct_watermark_embed(plane, bitmap, params), None


def _dct_extract(plane, width, height, params, side_channel=None):
    return dct_watermark_extract(plane, width, height, params)


CODECS = {
    WatermarkType.LSB: Codec("LSB", _lsb_embed, _lsb_extract, LsbParams, True, 1),
    WatermarkType.DCT: Codec("DCT", _dct_embed, _dct_extract, DctParams, True, 1),
    WatermarkType.DWT: Codec("DWT", dwt_watermark_embed, dwt_watermark_extract, DwtParams, False, 2),
    WatermarkType.SVD: Codec("SVD", svd_watermark_embed, svd_watermark_extract, SvdParams, False, 1),
}


def get_codec(method) -> Codec:
    return CODECS[WatermarkType.from_name(method)]


def params_from_dict(method, values: Optional[Mapping[str, Any]] = None):
    """
    Tạo đối tượng tham số của phương pháp từ một dict.

    Khóa không xác định bị từ chối để lỗi gõ trong tệp cấu hình không bị
    bỏ qua.
    """
    params_type = get_codec(method).params_type
    values = dict(values or {})
    known = {f.name for f in fields(params_type)}
    unknown = set(values) - known
    if unknown:
        raise InvalidInputError(f"Khóa không hợp lệ cho {params_type.__name__}: {sorted(unknown)}")
    return params_type(**values)


def embed(method, plane: np.ndarray, bitmap: np.ndarray, params=None):
    codec = get_codec(method)
    params = params if params is not None else codec.params_type()
    return codec.embed(plane, bitmap, params)


def extract(method, plane: np.ndarray, width: int, height: int, params=None, side_channel=None) -> np.ndarray:
    codec = get_codec(method)
    params = params if params is not None else codec.params_type()
    if not codec.blind and side_channel is None:
        logger.warning("%s là phương pháp không mù nhưng không có dữ liệu lúc nhúng", codec.name)
    return codec.extract(plane, width, height, params, side_channel)
