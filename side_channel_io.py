import base64
import hashlib
import io
import logging
import os
from typing import Union

import numpy as np
from cryptography.fernet import Fernet, InvalidToken

from dwt_watermark import DwtSideChannel
from svd_watermark import SvdSideChannel
from watermark_errors import InvalidInputError, MissingSideChannelError

logger = logging.getLogger(__name__)

SideChannel = Union[DwtSideChannel, SvdSideChannel]


def generate_crypto_key(key) -> bytes:
    """Tạo khóa Fernet từ khóa số nguyên hoặc văn bản"""
    seed = str(key).encode()
    hashed = hashlib.sha256(seed).digest()
    return base64.urlsafe_b64encode(hashed)


def _to_arrays(side_channel: SideChannel) -> dict:
    if isinstance(side_channel, DwtSideChannel):
        return {
            "kind": np.array("dwt"),
            "subband": np.array(side_channel.subband),
            "original": side_channel.original,
            "strength": np.array(side_channel.strength),
            "shape": np.array(side_channel.shape),
            "wavelet": np.array(side_channel.wavelet),
        }
    if isinstance(side_channel, SvdSideChannel):
        return {
            "kind": np.array("svd"),
            "u": side_channel.u,
            "s": side_channel.s,
            "vt": side_channel.vt,
            "uw": side_channel.uw,
            "vwt": side_channel.vwt,
            "alpha": np.array(side_channel.alpha),
            "shape": np.array(side_channel.shape),
        }
    raise InvalidInputError(f"Kiểu dữ liệu lúc nhúng không được hỗ trợ: {type(side_channel).__name__}")


def _from_arrays(data) -> SideChannel:
    kind = str(data["kind"])
    shape = tuple(int(v) for v in data["shape"])
    if kind == "dwt":
        return DwtSideChannel(
            subband=str(data["subband"]),
            original=data["original"],
            strength=float(data["strength"]),
            shape=shape,
            wavelet=str(data["wavelet"]),
        )
    if kind == "svd":
        return SvdSideChannel(
            u=data["u"], s=data["s"], vt=data["vt"], uw=data["uw"], vwt=data["vwt"],
            alpha=float(data["alpha"]), shape=shape,
        )
    raise InvalidInputError(f"Không rõ loại dữ liệu lúc nhúng '{kind}'")


def save_side_channel(side_channel: SideChannel, path: str, key=None) -> str:
    """
    Ghi dữ liệu lúc nhúng ra tệp .npz, mã hóa bằng Fernet nếu có khóa.

    Returns:
    --------
    path: đường dẫn đã ghi
    """
    buffer = io.BytesIO()
    np.savez_compressed(buffer, **_to_arrays(side_channel))
    payload = buffer.getvalue()
    if key is not None:
        payload = Fernet(generate_crypto_key(key)).encrypt(payload)

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "wb") as f:
        f.write(payload)
    logger.info("Đã lưu dữ liệu %s vào %s%s", type(side_channel).__name__, path,
                " (đã mã hóa)" if key is not None else "")
    return path


def load_side_channel(path: str, key=None) -> SideChannel:
    """Đọc dữ liệu lúc nhúng do save_side_channel ghi ra"""
    if not os.path.exists(path):
        raise MissingSideChannelError(f"Không tìm thấy tệp dữ liệu lúc nhúng: {path}")
    with open(path, "rb") as f:
        payload = f.read()
    if key is not None:
        try:
            payload = Fernet(generate_crypto_key(key)).decrypt(payload)
        except InvalidToken as e:
            raise InvalidInputError(f"Không giải mã được {path}: sai khóa hoặc tệp bị hỏng") from e

    with np.load(io.BytesIO(payload), allow_pickle=False) as data:
        side_channel = _from_arrays(data)
    logger.debug("Đã tải dữ liệu %s từ %s", type(side_channel).__name__, path)
    return side_channel
