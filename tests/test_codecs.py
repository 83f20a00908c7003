import numpy as np
import pytest

import watermark_codecs
from dct_watermark import DctParams
from dwt_watermark import DwtParams, DwtSideChannel
from lsb_watermark import LsbParams
from svd_watermark import SvdSideChannel
from watermark_codecs import WatermarkType, get_codec, params_from_dict
from watermark_errors import InvalidInputError, MissingSideChannelError


def test_method_lookup():
    assert WatermarkType.from_name("dct") is WatermarkType.DCT
    assert WatermarkType.from_name(WatermarkType.SVD) is WatermarkType.SVD
    with pytest.raises(InvalidInputError):
        WatermarkType.from_name("wu-lee")


def test_codec_properties():
    assert get_codec("LSB").blind and get_codec("DCT").blind
    assert not get_codec("DWT").blind and not get_codec("SVD").blind
    assert get_codec("DWT").subsampling == 2
    assert get_codec("LSB").params_type is LsbParams


def test_params_from_dict():
    assert params_from_dict("DCT", {"coef_a": [4, 3], "coef_b": [5, 2], "strength": 5}) == \
        DctParams(coef_a=(4, 3), coef_b=(5, 2), strength=5)
    assert params_from_dict("DWT", {"subband": "hh"}) == DwtParams(subband="HH")
    assert params_from_dict("LSB", None) == LsbParams()
    with pytest.raises(InvalidInputError):
        params_from_dict("SVD", {"alfa": 2})


@pytest.mark.parametrize("method", list(WatermarkType))
def test_uniform_round_trip(mid_plane, bitmap_8, method):
    marked, side_channel = watermark_codecs.embed(method, mid_plane, bitmap_8)
    if method in (WatermarkType.LSB, WatermarkType.DCT):
        assert side_channel is None
    elif method is WatermarkType.DWT:
        assert isinstance(side_channel, DwtSideChannel)
    else:
        assert isinstance(side_channel, SvdSideChannel)
    extracted = watermark_codecs.extract(method, marked, 8, 8, side_channel=side_channel)
    assert np.array_equal(extracted, bitmap_8)


def test_svd_without_side_channel_fails(mid_plane, bitmap_8):
    marked, _ = watermark_codecs.embed("SVD", mid_plane, bitmap_8)
    with pytest.raises(MissingSideChannelError):
        watermark_codecs.extract("SVD", marked, 8, 8)


def test_display_names():
    assert WatermarkType.DWT.display_name == "DWT (Discrete Wavelet Transform)"
