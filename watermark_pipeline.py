# watermark_pipeline.py
"""
Nhúng thủy vân ở mức ảnh và đánh giá độ bền vững.

Ảnh được tách thành các mặt phẳng Y, Cb, Cr; thủy vân được nhúng vào một
mặt phẳng, sau đó giao thức đánh giá chạy lần lượt các tấn công lên ảnh đã
nhúng, trích xuất lại thủy vân và tính điểm sau mỗi tấn công.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

import watermark_codecs
from attack_registry import AttackKind, apply_attack, describe_parameters
from binary_watermark import to_bitmap
from dct_watermark import DctParams
from dwt_watermark import DwtParams, extraction_mode
from evaluation import EvaluationResult, calculate_ber, calculate_nc, calculate_psnr, calculate_wnr
from jpeg_pipeline import from_luma_chroma, to_luma_chroma
from lsb_watermark import LsbParams
from svd_watermark import SvdParams
from watermark_codecs import WatermarkType
from watermark_errors import InvalidInputError, WatermarkError

logger = logging.getLogger(__name__)

COMPONENTS = ("Y", "Cb", "Cr")

AttackRun = Tuple[AttackKind, Dict]

DEFAULT_ATTACKS: List[AttackRun] = [
    (AttackKind.NONE, {}),
    (AttackKind.JPEG_COMPRESSION, {"quality": 90.0}),
    (AttackKind.JPEG_COMPRESSION, {"quality": 75.0}),
    (AttackKind.JPEG_COMPRESSION, {"quality": 50.0}),
    (AttackKind.JPEG_COMPRESSION, {"quality": 25.0}),
    (AttackKind.JPEG_COMPRESSION_INTERNAL, {"quality": 75.0}),
    (AttackKind.PNG_COMPRESSION, {"level": 1}),
    (AttackKind.PNG_COMPRESSION, {"level": 5}),
    (AttackKind.PNG_COMPRESSION, {"level": 9}),
    (AttackKind.ROTATION_45, {}),
    (AttackKind.ROTATION_90, {}),
    (AttackKind.RESIZE_75, {}),
    (AttackKind.RESIZE_50, {}),
    (AttackKind.MIRRORING, {}),
    (AttackKind.CROPPING, {"percentage": 0.1}),
    (AttackKind.CROPPING, {"percentage": 0.2}),
    (AttackKind.GAUSSIAN_NOISE, {}),
    (AttackKind.MEDIAN_FILTER, {}),
    (AttackKind.HISTOGRAM_EQUALIZATION, {}),
    (AttackKind.SHARPENING, {}),
]


def protocol_configurations() -> List[Tuple[WatermarkType, object]]:
    """Lưới tham số chuẩn của giao thức đánh giá độ bền vững"""
    configs = []
    for bit_plane in (1, 3, 5, 7):
        configs.append((WatermarkType.LSB, LsbParams(bit_plane=bit_plane)))
        configs.append((WatermarkType.LSB, LsbParams(bit_plane=bit_plane, permute=True, key="watermark-key")))
    for coef_a, coef_b in (((3, 1), (4, 1)), ((4, 3), (5, 2))):
        for strength in (5.0, 10.0, 15.0):
            configs.append((WatermarkType.DCT, DctParams(coef_a=coef_a, coef_b=coef_b, strength=strength)))
    for subband in ("LL", "LH", "HL", "HH"):
        for strength in (2.5, 5.0):
            configs.append((WatermarkType.DWT, DwtParams(strength=strength, subband=subband)))
    for alpha in (0.5, 1.0, 2.0, 5.0):
        configs.append((WatermarkType.SVD, SvdParams(alpha=alpha)))
    return configs


def _split_planes(image: np.ndarray) -> Dict[str, Optional[np.ndarray]]:
    y, cb, cr = to_luma_chroma(image)
    return {"Y": y, "Cb": cb, "Cr": cr}


def _component_plane(planes: Dict[str, Optional[np.ndarray]], component: str) -> np.ndarray:
    if component not in COMPONENTS:
        raise InvalidInputError(f"Thành phần màu phải thuộc {COMPONENTS}, nhận được {component}")
    plane = planes[component]
    if plane is None:
        raise InvalidInputError(f"Ảnh xám không có thành phần {component}")
    return plane


def embed_in_image(cover: np.ndarray, watermark: np.ndarray, method, params=None, component: str = "Y"):
    """
    Nhúng thủy vân vào một thành phần màu của ảnh uint8.

    Lưu ý: ảnh BGR được ghi lại dưới dạng uint8 nên mặt phẳng Y sau khi
    chuyển đổi ngược bị sai lệch khoảng +-1 mức xám. Thủy vân LSB ở các
    mặt phẳng bit thấp (0-3) của ảnh màu vì thế không giữ được ngay cả khi
    không có tấn công (BER gần 0.5 ở bit 0), chỉ các bit cao mới còn
    nguyên. Ảnh xám không bị ảnh hưởng.

    Parameters:
    -----------
    cover: ảnh xám hoặc BGR kiểu uint8
    watermark: ảnh nhị phân hoặc ảnh thủy vân
    method: WatermarkType hoặc tên của nó
    params: đối tượng tham số của phương pháp (mặc định khi None)
    component: 'Y', 'Cb' hoặc 'Cr'

    Returns:
    --------
    watermarked: ảnh uint8 cùng kích thước với cover
    side_channel: dữ liệu lúc nhúng của DWT/SVD, None với phương pháp mù
    """
    if cover is None:
        raise InvalidInputError("Ảnh gốc là None")
    planes = _split_planes(cover)
    plane = _component_plane(planes, component)
    marked, side_channel = watermark_codecs.embed(method, plane, to_bitmap(watermark), params)
    planes[component] = marked
    return from_luma_chroma(planes["Y"], planes["Cb"], planes["Cr"]), side_channel


def extract_from_image(image: np.ndarray, width: int, height: int, method, params=None,
                       component: str = "Y", side_channel=None) -> np.ndarray:
    """Trích xuất ảnh nhị phân width x height từ một thành phần màu của ảnh"""
    if image is None:
        raise InvalidInputError("Ảnh đầu vào là None")
    plane = _component_plane(_split_planes(image), component)
    return watermark_codecs.extract(method, plane, width, height, params, side_channel)


def _extraction_label(method: WatermarkType, side_channel) -> str:
    if method is WatermarkType.DWT:
        return extraction_mode(side_channel)
    return "blind" if watermark_codecs.get_codec(method).blind else "side-channel"


def evaluate_attack(
    cover: np.ndarray,
    watermarked: np.ndarray,
    watermark: np.ndarray,
    method,
    params=None,
    attack=AttackKind.NONE,
    attack_params: Optional[Mapping] = None,
    component: str = "Y",
    side_channel=None
) -> EvaluationResult:
    """
    Tấn công ảnh đã nhúng, trích xuất thủy vân và tính điểm.

    PSNR so sánh ảnh đã nhúng với ảnh bị tấn công, WNR so sánh ảnh gốc với
    ảnh đã nhúng. Lỗi trích xuất cho kết quả thất bại (BER 1.0, NC 0.0)
    thay vì ném ngoại lệ.
    """
    method = WatermarkType.from_name(method)
    attack = AttackKind.from_name(attack)
    codec = watermark_codecs.get_codec(method)
    params = params if params is not None else codec.params_type()
    bits = to_bitmap(watermark)
    height, width = bits.shape

    attacked = apply_attack(watermarked, attack, attack_params)
    common = dict(
        attack=attack,
        method=method.name,
        component=component,
        parameter=params.describe(),
        psnr=calculate_psnr(watermarked, attacked),
        wnr=calculate_wnr(cover, watermarked),
        attack_parameters=describe_parameters(attack, attack_params),
        watermark_config=f"{width}x{height}",
        extraction=_extraction_label(method, side_channel),
    )

    try:
        extracted = extract_from_image(attacked, width, height, method, params, component, side_channel)
    except WatermarkError as e:
        logger.error("Trích xuất %s sau %s thất bại: %s", method.name, attack.display_name, e)
        return EvaluationResult(ber=1.0, nc=0.0, error=str(e), **common)

    return EvaluationResult(ber=calculate_ber(bits, extracted), nc=calculate_nc(bits, extracted), **common)


def evaluate_robustness(
    cover: np.ndarray,
    watermark: np.ndarray,
    method,
    params=None,
    attacks: Optional[Sequence[AttackRun]] = None,
    component: str = "Y"
) -> List[EvaluationResult]:
    """
    Nhúng một lần rồi chạy mọi tấn công trong danh sách lên ảnh kết quả.

    Parameters:
    -----------
    cover: ảnh gốc uint8
    watermark: ảnh nhị phân hoặc ảnh thủy vân
    method: WatermarkType hoặc tên của nó
    params: đối tượng tham số (mặc định khi None)
    attacks: các cặp (AttackKind, tham số), DEFAULT_ATTACKS khi None
    component: 'Y', 'Cb' hoặc 'Cr'

    Returns:
    --------
    results: một EvaluationResult cho mỗi tấn công; nếu nhúng thất bại thì
             mọi kết quả đều là kết quả thất bại kèm thông báo lỗi
    """
    method = WatermarkType.from_name(method)
    params = params if params is not None else watermark_codecs.get_codec(method).params_type()
    attacks = DEFAULT_ATTACKS if attacks is None else attacks
    bits = to_bitmap(watermark)

    try:
        watermarked, side_channel = embed_in_image(cover, bits, method, params, component)
    except WatermarkError as e:
        logger.error("Nhúng %s (%s) thất bại: %s", method.name, params.describe(), e)
        return [
            EvaluationResult(
                attack=AttackKind.from_name(kind), method=method.name, component=component,
                parameter=params.describe(), ber=1.0, nc=0.0, psnr=0.0, wnr=0.0,
                attack_parameters=describe_parameters(kind, attack_params),
                watermark_config=f"{bits.shape[1]}x{bits.shape[0]}", error=str(e),
            )
            for kind, attack_params in attacks
        ]

    results = []
    for kind, attack_params in attacks:
        result = evaluate_attack(cover, watermarked, bits, method, params, kind, attack_params,
                                 component, side_channel)
        logger.info("%s %s [%s] %s: BER=%.4f NC=%.4f PSNR=%.2f", method.name, component, params.describe(),
                    result.attack.display_name, result.ber, result.nc, result.psnr)
        results.append(result)
    return results


def run_protocol(
    cover: np.ndarray,
    watermark: np.ndarray,
    configurations: Optional[Iterable[Tuple[WatermarkType, object]]] = None,
    components: Sequence[str] = COMPONENTS,
    attacks: Optional[Sequence[AttackRun]] = None
) -> List[EvaluationResult]:
    """Chạy evaluate_robustness cho mọi cấu hình và mọi thành phần màu"""
    configurations = protocol_configurations() if configurations is None else configurations
    gray = cover.ndim == 2 or cover.shape[2] == 1
    results = []
    for method, params in configurations:
        for component in components:
            if gray and component != "Y":
                logger.warning("Bỏ qua thành phần %s của ảnh gốc xám", component)
                continue
            results.extend(evaluate_robustness(cover, watermark, method, params, attacks, component))
    return results
