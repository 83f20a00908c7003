import argparse
import json
import logging
import os
import sys

import cv2
import numpy as np

import watermark_codecs
from attack_registry import AttackKind, apply_attack, describe_parameters
from binary_watermark import bitmap_to_image, to_bitmap
from evaluation import calculate_ber, calculate_nc, calculate_psnr, calculate_ssim
from side_channel_io import load_side_channel, save_side_channel
from watermark_codecs import WatermarkType, params_from_dict
from watermark_errors import InvalidInputError, WatermarkError
from watermark_pipeline import (COMPONENTS, DEFAULT_ATTACKS, embed_in_image, evaluate_robustness,
                                extract_from_image, run_protocol)

logger = logging.getLogger("watermarking")


def _configure_logging(level: str) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _read_image(path: str, flags=cv2.IMREAD_UNCHANGED) -> np.ndarray:
    image = cv2.imread(path, flags)
    if image is None:
        raise InvalidInputError(f"Không thể đọc ảnh: {path}")
    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def _write_image(path: str, image: np.ndarray) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if not cv2.imwrite(path, image):
        raise InvalidInputError(f"Không thể ghi ảnh: {path}")
    logger.info("Đã lưu %s", path)


def _load_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _save_json(path: str, data) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
    logger.info("Đã lưu %s", path)


def _parse_key_values(pairs) -> dict:
    """Chuyển ['quality=50', 'direction=vertical'] thành dict, giá trị được giải mã JSON"""
    values = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise InvalidInputError(f"Cần dạng KEY=VALUE, nhận được '{pair}'")
        key, raw = pair.split("=", 1)
        try:
            values[key] = json.loads(raw)
        except json.JSONDecodeError:
            values[key] = raw
    return values


def _method_params(method: str, config_path, overrides) -> object:
    values = _load_json(config_path) if config_path else {}
    values.update(_parse_key_values(overrides))
    return params_from_dict(method, values)


def _params_to_dict(params) -> dict:
    return {name: list(value) if isinstance(value, tuple) else value
            for name, value in vars(params).items()}


def cmd_embed(args) -> int:
    cover = _read_image(args.cover)
    watermark = to_bitmap(_read_image(args.watermark))
    method = WatermarkType.from_name(args.method)
    params = _method_params(method.name, args.config, args.param)

    watermarked, side_channel = embed_in_image(cover, watermark, method, params, args.component)
    _write_image(args.output, watermarked)

    metadata = {
        "method": method.name,
        "component": args.component,
        "width": int(watermark.shape[1]),
        "height": int(watermark.shape[0]),
        "params": _params_to_dict(params),
        "psnr": calculate_psnr(cover, watermarked),
        "ssim": calculate_ssim(cover, watermarked),
    }
    if side_channel is not None:
        side_path = args.side_channel or os.path.splitext(args.output)[0] + "_side.npz"
        save_side_channel(side_channel, side_path, args.key)
        metadata["side_channel"] = side_path
        metadata["encrypted"] = args.key is not None
    metadata_path = args.metadata or os.path.splitext(args.output)[0] + ".json"
    _save_json(metadata_path, metadata)

    print(f"{method.display_name} [{params.describe()}] -> {args.output}")
    print(f"PSNR: {metadata['psnr']:.2f} dB, SSIM: {metadata['ssim']:.4f}")
    return 0


def cmd_extract(args) -> int:
    image = _read_image(args.image)
    metadata = _load_json(args.metadata) if args.metadata else {}

    method = args.method or metadata.get("method")
    if method is None:
        raise InvalidInputError("Chưa chọn phương pháp (dùng --method hoặc --metadata)")
    width = args.width or metadata.get("width")
    height = args.height or metadata.get("height")
    if not width or not height:
        raise InvalidInputError("Chưa biết kích thước thủy vân (dùng --width/--height hoặc --metadata)")
    component = args.component or metadata.get("component", "Y")

    values = dict(metadata.get("params", {}))
    if args.config:
        values.update(_load_json(args.config))
    values.update(_parse_key_values(args.param))
    params = params_from_dict(method, values)

    side_path = args.side_channel or metadata.get("side_channel")
    side_channel = None
    if side_path:
        side_channel = load_side_channel(side_path, args.key)
    elif not watermark_codecs.get_codec(method).blind:
        logger.warning("Không có dữ liệu lúc nhúng cho trích xuất %s", method)

    bits = extract_from_image(image, int(width), int(height), method, params, component, side_channel)
    _write_image(args.output, bitmap_to_image(bits))

    if args.reference:
        reference = to_bitmap(_read_image(args.reference))
        print(f"BER: {calculate_ber(reference, bits):.6f}, NC: {calculate_nc(reference, bits):.6f}")
    return 0


def cmd_attack(args) -> int:
    image = _read_image(args.image)
    kind = AttackKind.from_name(args.attack)
    params = _parse_key_values(args.param)
    attacked = apply_attack(image, kind, params)
    _write_image(args.output, attacked)
    print(f"{kind.display_name} ({describe_parameters(kind, params)}) -> {args.output}")
    return 0


def _print_results(results) -> None:
    print("\n===== KẾT QUẢ ĐÁNH GIÁ ĐỘ BỀN VỮNG =====")
    print(f"{'Method':<6} {'Comp':<4} {'Attack':<30} {'Params':<18} {'BER':>8} {'NC':>8} {'PSNR':>8}  Rating")
    for r in results:
        rating = "THẤT BẠI" if r.failed else f"{r.quality_rating} / {r.robustness_rating}"
        print(f"{r.method:<6} {r.component:<4} {r.attack.display_name:<30} {r.attack_parameters:<18} "
              f"{r.ber:>8.4f} {r.nc:>8.4f} {r.psnr:>8.2f}  {rating}")


def cmd_evaluate(args) -> int:
    cover = _read_image(args.cover)
    watermark = to_bitmap(_read_image(args.watermark))

    attacks = DEFAULT_ATTACKS
    if args.attacks:
        attacks = [(AttackKind.from_name(name), {}) for name in args.attacks]

    if args.protocol:
        components = args.components or list(COMPONENTS)
        results = run_protocol(cover, watermark, components=components, attacks=attacks)
    else:
        method = WatermarkType.from_name(args.method)
        params = _method_params(method.name, args.config, args.param)
        results = []
        for component in args.components or ["Y"]:
            results.extend(evaluate_robustness(cover, watermark, method, params, attacks, component))

    _print_results(results)
    if args.output:
        _save_json(args.output, [r.to_dict() for r in results])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Công cụ thủy vân ảnh số (LSB, DCT, DWT, SVD)")
    parser.add_argument("--log-level", default="INFO", help="Mức ghi log (DEBUG, INFO, WARNING, ERROR)")
    sub = parser.add_subparsers(dest="command", required=True)

    methods = [m.name for m in WatermarkType]

    p = sub.add_parser("embed", help="Nhúng thủy vân vào ảnh gốc")
    p.add_argument("--cover", required=True, help="Đường dẫn ảnh gốc")
    p.add_argument("--watermark", required=True, help="Đường dẫn ảnh thủy vân")
    p.add_argument("--output", required=True, help="Đường dẫn ảnh đã nhúng (dùng định dạng không mất dữ liệu)")
    p.add_argument("--method", choices=methods, default="DCT", help="Phương pháp thủy vân (mặc định: DCT)")
    p.add_argument("--component", choices=COMPONENTS, default="Y", help="Thành phần màu (mặc định: Y)")
    p.add_argument("--config", help="Tệp JSON chứa tham số của phương pháp")
    p.add_argument("--param", action="append", metavar="KEY=VALUE", help="Ghi đè tham số của phương pháp")
    p.add_argument("--side-channel", help="Nơi lưu dữ liệu lúc nhúng của DWT/SVD")
    p.add_argument("--side-channel-key", dest="key", help="Mã hóa dữ liệu lúc nhúng bằng khóa này")
    p.add_argument("--metadata", help="Nơi lưu metadata của lần nhúng (JSON)")
    p.set_defaults(func=cmd_embed)

    p = sub.add_parser("extract", help="Trích xuất thủy vân từ ảnh")
    p.add_argument("--image", required=True, help="Đường dẫn ảnh đã nhúng")
    p.add_argument("--output", required=True, help="Đường dẫn ảnh thủy vân trích xuất")
    p.add_argument("--metadata", help="Tệp metadata JSON do lệnh embed ghi ra")
    p.add_argument("--method", choices=methods, help="Phương pháp thủy vân")
    p.add_argument("--width", type=int, help="Chiều rộng thủy vân")
    p.add_argument("--height", type=int, help="Chiều cao thủy vân")
    p.add_argument("--component", choices=COMPONENTS, help="Thành phần màu")
    p.add_argument("--config", help="Tệp JSON chứa tham số của phương pháp")
    p.add_argument("--param", action="append", metavar="KEY=VALUE", help="Ghi đè tham số của phương pháp")
    p.add_argument("--side-channel", help="Tệp dữ liệu lúc nhúng của DWT/SVD")
    p.add_argument("--side-channel-key", dest="key", help="Khóa của dữ liệu lúc nhúng đã mã hóa")
    p.add_argument("--reference", help="Ảnh thủy vân gốc, in ra BER và NC")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("attack", help="Thực hiện một tấn công lên ảnh")
    p.add_argument("--image", required=True, help="Đường dẫn ảnh đầu vào")
    p.add_argument("--attack", required=True, choices=[k.name for k in AttackKind], help="Tấn công cần thực hiện")
    p.add_argument("--param", action="append", metavar="KEY=VALUE", help="Ghi đè tham số của tấn công")
    p.add_argument("--output", required=True, help="Đường dẫn ảnh sau tấn công")
    p.set_defaults(func=cmd_attack)

    p = sub.add_parser("evaluate", help="Đánh giá độ bền vững")
    p.add_argument("--cover", required=True, help="Đường dẫn ảnh gốc")
    p.add_argument("--watermark", required=True, help="Đường dẫn ảnh thủy vân")
    p.add_argument("--method", choices=methods, default="DCT", help="Phương pháp thủy vân (mặc định: DCT)")
    p.add_argument("--config", help="Tệp JSON chứa tham số của phương pháp")
    p.add_argument("--param", action="append", metavar="KEY=VALUE", help="Ghi đè tham số của phương pháp")
    p.add_argument("--components", nargs="+", choices=COMPONENTS, help="Các thành phần màu cần thử (mặc định: Y)")
    p.add_argument("--attacks", nargs="+", choices=[k.name for k in AttackKind],
                   help="Các tấn công với tham số mặc định (mặc định: toàn bộ danh sách)")
    p.add_argument("--protocol", action="store_true", help="Chạy toàn bộ lưới tham số của mọi phương pháp")
    p.add_argument("--output", help="Ghi kết quả ra tệp JSON")
    p.set_defaults(func=cmd_evaluate)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        return args.func(args)
    except WatermarkError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
