import json

import cv2
import numpy as np
import pytest

from binary_watermark import bitmap_to_image
from main_watermarking_app import build_parser, main


@pytest.fixture
def images(tmp_path, color_cover, bitmap_8):
    cover = tmp_path / "cover.png"
    mark = tmp_path / "mark.png"
    cv2.imwrite(str(cover), color_cover)
    cv2.imwrite(str(mark), bitmap_to_image(bitmap_8))
    return cover, mark


def test_embed_then_extract_with_metadata(tmp_path, images, bitmap_8):
    cover, mark = images
    out = tmp_path / "marked.png"
    assert main(["--log-level", "WARNING", "embed", "--cover", str(cover), "--watermark", str(mark),
                 "--output", str(out), "--method", "DCT", "--param", "strength=12"]) == 0

    metadata = json.loads((tmp_path / "marked.json").read_text())
    assert metadata["method"] == "DCT"
    assert metadata["width"] == 8 and metadata["height"] == 8
    assert metadata["params"]["strength"] == 12

    extracted_path = tmp_path / "extracted.png"
    assert main(["extract", "--image", str(out), "--metadata", str(tmp_path / "marked.json"),
                 "--output", str(extracted_path)]) == 0
    extracted = cv2.imread(str(extracted_path), cv2.IMREAD_GRAYSCALE)
    assert np.array_equal(extracted > 128, bitmap_8)


def test_dwt_side_channel_is_written_and_used(tmp_path, images, bitmap_8):
    cover, mark = images
    out = tmp_path / "dwt.png"
    assert main(["embed", "--cover", str(cover), "--watermark", str(mark), "--output", str(out),
                 "--method", "DWT", "--side-channel-key", "secret"]) == 0
    assert (tmp_path / "dwt_side.npz").exists()

    extracted_path = tmp_path / "dwt_extracted.png"
    assert main(["extract", "--image", str(out), "--metadata", str(tmp_path / "dwt.json"),
                 "--side-channel-key", "secret", "--output", str(extracted_path)]) == 0
    extracted = cv2.imread(str(extracted_path), cv2.IMREAD_GRAYSCALE)
    assert np.array_equal(extracted > 128, bitmap_8)


def test_attack_command(tmp_path, images):
    cover, _ = images
    out = tmp_path / "mirrored.png"
    assert main(["attack", "--image", str(cover), "--attack", "MIRRORING", "--param", "direction=vertical",
                 "--output", str(out)]) == 0
    original = cv2.imread(str(cover))
    assert np.array_equal(cv2.imread(str(out)), original[::-1])


def test_evaluate_writes_json(tmp_path, images):
    cover, mark = images
    report = tmp_path / "results.json"
    assert main(["evaluate", "--cover", str(cover), "--watermark", str(mark), "--method", "DCT",
                 "--attacks", "NONE", "PNG_COMPRESSION", "--output", str(report)]) == 0
    data = json.loads(report.read_text())
    assert [row["attack"] for row in data] == ["NONE", "PNG_COMPRESSION"]
    assert data[0]["ber"] == 0.0
    assert data[0]["quality_rating"] == "Excellent"


def test_watermark_errors_give_exit_code_1(tmp_path, images):
    cover, _ = images
    big = tmp_path / "big.png"
    cv2.imwrite(str(big), np.full((32, 32), 255, dtype=np.uint8))
    assert main(["embed", "--cover", str(cover), "--watermark", str(big), "--output",
                 str(tmp_path / "x.png"), "--method", "DCT"]) == 1


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
