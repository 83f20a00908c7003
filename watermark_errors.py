# watermark_errors.py
"""
Các ngoại lệ của bộ mã hóa thủy vân, các tấn công và phần đánh giá.

Tất cả đều kế thừa ValueError để mã chỉ bắt ValueError khi dữ liệu đầu
vào sai vẫn hoạt động.
"""


class WatermarkError(ValueError):
    """Lớp cơ sở cho các lỗi thủy vân"""


class InvalidInputError(WatermarkError):
    """Dữ liệu đầu vào thiếu hoặc sai (ảnh None, tham số không hợp lệ)"""


class OversizeWatermarkError(WatermarkError):
    """Thủy vân không vừa với mặt phẳng ảnh gốc"""


class DimensionMismatchError(WatermarkError):
    """Hai ảnh cần so sánh có kích thước khác nhau"""


class MissingSideChannelError(WatermarkError):
    """Trích xuất không mù nhưng thiếu dữ liệu lưu lúc nhúng"""


class CodecFailureError(WatermarkError):
    """Mã hóa / giải mã ảnh thất bại"""
