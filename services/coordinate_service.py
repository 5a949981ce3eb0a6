"""
座標服務：畫布座標與顏色的驗證、線性化

純計算邏輯，不涉及狀態
"""
from typing import Tuple

from core.exceptions import InvalidCoordinates, InvalidColor

MAX_COLOR = 0xFFFFFF


def validate_coordinates(x: int, y: int, width: int, height: int) -> None:
    """
    檢查座標是否在畫布內（0 <= x < width, 0 <= y < height）

    異常：
        InvalidCoordinates: 超出範圍或不是整數
    """
    if isinstance(x, bool) or isinstance(y, bool) or not isinstance(x, int) or not isinstance(y, int):
        raise InvalidCoordinates(x, y)
    if not (0 <= x < width and 0 <= y < height):
        raise InvalidCoordinates(x, y)


def validate_color(color: int) -> None:
    """顏色必須是 0..0xFFFFFF 的整數"""
    if isinstance(color, bool) or not isinstance(color, int) or not (0 <= color <= MAX_COLOR):
        raise InvalidColor(color)


def to_coordinate(x: int, y: int, width: int) -> int:
    """
    線性化座標：y * width + x

    範例（width=3000）：
        to_coordinate(100, 200, 3000) -> 600100
    """
    return y * width + x


def from_coordinate(coordinate: int, width: int) -> Tuple[int, int]:
    """to_coordinate 的反函式，返回 (x, y)"""
    return coordinate % width, coordinate // width


def validate_region(x0: int, y0: int, w: int, h: int, width: int, height: int) -> None:
    """
    檢查矩形區域 [x0, x0+w) x [y0, y0+h) 是否完全在畫布內

    寬高至少為 1
    """
    validate_coordinates(x0, y0, width, height)
    if isinstance(w, bool) or isinstance(h, bool) or not isinstance(w, int) or not isinstance(h, int):
        raise InvalidCoordinates(x0, y0, f"Invalid region size {w}x{h}")
    if w < 1 or h < 1 or x0 + w > width or y0 + h > height:
        raise InvalidCoordinates(
            x0, y0, f"Region ({x0}, {y0}) {w}x{h} exceeds the {width}x{height} canvas"
        )
