# talent_finance/utils.py
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from .exceptions import InvalidConfigError

DateLike = Union[date, datetime, str]


def to_decimal(value) -> Decimal:
    """统一转换为Decimal，浮点数经字符串转换避免二进制误差"""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal('0')
    return Decimal(str(value))


def round_half_up(value, places: int = 2) -> Decimal:
    """四舍五入到指定小数位（Decimal语义，不受浮点银行家舍入影响）"""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def round_to_fen(value) -> int:
    """金额（分）取整到整数分"""
    return int(to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def fen_to_yuan(amount) -> Decimal:
    """分转元，仅在展示层使用"""
    return round_half_up(to_decimal(amount) / Decimal('100'), 2)


def calculate_cpm(amount_fen, views: int) -> float:
    """
    CPM = 金额(元) / 播放量 × 1000，保留两位小数
    :param amount_fen: 金额（分），先除以100换算为元
    :param views: 播放量
    """
    if not views or views <= 0:
        return 0
    cpm = fen_to_yuan(amount_fen) / Decimal(views) * Decimal('1000')
    return float(round_half_up(cpm, 2))


def parse_date(value: Optional[DateLike]) -> Optional[date]:
    """解析参考日期，支持 date / datetime / 'YYYY-MM-DD' 字符串"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        raise InvalidConfigError(f"无效的日期: {value}，格式应为YYYY-MM-DD")
