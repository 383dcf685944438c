# talent_finance/config_resolver.py
import logging
import math
from typing import Iterable, List, Optional, Tuple

from .exceptions import ConfigNotFoundError, InvalidConfigError, InvalidRateError
from .models import FeeConfig, ConfigStatus, RATE_FIELDS
from .utils import DateLike, parse_date

logger = logging.getLogger(__name__)


class ConfigResolver:
    """按平台和参考日期匹配唯一生效的费率配置"""

    def __init__(self, configs: Optional[Iterable[FeeConfig]] = None):
        self.configs: List[FeeConfig] = list(configs or [])

    def configs_for(self, platform: str) -> List[FeeConfig]:
        return [c for c in self.configs if c.platform == platform]

    def resolve(self, platform: str, as_of: DateLike) -> FeeConfig:
        """
        获取平台在参考日期生效的配置
        规则：
        1. 优先匹配「有效期覆盖参考日期」的配置，多条命中时取开始日期最晚的一条
        2. 如没有，使用「长期有效」的配置
        3. 都没有则抛出 ConfigNotFoundError
        """
        day = parse_date(as_of)
        if day is None:
            raise InvalidConfigError("参考日期不能为空")
        if not platform:
            raise InvalidConfigError("平台标识不能为空")

        candidates = self.configs_for(platform)
        matched = [c for c in candidates if c.covers(day)]
        if matched:
            if len(matched) > 1:
                logger.warning(f"平台 {platform} 在 {day} 命中 {len(matched)} 条配置，时间段存在重叠，"
                               f"按开始日期最晚的配置计算")
            return max(matched, key=lambda c: c.valid_from)

        permanent = [c for c in candidates if c.is_permanent]
        if permanent:
            if len(permanent) > 1:
                logger.warning(f"平台 {platform} 存在 {len(permanent)} 条长期有效配置，使用第一条")
            return permanent[0]

        logger.info(f"平台 {platform} 在 {day} 没有生效配置（共 {len(candidates)} 条配置版本）")
        raise ConfigNotFoundError(platform, day)


def get_effective_config(configs: Optional[Iterable[FeeConfig]], as_of: DateLike) -> Optional[FeeConfig]:
    """不区分平台的配置列表中取生效配置，未命中返回None（用于单平台策略）"""
    configs = list(configs or [])
    if not configs:
        return None
    day = parse_date(as_of)
    matched = [c for c in configs if c.covers(day)]
    if matched:
        return max(matched, key=lambda c: c.valid_from)
    return next((c for c in configs if c.is_permanent), None)


def get_config_status(config: FeeConfig, as_of: DateLike) -> ConfigStatus:
    day = parse_date(as_of)

    if config.is_permanent:
        return ConfigStatus.PERMANENT

    # 无开始日期且非长期有效，视为过期
    if config.valid_from is None:
        return ConfigStatus.EXPIRED

    if config.valid_from > day:
        return ConfigStatus.UPCOMING

    if config.valid_to is not None and config.valid_to < day:
        return ConfigStatus.EXPIRED

    return ConfigStatus.ACTIVE


def _overlaps(a: FeeConfig, b: FeeConfig) -> bool:
    # A.start <= B.end && A.end >= B.start，结束日期为空视为无限期
    a_before_b_end = b.valid_to is None or a.valid_from <= b.valid_to
    a_end_after_b_start = a.valid_to is None or a.valid_to >= b.valid_from
    return a_before_b_end and a_end_after_b_start


def find_time_overlap(configs: Iterable[FeeConfig],
                      exclude_id: Optional[str] = None) -> Optional[Tuple[FeeConfig, FeeConfig]]:
    """检查同一平台的配置时间段是否重叠，长期有效的配置不参与校验"""
    dated = [c for c in configs if c.is_dated and (exclude_id is None or c.id != exclude_id)]

    for i in range(len(dated)):
        for j in range(i + 1, len(dated)):
            a, b = dated[i], dated[j]
            if a.platform != b.platform:
                continue
            if _overlaps(a, b):
                return a, b
    return None


def validate_no_overlap(new_config: FeeConfig, existing: Iterable[FeeConfig],
                        exclude_id: Optional[str] = None) -> Tuple[bool, Optional[str]]:
    """校验新配置是否与现有配置重叠"""
    if not new_config.is_dated:
        return True, None

    for other in existing:
        if not other.is_dated or other.platform != new_config.platform:
            continue
        if exclude_id is not None and other.id == exclude_id:
            continue
        if _overlaps(new_config, other):
            return False, (f"配置时间段 ({new_config.valid_from} ~ {new_config.valid_to or '不限'}) "
                           f"与现有配置 ({other.valid_from} ~ {other.valid_to or '不限'}) 重叠")
    return True, None


def validate_fee_config(config: FeeConfig) -> None:
    """录入配置时的取值校验：费率在 [0, 1] 之间，有效期合法"""
    for field in RATE_FIELDS:
        value = getattr(config, field)
        if not math.isfinite(value):
            raise InvalidRateError(field, value, reason="必须为有限数值")
        if value < 0:
            raise InvalidRateError(field, value)
        if value > 1:
            raise InvalidRateError(field, value, reason="不能大于1")

    if not config.is_permanent and config.valid_from is None:
        raise InvalidConfigError("配置必须设置有效期或勾选长期有效")

    if config.valid_from and config.valid_to and config.valid_from > config.valid_to:
        raise InvalidConfigError(f"有效期开始日期 {config.valid_from} 晚于结束日期 {config.valid_to}")
