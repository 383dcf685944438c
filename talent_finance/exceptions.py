"""
财务计算统一异常定义
"""


class FinanceError(Exception):
    """财务计算相关错误的基类"""
    pass


class ConfigNotFoundError(FinanceError):
    """指定平台在参考日期没有生效的费率配置"""

    def __init__(self, platform, as_of):
        self.platform = platform
        self.as_of = as_of
        super().__init__(f"平台 {platform} 在 {as_of} 没有生效的费率配置")


class InvalidConfigError(FinanceError):
    """费率配置本身不合法（日期、枚举等）"""
    pass


class InvalidRateError(InvalidConfigError):
    """费率字段为负数或超出取值范围"""

    def __init__(self, field, value, reason="不能为负数"):
        self.field = field
        self.value = value
        super().__init__(f"费率字段 {field}={value} {reason}")


class InvalidAmountError(FinanceError):
    """金额不合法（如刊例价为负数）"""
    pass


class MissingReferenceDateError(FinanceError):
    """合作记录缺少用于匹配费率配置的参考日期"""

    def __init__(self, collaboration_id):
        self.collaboration_id = collaboration_id
        super().__init__(f"合作记录 {collaboration_id} 缺少锁价日期和创建日期，无法匹配费率配置")
