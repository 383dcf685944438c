import json
import os
from decimal import Decimal
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()


class Settings:
    # API基础配置
    API_TITLE = os.getenv("API_TITLE", "达人营销报价结算API")
    API_VERSION = os.getenv("API_VERSION", "1.0.0")
    DESCRIPTION = "刊例价到结算金额的系数计算、合作财务核算与项目统计接口服务"

    # 日志级别
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # 税率（现行政策6%，允许通过环境变量覆盖）
    DEFAULT_TAX_RATE = Decimal(os.getenv("DEFAULT_TAX_RATE", "0.06"))

    # 系数展示保留小数位
    COEFFICIENT_DISPLAY_PLACES = int(os.getenv("COEFFICIENT_DISPLAY_PLACES", "4"))

    # 平台默认改价系数（1 表示不允许改价）
    DEFAULT_ORDER_PRICE_RATIO = Decimal(os.getenv("DEFAULT_ORDER_PRICE_RATIO", "1"))

    # 资金占用费月费率（%），0 表示不计算
    FUNDS_OCCUPATION_MONTHLY_RATE = Decimal(os.getenv("FUNDS_OCCUPATION_MONTHLY_RATE", "0"))

    # 参与财务计算的合作状态
    finance_statuses_str = os.getenv("FINANCE_VALID_STATUSES")
    if finance_statuses_str:
        FINANCE_VALID_STATUSES = json.loads(finance_statuses_str)
    else:
        FINANCE_VALID_STATUSES = ["scheduled", "published"]

    @property
    def finance_valid_statuses(self):
        return frozenset(self.FINANCE_VALID_STATUSES)


# 创建配置实例
settings = Settings()
