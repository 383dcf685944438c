import pytest
import sys
import os
from datetime import date

# 将项目根目录添加到sys.path，以便导入talent_finance模块
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../")))

from talent_finance.models import FeeConfig, Collaboration, DailyStat
from talent_finance.services import CollaborationFinanceEvaluator, AggregationEngine


@pytest.fixture
def worked_config():
    """折扣0.7、平台费5%、服务费3%、税率6%的示例配置"""
    return FeeConfig(
        id="cfg_worked",
        platform="douyin",
        discount_rate=0.7,
        platform_fee_rate=0.05,
        service_fee_rate=0.03,
        tax_rate=0.06,
        includes_platform_fee=True,
        service_fee_base="beforeDiscount",
        includes_tax=False,
        tax_calculation_base="excludeServiceFee",
        valid_from=date(2025, 1, 1),
    )


@pytest.fixture
def douyin_configs():
    """抖音两个相邻时间段的配置"""
    return [
        FeeConfig(id="cfg_h1", platform="douyin", discount_rate=0.795, platform_fee_rate=0.05,
                  service_fee_rate=0.05, valid_from=date(2025, 1, 1), valid_to=date(2025, 5, 31)),
        FeeConfig(id="cfg_h2", platform="douyin", discount_rate=0.85, platform_fee_rate=0.05,
                  service_fee_rate=0.05, valid_from=date(2025, 6, 1), valid_to=date(2025, 12, 31)),
    ]


@pytest.fixture
def identity_configs():
    """系数为1的长期配置（收入 = 刊例价），方便核对统计数字"""
    return [
        FeeConfig(id="cfg_dy_identity", platform="douyin", is_permanent=True),
        FeeConfig(id="cfg_xhs_identity", platform="xiaohongshu", is_permanent=True),
    ]


@pytest.fixture
def make_collaboration():
    def _make(id, amount, status="scheduled", platform="douyin", stats=None, **kwargs):
        kwargs.setdefault("price_locked_date", date(2025, 6, 1))
        return Collaboration(
            id=id,
            platform=platform,
            quoted_amount=amount,
            status=status,
            daily_stats=[DailyStat(date=d, total_views=v) for d, v in (stats or [])],
            **kwargs
        )
    return _make


@pytest.fixture
def identity_engine(identity_configs):
    return AggregationEngine(CollaborationFinanceEvaluator(identity_configs))
