from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer
from typing import List, Dict, Optional, Any, Literal

from .config import settings


# ============================================================================
# 费率配置
# ============================================================================

class ServiceFeeBase(str, Enum):
    """服务费计算基准"""
    BEFORE_DISCOUNT = "beforeDiscount"  # 折前（刊例价 + 平台费）
    AFTER_DISCOUNT = "afterDiscount"  # 折后金额


class TaxCalculationBase(str, Enum):
    """税费计算基准"""
    EXCLUDE_SERVICE_FEE = "excludeServiceFee"  # 仅折后金额
    INCLUDE_SERVICE_FEE = "includeServiceFee"  # 折后金额 + 服务费


class ConfigStatus(str, Enum):
    ACTIVE = "active"
    UPCOMING = "upcoming"
    EXPIRED = "expired"
    PERMANENT = "permanent"


CONFIG_STATUS_NAMES = {
    ConfigStatus.ACTIVE: "当前生效",
    ConfigStatus.UPCOMING: "即将生效",
    ConfigStatus.EXPIRED: "已过期",
    ConfigStatus.PERMANENT: "长期有效",
}

RATE_FIELDS = ("discount_rate", "platform_fee_rate", "service_fee_rate", "tax_rate")


def _default_tax_rate() -> float:
    return float(settings.DEFAULT_TAX_RATE)


class FeeConfig(BaseModel):
    """单个平台、单个有效期的费率配置（版本化，引用后不可修改）"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = Field(None, description="配置版本ID")
    platform: Optional[str] = Field(None, description="平台标识，如 douyin / xiaohongshu")
    discount_rate: float = Field(1.0, alias="discountRate", description="折扣率 (0-1)")
    platform_fee_rate: float = Field(0.0, alias="platformFeeRate", description="平台费率 (0-1)")
    service_fee_rate: float = Field(0.0, alias="serviceFeeRate", description="服务费率 (0-1)")
    includes_platform_fee: bool = Field(False, alias="includesPlatformFee", description="折扣是否包含平台费")
    service_fee_base: ServiceFeeBase = Field(ServiceFeeBase.BEFORE_DISCOUNT, alias="serviceFeeBase",
                                             description="服务费计算基准")
    includes_tax: bool = Field(True, alias="includesTax", description="报价是否含税")
    tax_calculation_base: TaxCalculationBase = Field(TaxCalculationBase.EXCLUDE_SERVICE_FEE,
                                                     alias="taxCalculationBase", description="税费计算基准")
    tax_rate: float = Field(default_factory=_default_tax_rate, alias="taxRate", description="税率，现行6%")
    valid_from: Optional[date] = Field(None, alias="validFrom", description="有效期开始（含）")
    valid_to: Optional[date] = Field(None, alias="validTo", description="有效期结束（含），为空表示不设结束")
    is_permanent: bool = Field(False, alias="isPermanent", description="是否长期有效")

    @property
    def is_dated(self) -> bool:
        return self.valid_from is not None and not self.is_permanent

    def covers(self, day: date) -> bool:
        """有效期是否覆盖指定日期（长期有效的配置不参与日期匹配）"""
        if not self.is_dated:
            return False
        if day < self.valid_from:
            return False
        return self.valid_to is None or day <= self.valid_to


PricingModel = Literal["framework", "project", "hybrid"]


class PlatformPricingStrategy(BaseModel):
    """单个平台的定价策略"""
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = Field(False, description="是否启用该平台")
    pricing_model: PricingModel = Field("framework", alias="pricingModel", description="定价模式")
    configs: Optional[List[FeeConfig]] = Field(None, description="多时间段配置，project 模式为空")


# ============================================================================
# 合作记录
# ============================================================================

STATUS_NAMES = {
    "pending": "待定档",
    "scheduled": "客户已定档",
    "published": "视频已发布",
    "cancelled": "已取消",
}


class DailyStat(BaseModel):
    """单日统计数据"""
    model_config = ConfigDict(populate_by_name=True)

    date: date
    total_views: int = Field(0, ge=0, alias="totalViews", description="累计播放量")
    source: Optional[str] = Field(None, description="数据来源: auto / manual / migrated")


class Collaboration(BaseModel):
    """合作（下单）记录"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="合作记录ID")
    platform: str = Field(..., validation_alias=AliasChoices("platform", "talentPlatform"), description="平台标识")
    quoted_amount: int = Field(..., validation_alias=AliasChoices("quotedAmount", "amount", "quoted_amount"),
                               description="刊例价（分）")
    status: str = Field("pending", description="合作状态")
    daily_stats: List[DailyStat] = Field(default_factory=list, alias="dailyStats", description="日报数据")
    price_locked_date: Optional[date] = Field(None, alias="priceLockedDate", description="锁价日期")
    created_at: Optional[date] = Field(None, alias="createdAt", description="创建（预约）日期")
    rebate_rate: float = Field(0.0, ge=0, allow_inf_nan=False, alias="rebateRate", description="返点率（%）")
    order_mode: Literal["adjusted", "original"] = Field("adjusted", alias="orderMode", description="下单方式")
    pricing_mode: Literal["framework", "project"] = Field("framework", alias="pricingMode", description="计价方式")
    quotation_price: Optional[int] = Field(None, alias="quotationPrice", description="对客报价（分），比价模式")
    order_price: Optional[int] = Field(None, alias="orderPrice", description="下单价（分），比价模式")
    adjustments: List[int] = Field(default_factory=list, description="调整项金额（分）")
    order_date: Optional[date] = Field(None, alias="orderDate", description="下单日期")
    recovery_date: Optional[date] = Field(None, alias="recoveryDate", description="回款日期")

    @property
    def reference_date(self) -> Optional[date]:
        return self.price_locked_date or self.created_at

    def stat_on(self, day: date) -> Optional[DailyStat]:
        """指定日期的日报数据，同一天多次写入以最后一次为准"""
        found = None
        for stat in self.daily_stats:
            if stat.date == day:
                found = stat
        return found

    def latest_stat_date(self) -> Optional[date]:
        if not self.daily_stats:
            return None
        return max(stat.date for stat in self.daily_stats)


# ============================================================================
# 计算结果
# ============================================================================

class FinanceBreakdown(BaseModel):
    """各阶段金额（分，未取整）"""
    platform_fee_amount: Decimal = Field(..., description="平台费")
    discounted_amount: Decimal = Field(..., description="折后金额")
    service_fee_amount: Decimal = Field(..., description="服务费")
    tax_amount: Decimal = Field(..., description="税费")

    @field_serializer("platform_fee_amount", "discounted_amount", "service_fee_amount", "tax_amount",
                      when_used="json")
    def _decimal_to_float(self, value: Decimal) -> float:
        return float(value)


class CoefficientResult(BaseModel):
    """系数计算结果"""
    platform: Optional[str] = Field(None, description="平台标识")
    base_amount: int = Field(..., description="刊例价（分）")
    breakdown: FinanceBreakdown
    final_amount: Decimal = Field(..., description="结算金额（分，未取整）")
    coefficient: Optional[float] = Field(None, description="支付系数，刊例价为0时为空")
    service_fee_applied: bool = Field(False, description="是否计算了服务费")
    calculation_steps: List[str] = Field(default_factory=list, description="计算过程")

    @field_serializer("final_amount", when_used="json")
    def _decimal_to_float(self, value: Decimal) -> float:
        return float(value)


class FinanceResult(BaseModel):
    """单条合作记录的财务数据（按需计算，不持久化）"""
    revenue: int = Field(..., description="结算金额/收入（分）")
    coefficient: Optional[float] = Field(None, description="支付系数")
    breakdown: Optional[FinanceBreakdown] = Field(None, description="各阶段金额，比价模式为空")
    config_id: Optional[str] = Field(None, description="计算所用的配置版本ID")
    pricing_mode: str = Field("framework", description="计价方式")
    cost: int = Field(0, description="下单成本（分）")
    rebate_income: int = Field(0, description="返点收入（分）")
    profit: int = Field(0, description="利润（分）= 收入 - 成本 + 返点")
    calculated_at: datetime = Field(default_factory=datetime.now, description="计算时间")


class FinanceFailure(BaseModel):
    collaboration_id: str = Field(..., description="合作记录ID")
    error_type: str = Field(..., description="错误类型")
    message: str = Field(..., description="错误信息")


class EvaluationReport(BaseModel):
    results: Dict[str, FinanceResult] = Field(default_factory=dict, description="按合作记录ID索引的财务数据")
    failures: List[FinanceFailure] = Field(default_factory=list, description="计算失败的记录")


class TrackingStats(BaseModel):
    """项目追踪统计"""
    collaboration_count: int = Field(0, description="已定档+已发布的合作数")
    data_entered_count: int = Field(0, description="最新数据日期已录入的合作数")
    total_amount: int = Field(0, description="项目金额（分）")
    entered_amount: int = Field(0, description="已录入金额（分）")
    total_views: int = Field(0, description="最新数据日期的总播放量")
    avg_cpm: float = Field(0, description="平均CPM（元/千次播放）")
    latest_data_date: Optional[date] = Field(None, description="最新数据日期")
    failures: List[FinanceFailure] = Field(default_factory=list, description="财务数据无法计算的记录")


class PlatformFinanceStats(BaseModel):
    platform: str
    count: int = 0
    total_revenue: int = 0
    total_cost: int = 0
    total_rebate_income: int = 0
    total_adjustments: int = 0
    total_funds_occupation: int = 0
    base_profit: int = 0
    base_profit_rate: float = 0
    total_profit: int = 0
    profit_rate: float = 0


class ProjectFinanceStats(BaseModel):
    total_revenue: int = 0
    total_cost: int = 0
    total_rebate_income: int = 0
    total_adjustments: int = 0
    funds_occupation: Optional[int] = None
    base_profit: int = 0
    base_profit_rate: float = 0
    total_profit: int = 0
    profit_rate: float = 0
    platform_stats: List[PlatformFinanceStats] = Field(default_factory=list)
    failures: List[FinanceFailure] = Field(default_factory=list)


class DailyReportDetail(BaseModel):
    """日报明细行"""
    collaboration_id: str
    platform: str
    status: str
    status_name: Optional[str] = Field(None, description="状态名称")
    revenue: int = Field(..., description="收入（分）")
    total_views: int = Field(..., description="累计播放量")
    cpm: float = Field(..., description="当日CPM")
    cpm_change: Optional[float] = Field(None, description="CPM环比变化")
    views_change: Optional[int] = Field(None, description="播放量环比变化")


class DailyReport(BaseModel):
    """日报：明细行及财务数据无法计算的记录"""
    report_date: date
    details: List[DailyReportDetail] = Field(default_factory=list)
    failures: List[FinanceFailure] = Field(default_factory=list)


# ============================================================================
# 接口请求/响应模型
# ============================================================================

class CoefficientRequest(BaseModel):
    """系数计算请求模型"""
    model_config = ConfigDict(populate_by_name=True)

    base_amount: int = Field(..., alias="baseAmount", description="刊例价（分）")
    config: FeeConfig = Field(..., description="费率配置")


class ResolveConfigRequest(BaseModel):
    """配置匹配请求模型"""
    model_config = ConfigDict(populate_by_name=True)

    platform: str = Field(..., description="平台标识")
    as_of: date = Field(..., alias="asOf", description="参考日期")
    configs: List[FeeConfig] = Field(..., description="全部配置版本")


class FinanceBatchRequest(BaseModel):
    """合作财务批量计算请求模型"""
    model_config = ConfigDict(populate_by_name=True)

    configs: List[FeeConfig] = Field(..., description="全部配置版本")
    collaborations: List[Collaboration] = Field(..., description="合作记录列表")
    order_price_ratios: Dict[str, float] = Field(default_factory=dict, alias="orderPriceRatios",
                                                 description="平台改价系数")


class ProjectStatsRequest(FinanceBatchRequest):
    """项目财务统计请求模型"""
    funds_occupation_enabled: bool = Field(False, alias="fundsOccupationEnabled", description="是否计算资金占用费")
    monthly_rate: Optional[float] = Field(None, ge=0, alias="monthlyRate", description="资金占用月费率（%）")
    as_of: Optional[date] = Field(None, alias="asOf", description="资金占用计算截止日期")
    filter_by_status: bool = Field(True, alias="filterByStatus", description="是否按状态筛选")


class DailyReportRequest(FinanceBatchRequest):
    """日报明细请求模型"""
    report_date: date = Field(..., alias="reportDate", description="日报日期")


class EffectiveCoefficientsRequest(BaseModel):
    """平台有效系数请求模型"""
    model_config = ConfigDict(populate_by_name=True)

    strategies: Dict[str, PlatformPricingStrategy] = Field(..., description="平台定价策略，key为平台标识")
    as_of: date = Field(..., alias="asOf", description="参考日期")


class FinanceResponse(BaseModel):
    """通用响应模型"""
    success: bool = Field(..., description="是否成功")
    message: str = Field(..., description="处理信息")
    data: Optional[Any] = Field(None, description="计算结果")
    request_id: str = Field(..., description="请求ID，用于追踪")
