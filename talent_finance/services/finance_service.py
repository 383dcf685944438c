import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Any

from ..coefficient_calculator import CoefficientCalculator
from ..config import settings
from ..config_resolver import ConfigResolver
from ..exceptions import FinanceError, MissingReferenceDateError, InvalidAmountError
from ..models import (
    Collaboration, FeeConfig, FinanceResult, FinanceFailure, EvaluationReport
)
from ..utils import to_decimal, round_to_fen


class CollaborationFinanceEvaluator:
    """合作记录财务计算服务：匹配配置 → 系数计算 → 收入/成本/返点"""

    def __init__(self, configs: Iterable[FeeConfig], order_price_ratios: Optional[Dict[str, Any]] = None,
                 calculator: Optional[CoefficientCalculator] = None):
        self.resolver = ConfigResolver(configs)
        self.order_price_ratios = {k: to_decimal(v) for k, v in (order_price_ratios or {}).items()}
        self.calculator = calculator or CoefficientCalculator()
        self.logger = logging.getLogger(__name__)

    def _order_price_ratio(self, platform: str) -> Decimal:
        return self.order_price_ratios.get(platform, settings.DEFAULT_ORDER_PRICE_RATIO)

    def _calculate_order_cost(self, amount: int, platform_fee_rate: Decimal, rebate_rate: Decimal,
                              order_price_ratio: Decimal, order_mode: str):
        """
        计算下单成本和返点收入
        - 原价下单：成本 = 刊例价 × (1 + 平台费率)，返点 = 刊例价 × 返点率
        - 改价下单：实际改价比例 = min(1 - 改价系数, 返点率)
                   成本 = 刊例价 × (1 + 平台费率) × (1 - 实际改价比例)
                   返点 = 刊例价 × (返点率 - 实际改价比例)
        """
        base = to_decimal(amount)
        rebate_ratio = rebate_rate / Decimal('100')

        if order_mode == "original":
            cost = round_to_fen(base * (1 + platform_fee_rate))
            rebate_income = round_to_fen(base * rebate_ratio)
        else:
            max_discount_ratio = 1 - order_price_ratio
            actual_discount_ratio = min(max_discount_ratio, rebate_ratio)
            cost = round_to_fen(base * (1 + platform_fee_rate) * (1 - actual_discount_ratio))
            rebate_income = round_to_fen(base * (rebate_ratio - actual_discount_ratio))

        return cost, rebate_income

    def _evaluate_project_mode(self, collaboration: Collaboration) -> FinanceResult:
        """比价模式：使用手动填写的对客报价与下单价"""
        revenue = collaboration.quotation_price or 0
        cost = collaboration.order_price or 0
        base = to_decimal(collaboration.quoted_amount)
        rebate_ratio = to_decimal(collaboration.rebate_rate) / Decimal('100')

        if collaboration.order_mode == "original":
            rebate_income = round_to_fen(base * rebate_ratio)
        else:
            max_discount_ratio = 1 - self._order_price_ratio(collaboration.platform)
            rebate_income = round_to_fen(base * max(Decimal('0'), rebate_ratio - max_discount_ratio))

        coefficient = float(to_decimal(revenue) / base) if base > 0 else None

        return FinanceResult(
            revenue=revenue,
            coefficient=coefficient,
            pricing_mode="project",
            cost=cost,
            rebate_income=rebate_income,
            profit=revenue - cost + rebate_income,
        )

    def evaluate(self, collaboration: Collaboration, cached_result: Optional[FinanceResult] = None) -> FinanceResult:
        """
        计算单条合作记录的财务数据
        :param collaboration: 合作记录
        :param cached_result: 调用方缓存的结果；仅当其配置版本与当前匹配到的配置一致时直接返回
        """
        if collaboration.quoted_amount < 0:
            raise InvalidAmountError(f"合作记录 {collaboration.id} 刊例价为负数: {collaboration.quoted_amount}")

        if collaboration.pricing_mode == "project":
            return self._evaluate_project_mode(collaboration)

        reference_date = collaboration.reference_date
        if reference_date is None:
            raise MissingReferenceDateError(collaboration.id)

        config = self.resolver.resolve(collaboration.platform, reference_date)

        if cached_result is not None:
            if cached_result.config_id is not None and cached_result.config_id == config.id:
                return cached_result
            self.logger.warning(f"合作记录 {collaboration.id} 的缓存结果基于配置 {cached_result.config_id}，"
                                f"当前生效配置为 {config.id}，重新计算")

        result = self.calculator.calculate(collaboration.quoted_amount, config)
        revenue = round_to_fen(result.final_amount)

        cost, rebate_income = self._calculate_order_cost(
            collaboration.quoted_amount,
            to_decimal(config.platform_fee_rate),
            to_decimal(collaboration.rebate_rate),
            self._order_price_ratio(collaboration.platform),
            collaboration.order_mode,
        )

        return FinanceResult(
            revenue=revenue,
            coefficient=result.coefficient,
            breakdown=result.breakdown,
            config_id=config.id,
            pricing_mode="framework",
            cost=cost,
            rebate_income=rebate_income,
            profit=revenue - cost + rebate_income,
        )

    def evaluate_many(self, collaborations: Iterable[Collaboration]) -> EvaluationReport:
        """批量计算，单条失败不影响其他记录"""
        report = EvaluationReport()
        for collaboration in collaborations:
            try:
                report.results[collaboration.id] = self.evaluate(collaboration)
            except FinanceError as e:
                self.logger.warning(f"合作记录 {collaboration.id} 财务计算失败: {e}")
                report.failures.append(FinanceFailure(
                    collaboration_id=collaboration.id,
                    error_type=type(e).__name__,
                    message=str(e),
                ))

        self.logger.info(f"财务计算完成，成功 {len(report.results)} 条，失败 {len(report.failures)} 条")
        return report


def calculate_adjustments_total(adjustments: Optional[List[int]]) -> int:
    if not adjustments:
        return 0
    return sum(adjustments)


def calculate_funds_occupation(collaboration: Collaboration, finance: Optional[FinanceResult], monthly_rate,
                               as_of: date) -> Optional[Tuple[Decimal, int]]:
    """
    单条合作记录的资金占用费（分，未取整）及占用天数
    公式：资金占用费 = 下单成本 × (月费率/30) × 占用天数
    :param monthly_rate: 月费率（%）
    :param as_of: 未回款时的截止日期
    :return: (费用, 天数)，没有下单日期或成本时返回None
    """
    if collaboration.order_date is None:
        return None

    if finance is not None:
        cost = finance.cost
    elif collaboration.order_price is not None:
        cost = collaboration.order_price
    else:
        return None

    end_date = collaboration.recovery_date or as_of
    days = max(0, (end_date - collaboration.order_date).days)
    amount = to_decimal(cost) * (to_decimal(monthly_rate) / Decimal('100') / Decimal('30')) * days
    return amount, days


def funds_occupation_fee(collaboration: Collaboration, finance: Optional[FinanceResult], monthly_rate,
                         as_of: date) -> Optional[Dict[str, int]]:
    """单条记录展示用：{"fee": 分, "days": 天数}"""
    occupation = calculate_funds_occupation(collaboration, finance, monthly_rate, as_of)
    if occupation is None:
        return None
    amount, days = occupation
    return {"fee": round_to_fen(amount), "days": days}
