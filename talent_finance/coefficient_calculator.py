# talent_finance/coefficient_calculator.py
import logging
import math
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from .config import settings
from .config_resolver import get_effective_config
from .exceptions import InvalidAmountError, InvalidRateError
from .models import (
    FeeConfig, FinanceBreakdown, CoefficientResult, PlatformPricingStrategy,
    ServiceFeeBase, TaxCalculationBase, RATE_FIELDS
)
from .utils import to_decimal, round_half_up

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


class CoefficientCalculator:
    """
    刊例价 → 结算金额 五段式计算：平台费、折扣、服务费、税费、最终系数
    所有中间金额均以分为单位、不取整，只在展示时四舍五入。
    """

    def __init__(self, display_places: Optional[int] = None):
        self.display_places = display_places if display_places is not None else settings.COEFFICIENT_DISPLAY_PLACES

    @staticmethod
    def _validate_rates(config: FeeConfig) -> Dict[str, Decimal]:
        rates = {}
        for field in RATE_FIELDS:
            value = getattr(config, field)
            if value is None or value < 0:
                raise InvalidRateError(field, value)
            if not math.isfinite(value):
                raise InvalidRateError(field, value, reason="必须为有限数值")
            rates[field] = to_decimal(value)
        return rates

    def calculate(self, base_amount: int, config: FeeConfig) -> CoefficientResult:
        """
        计算单个刊例价的结算金额与支付系数
        :param base_amount: 刊例价（分），不能为负
        :param config: 平台费率配置
        """
        if base_amount is None or base_amount < 0:
            raise InvalidAmountError(f"刊例价不能为负数: {base_amount}")

        rates = self._validate_rates(config)
        base = to_decimal(base_amount)
        steps = []

        # 1. 平台费
        platform_fee_amount = base * rates['platform_fee_rate']
        steps.append(f"平台费: {base} × {rates['platform_fee_rate']} = {platform_fee_amount}")

        # 2. 折后金额
        if config.includes_platform_fee:
            discounted_amount = (base + platform_fee_amount) * rates['discount_rate']
            steps.append(f"折后金额（折扣含平台费）: ({base} + {platform_fee_amount}) × "
                         f"{rates['discount_rate']} = {discounted_amount}")
        else:
            discounted_amount = base * rates['discount_rate'] + platform_fee_amount
            steps.append(f"折后金额（折扣不含平台费）: {base} × {rates['discount_rate']} + "
                         f"{platform_fee_amount} = {discounted_amount}")

        # 3. 服务费，费率为0时跳过
        service_fee_amount = ZERO
        service_fee_applied = rates['service_fee_rate'] > 0
        if service_fee_applied:
            if config.service_fee_base == ServiceFeeBase.BEFORE_DISCOUNT:
                service_base = base + platform_fee_amount
                label = "折前"
            else:
                service_base = discounted_amount
                label = "折后"
            service_fee_amount = service_base * rates['service_fee_rate']
            steps.append(f"服务费（{label}）: {service_base} × {rates['service_fee_rate']} = {service_fee_amount}")

        # 4. 税费
        tax_amount = ZERO
        if config.includes_tax:
            steps.append("税费: 报价已含税，不另计")
        else:
            if config.tax_calculation_base == TaxCalculationBase.INCLUDE_SERVICE_FEE:
                tax_base = discounted_amount + service_fee_amount
                label = "含服务费"
            else:
                tax_base = discounted_amount
                label = "不含服务费"
            tax_amount = tax_base * rates['tax_rate']
            steps.append(f"税费（{label}）: {tax_base} × {rates['tax_rate']} = {tax_amount}")

        # 5. 最终金额与系数
        final_amount = discounted_amount + service_fee_amount + tax_amount
        steps.append(f"结算金额: {discounted_amount} + {service_fee_amount} + {tax_amount} = {final_amount}")

        if base == 0:
            coefficient = None
            steps.append("支付系数: 刊例价为0，系数无定义")
        else:
            coefficient = float(final_amount / base)
            steps.append(f"支付系数: {final_amount} / {base} ≈ {self.display(coefficient)}")

        logger.debug(f"平台 {config.platform} 配置 {config.id}: 刊例价 {base_amount} → 结算金额 {final_amount}")

        return CoefficientResult(
            platform=config.platform,
            base_amount=base_amount,
            breakdown=FinanceBreakdown(
                platform_fee_amount=platform_fee_amount,
                discounted_amount=discounted_amount,
                service_fee_amount=service_fee_amount,
                tax_amount=tax_amount,
            ),
            final_amount=final_amount,
            coefficient=coefficient,
            service_fee_applied=service_fee_applied,
            calculation_steps=steps,
        )

    def display(self, coefficient: Optional[float], places: Optional[int] = None) -> Optional[float]:
        """展示用系数，默认保留4位小数"""
        if coefficient is None:
            return None
        places = self.display_places if places is None else places
        return float(round_half_up(coefficient, places))


calculator = CoefficientCalculator()


def calculate(base_amount: int, config: FeeConfig) -> CoefficientResult:
    return calculator.calculate(base_amount, config)


def quotation_coefficient(config: FeeConfig, places: Optional[int] = None) -> float:
    """报价系数：与刊例价无关，取 1000 元刊例价计算后按展示精度保留"""
    result = calculator.calculate(100000, config)
    return calculator.display(result.coefficient, places)


def calculate_effective_coefficients(strategies: Dict[str, PlatformPricingStrategy],
                                     as_of: date) -> Dict[str, float]:
    """计算所有启用平台在参考日期的有效报价系数，比价模式无系数"""
    coefficients = {}

    for platform, strategy in strategies.items():
        if not strategy.enabled or strategy.pricing_model == "project":
            continue

        effective = get_effective_config(strategy.configs, as_of)
        if effective is None:
            logger.info(f"平台 {platform} 在 {as_of} 没有生效的定价配置，跳过")
            continue

        coefficients[platform] = quotation_coefficient(effective)

    return coefficients
