from .coefficient_calculator import CoefficientCalculator, calculate, quotation_coefficient, \
    calculate_effective_coefficients
from .config_resolver import ConfigResolver, get_config_status, find_time_overlap, validate_no_overlap, \
    validate_fee_config
from .exceptions import (
    FinanceError, ConfigNotFoundError, InvalidConfigError, InvalidRateError, InvalidAmountError,
    MissingReferenceDateError
)
from .models import FeeConfig, Collaboration, DailyStat, FinanceResult, ServiceFeeBase, TaxCalculationBase
from .services import CollaborationFinanceEvaluator, AggregationEngine

__all__ = [
    "CoefficientCalculator",
    "calculate",
    "quotation_coefficient",
    "calculate_effective_coefficients",
    "ConfigResolver",
    "get_config_status",
    "find_time_overlap",
    "validate_no_overlap",
    "validate_fee_config",
    "FinanceError",
    "ConfigNotFoundError",
    "InvalidConfigError",
    "InvalidRateError",
    "InvalidAmountError",
    "MissingReferenceDateError",
    "FeeConfig",
    "Collaboration",
    "DailyStat",
    "FinanceResult",
    "ServiceFeeBase",
    "TaxCalculationBase",
    "CollaborationFinanceEvaluator",
    "AggregationEngine",
]
