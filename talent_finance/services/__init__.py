from .finance_service import CollaborationFinanceEvaluator, funds_occupation_fee, calculate_funds_occupation, \
    calculate_adjustments_total
from .aggregation_service import AggregationEngine

__all__ = [
    "CollaborationFinanceEvaluator",
    "AggregationEngine",
    "funds_occupation_fee",
    "calculate_funds_occupation",
    "calculate_adjustments_total",
]
