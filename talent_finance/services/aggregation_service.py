import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import pandas as pd

from ..config import settings
from ..exceptions import FinanceError
from ..models import (
    Collaboration, FinanceResult, FinanceFailure, TrackingStats,
    PlatformFinanceStats, ProjectFinanceStats, DailyReportDetail, DailyReport, STATUS_NAMES
)
from ..utils import calculate_cpm, round_half_up, round_to_fen, to_decimal
from .finance_service import CollaborationFinanceEvaluator, calculate_adjustments_total, calculate_funds_occupation

PLATFORM_STAT_COLUMNS = ["revenue", "cost", "rebate_income", "adjustments"]


def _rate(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0
    return float(round_half_up(to_decimal(numerator) / to_decimal(denominator) * 100, 2))


class AggregationEngine:
    """项目级统计：项目金额、已录入金额、播放量、平均CPM、利润"""

    def __init__(self, evaluator: CollaborationFinanceEvaluator, valid_statuses: Optional[Iterable[str]] = None):
        self.evaluator = evaluator
        self.valid_statuses = frozenset(valid_statuses) if valid_statuses is not None \
            else settings.finance_valid_statuses
        self.logger = logging.getLogger(__name__)

    def is_valid_for_finance(self, collaboration: Collaboration) -> bool:
        return collaboration.status in self.valid_statuses

    def _finance_or_failure(self, collaboration: Collaboration, failures: List[FinanceFailure],
                            cache: Optional[Dict[str, FinanceResult]] = None) -> Optional[FinanceResult]:
        cached = cache.get(collaboration.id) if cache else None
        try:
            return self.evaluator.evaluate(collaboration, cached_result=cached)
        except FinanceError as e:
            self.logger.warning(f"合作记录 {collaboration.id} 财务数据无法计算，不计入统计: {e}")
            failures.append(FinanceFailure(
                collaboration_id=collaboration.id,
                error_type=type(e).__name__,
                message=str(e),
            ))
            return None

    def aggregate(self, collaborations: Iterable[Collaboration],
                  cache: Optional[Dict[str, FinanceResult]] = None) -> TrackingStats:
        """
        计算项目追踪统计
        - 项目金额：已定档+已发布合作的收入之和
        - 已录入金额/播放量：在最新数据日期有日报数据的合作
        - 平均CPM = 已录入金额(元) / 播放量 × 1000
        """
        valid = [c for c in collaborations if self.is_valid_for_finance(c)]

        latest_data_date = None
        for collaboration in valid:
            latest = collaboration.latest_stat_date()
            if latest is not None and (latest_data_date is None or latest > latest_data_date):
                latest_data_date = latest

        failures: List[FinanceFailure] = []
        total_amount = 0
        entered_amount = 0
        total_views = 0
        data_entered_count = 0

        for collaboration in valid:
            finance = self._finance_or_failure(collaboration, failures, cache)
            if finance is None:
                continue

            # 已录入数与已录入金额口径一致：只统计财务数据可计算的记录
            stat = collaboration.stat_on(latest_data_date) if latest_data_date else None
            total_amount += finance.revenue
            if stat is not None:
                data_entered_count += 1
                entered_amount += finance.revenue
                total_views += stat.total_views

        avg_cpm = calculate_cpm(entered_amount, total_views)

        self.logger.info(f"[追踪统计] 合作数={len(valid)}, 已录入={data_entered_count}, 项目金额={total_amount}, "
                         f"已录入金额={entered_amount}, 播放量={total_views}, CPM={avg_cpm}, "
                         f"最新数据日期={latest_data_date}")

        return TrackingStats(
            collaboration_count=len(valid),
            data_entered_count=data_entered_count,
            total_amount=total_amount,
            entered_amount=entered_amount,
            total_views=total_views,
            avg_cpm=avg_cpm,
            latest_data_date=latest_data_date,
            failures=failures,
        )

    def project_finance_stats(self, collaborations: Iterable[Collaboration], monthly_rate=None,
                              funds_occupation_enabled: bool = False, as_of: Optional[date] = None,
                              filter_by_status: bool = True) -> ProjectFinanceStats:
        """
        项目财务统计（按平台分组）
        基础利润 = 收入 - 成本 + 返点收入
        净利润 = 基础利润 + 调整项 - 资金占用费
        """
        items = [c for c in collaborations if self.is_valid_for_finance(c)] if filter_by_status \
            else list(collaborations)

        if funds_occupation_enabled and as_of is None:
            raise ValueError("计算资金占用费时必须指定截止日期")
        if monthly_rate is None:
            monthly_rate = settings.FUNDS_OCCUPATION_MONTHLY_RATE

        failures: List[FinanceFailure] = []
        rows = []
        # 资金占用费逐条累加后只取整一次
        funds_by_platform: Dict[str, Decimal] = defaultdict(Decimal)
        for collaboration in items:
            finance = self._finance_or_failure(collaboration, failures)
            if finance is None:
                continue

            if funds_occupation_enabled:
                occupation = calculate_funds_occupation(collaboration, finance, monthly_rate, as_of)
                if occupation:
                    funds_by_platform[collaboration.platform] += occupation[0]

            rows.append({
                "platform": collaboration.platform,
                "revenue": finance.revenue,
                "cost": finance.cost,
                "rebate_income": finance.rebate_income,
                "adjustments": calculate_adjustments_total(collaboration.adjustments),
            })

        if not rows:
            return ProjectFinanceStats(
                funds_occupation=0 if funds_occupation_enabled else None,
                failures=failures,
            )

        df = pd.DataFrame(rows)
        df_platform = df.groupby("platform", as_index=False, sort=False).agg(
            count=("revenue", "size"),
            **{col: (col, "sum") for col in PLATFORM_STAT_COLUMNS}
        )

        platform_stats = []
        for _, row in df_platform.iterrows():
            revenue = int(row["revenue"])
            funds = round_to_fen(funds_by_platform.get(row["platform"], Decimal('0')))
            base_profit = revenue - int(row["cost"]) + int(row["rebate_income"])
            total_profit = base_profit + int(row["adjustments"]) - funds
            platform_stats.append(PlatformFinanceStats(
                platform=row["platform"],
                count=int(row["count"]),
                total_revenue=revenue,
                total_cost=int(row["cost"]),
                total_rebate_income=int(row["rebate_income"]),
                total_adjustments=int(row["adjustments"]),
                total_funds_occupation=funds,
                base_profit=base_profit,
                base_profit_rate=_rate(base_profit, revenue),
                total_profit=total_profit,
                profit_rate=_rate(total_profit, revenue),
            ))

        totals = {col: int(df[col].sum()) for col in PLATFORM_STAT_COLUMNS}
        totals["funds_occupation"] = round_to_fen(sum(funds_by_platform.values(), Decimal('0')))
        base_profit = totals["revenue"] - totals["cost"] + totals["rebate_income"]
        total_profit = base_profit + totals["adjustments"] - totals["funds_occupation"]

        return ProjectFinanceStats(
            total_revenue=totals["revenue"],
            total_cost=totals["cost"],
            total_rebate_income=totals["rebate_income"],
            total_adjustments=totals["adjustments"],
            funds_occupation=totals["funds_occupation"] if funds_occupation_enabled else None,
            base_profit=base_profit,
            base_profit_rate=_rate(base_profit, totals["revenue"]),
            total_profit=total_profit,
            profit_rate=_rate(total_profit, totals["revenue"]),
            platform_stats=platform_stats,
            failures=failures,
        )

    def daily_report_details(self, collaborations: Iterable[Collaboration],
                             report_date: date) -> DailyReport:
        """日报明细：当日CPM，及与上一次数据相比的播放量、CPM变化；无法计算的记录在 failures 中返回"""
        details = []
        failures: List[FinanceFailure] = []

        for collaboration in collaborations:
            if not self.is_valid_for_finance(collaboration):
                continue
            stat = collaboration.stat_on(report_date)
            if stat is None:
                continue

            finance = self._finance_or_failure(collaboration, failures)
            if finance is None:
                continue

            cpm = calculate_cpm(finance.revenue, stat.total_views)
            detail = DailyReportDetail(
                collaboration_id=collaboration.id,
                platform=collaboration.platform,
                status=collaboration.status,
                status_name=STATUS_NAMES.get(collaboration.status),
                revenue=finance.revenue,
                total_views=stat.total_views,
                cpm=cpm,
            )

            previous_dates = [s.date for s in collaboration.daily_stats if s.date < report_date]
            if previous_dates:
                previous = collaboration.stat_on(max(previous_dates))
                if previous.total_views > 0:
                    previous_cpm = calculate_cpm(finance.revenue, previous.total_views)
                    detail.cpm_change = float(round_half_up(cpm - previous_cpm, 2))
                    detail.views_change = stat.total_views - previous.total_views

            details.append(detail)

        if failures:
            self.logger.warning(f"[日报明细] {report_date} 共 {len(failures)} 条记录财务数据无法计算")
        return DailyReport(report_date=report_date, details=details, failures=failures)
