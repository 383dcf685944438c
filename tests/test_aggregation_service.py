import pytest
from datetime import date

from talent_finance.models import DailyStat

D1 = date(2025, 6, 1)
D2 = date(2025, 6, 2)
D5 = date(2025, 6, 5)


@pytest.fixture
def project_collaborations(make_collaboration):
    return [
        make_collaboration("a", 100000, "scheduled", stats=[(D1, 50000), (D2, 100000)]),
        make_collaboration("b", 50000, "published", stats=[(D1, 20000)]),
        make_collaboration("c", 999999, "cancelled", stats=[(D5, 1000)]),
        make_collaboration("d", 30000, "scheduled"),
    ]


class TestAggregate:

    def test_tracking_stats(self, identity_engine, project_collaborations):
        stats = identity_engine.aggregate(project_collaborations)

        # 已取消的合作不参与统计，也不影响最新数据日期
        assert stats.latest_data_date == D2
        assert stats.collaboration_count == 3
        assert stats.data_entered_count == 1
        assert stats.total_amount == 180000
        assert stats.entered_amount == 100000
        assert stats.total_views == 100000
        assert stats.avg_cpm == 10.0
        assert stats.failures == []

    def test_cpm_converts_fen_to_yuan(self, identity_engine, make_collaboration):
        stats = identity_engine.aggregate([make_collaboration("a", 100000, stats=[(D1, 100000)])])

        # 1000 元 / 100000 次播放 × 1000 = 10 元
        assert stats.avg_cpm == 10.00

    def test_cpm_rounded_to_two_places(self, identity_engine, make_collaboration):
        stats = identity_engine.aggregate([make_collaboration("a", 100000, stats=[(D1, 30000)])])

        assert stats.avg_cpm == 33.33

    def test_latest_write_wins_for_same_date(self, identity_engine, make_collaboration):
        collaboration = make_collaboration("a", 100000, stats=[(D1, 90000), (D1, 100000)])

        stats = identity_engine.aggregate([collaboration])

        assert stats.total_views == 100000

    def test_no_daily_stats(self, identity_engine, make_collaboration):
        stats = identity_engine.aggregate([make_collaboration("a", 100000), make_collaboration("b", 200)])

        assert stats.latest_data_date is None
        assert stats.total_amount == 100200
        assert stats.entered_amount == 0
        assert stats.total_views == 0
        assert stats.avg_cpm == 0

    def test_empty_input(self, identity_engine):
        stats = identity_engine.aggregate([])

        assert stats.total_amount == 0
        assert stats.collaboration_count == 0

    def test_failed_records_reported_not_counted(self, identity_engine, project_collaborations,
                                                 make_collaboration):
        broken = make_collaboration("e", 70000, platform="kuaishou", stats=[(D2, 500)])

        stats = identity_engine.aggregate(project_collaborations + [broken])

        assert [f.collaboration_id for f in stats.failures] == ["e"]
        # 最新日期有数据但无法计算的记录不计入已录入数
        assert stats.data_entered_count == 1
        assert stats.total_amount == 180000
        assert stats.entered_amount == 100000
        assert stats.total_views == 100000

    def test_entered_never_exceeds_total(self, identity_engine, project_collaborations, make_collaboration):
        extra = [make_collaboration(f"x{i}", 1000 * i, stats=[(D2, 10 * i)]) for i in range(1, 6)]

        stats = identity_engine.aggregate(project_collaborations + extra)

        assert stats.entered_amount <= stats.total_amount

    def test_custom_valid_statuses(self, identity_configs, project_collaborations):
        from talent_finance.services import AggregationEngine, CollaborationFinanceEvaluator

        engine = AggregationEngine(CollaborationFinanceEvaluator(identity_configs), valid_statuses=["published"])
        stats = engine.aggregate(project_collaborations)

        assert stats.total_amount == 50000
        assert stats.latest_data_date == D1

    def test_cache_is_used(self, identity_engine, make_collaboration):
        collaboration = make_collaboration("a", 100000)
        cached = identity_engine.evaluator.evaluate(collaboration).model_copy(update={"revenue": 123})

        stats = identity_engine.aggregate([collaboration], cache={"a": cached})

        assert stats.total_amount == 123


class TestProjectFinanceStats:

    @pytest.fixture
    def finance_collaborations(self, make_collaboration):
        return [
            make_collaboration("a", 100000, rebate_rate=10, adjustments=[500, -200],
                               order_date=date(2025, 6, 1)),
            make_collaboration("e", 50000, "published", platform="xiaohongshu", pricing_mode="project",
                               quotation_price=60000, order_price=50000),
            make_collaboration("c", 80000, "cancelled"),
        ]

    def test_totals_and_platform_rows(self, identity_engine, finance_collaborations):
        stats = identity_engine.project_finance_stats(finance_collaborations)

        assert stats.total_revenue == 160000
        assert stats.total_cost == 150000
        assert stats.total_rebate_income == 10000
        assert stats.total_adjustments == 300
        assert stats.funds_occupation is None
        assert stats.base_profit == 20000
        assert stats.base_profit_rate == 12.5
        assert stats.total_profit == 20300
        assert stats.profit_rate == 12.69

        rows = {p.platform: p for p in stats.platform_stats}
        assert set(rows) == {"douyin", "xiaohongshu"}
        assert rows["douyin"].count == 1
        assert rows["douyin"].total_profit == 10300
        assert rows["douyin"].profit_rate == 10.3
        assert rows["xiaohongshu"].base_profit_rate == 16.67

    def test_without_status_filter(self, identity_engine, finance_collaborations):
        stats = identity_engine.project_finance_stats(finance_collaborations, filter_by_status=False)

        assert stats.total_revenue == 240000

    def test_funds_occupation(self, identity_engine, finance_collaborations):
        stats = identity_engine.project_finance_stats(finance_collaborations, monthly_rate=1.5,
                                                      funds_occupation_enabled=True, as_of=date(2025, 7, 1))

        # 100000 × 1.5% / 30 × 30 天
        assert stats.funds_occupation == 1500
        assert stats.total_profit == 20300 - 1500

    def test_funds_occupation_rounded_once(self, identity_engine, make_collaboration):
        collaborations = [
            make_collaboration(id, 100000, order_date=date(2025, 6, 1)) for id in ("a", "b", "c")
        ]

        stats = identity_engine.project_finance_stats(collaborations, monthly_rate=1,
                                                      funds_occupation_enabled=True, as_of=date(2025, 6, 2))

        # 每条 100000 × 1% / 30 = 33.33 分，三条合计 100 分（逐条取整为 99）
        assert stats.funds_occupation == 100
        assert stats.platform_stats[0].total_funds_occupation == 100

    def test_funds_occupation_requires_as_of(self, identity_engine, finance_collaborations):
        with pytest.raises(ValueError):
            identity_engine.project_finance_stats(finance_collaborations, funds_occupation_enabled=True)

    def test_empty_project(self, identity_engine):
        stats = identity_engine.project_finance_stats([])

        assert stats.total_revenue == 0
        assert stats.platform_stats == []


class TestDailyReportDetails:

    def test_cpm_and_changes(self, identity_engine, project_collaborations):
        report = identity_engine.daily_report_details(project_collaborations, D2)

        assert report.report_date == D2
        assert report.failures == []
        assert len(report.details) == 1
        detail = report.details[0]
        assert detail.collaboration_id == "a"
        assert detail.status_name == "客户已定档"
        assert detail.cpm == 10.0
        assert detail.cpm_change == -10.0
        assert detail.views_change == 50000

    def test_first_day_has_no_change(self, identity_engine, project_collaborations):
        report = identity_engine.daily_report_details(project_collaborations, D1)
        details = {d.collaboration_id: d for d in report.details}

        assert set(details) == {"a", "b"}
        assert details["b"].cpm == 25.0
        assert details["b"].status_name == "视频已发布"
        assert details["b"].cpm_change is None
        assert details["b"].views_change is None

    def test_previous_zero_views_skipped(self, identity_engine, make_collaboration):
        collaboration = make_collaboration("a", 100000, stats=[(D1, 0), (D2, 1000)])
        collaboration.daily_stats.append(DailyStat(date=D5, total_views=2000))

        report = identity_engine.daily_report_details([collaboration], D2)

        assert report.details[0].cpm_change is None
        assert report.details[0].cpm == 1000.0

    def test_failed_records_reported(self, identity_engine, project_collaborations, make_collaboration):
        broken = make_collaboration("e", 70000, platform="kuaishou", stats=[(D2, 500)])

        report = identity_engine.daily_report_details(project_collaborations + [broken], D2)

        assert [d.collaboration_id for d in report.details] == ["a"]
        assert len(report.failures) == 1
        assert report.failures[0].collaboration_id == "e"
        assert report.failures[0].error_type == "ConfigNotFoundError"
        assert "kuaishou" in report.failures[0].message
