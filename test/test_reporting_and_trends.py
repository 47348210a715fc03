from pathlib import Path

import pytest
import requests
from openpyxl import load_workbook

from conftest import build_ledger

from profitpro.domain.errors import AuthorizationError
from profitpro.domain.models import Sale
from profitpro.services.auth_service import AuthService
from profitpro.services.reporting_service import ReportingService, format_currency, monthly_series, overview
from profitpro.services.trend_service import (
    FAILURE_MESSAGE,
    NO_DATA_MESSAGE,
    TrendAnalysisService,
    serialize_sales,
)


def _sale(sale_id, date, revenue, cost, name="Widget"):
    return Sale(
        id=sale_id,
        product_id=1,
        product_name=name,
        quantity=1,
        unit_price=revenue,
        unit_cost=cost,
        total_revenue=revenue,
        total_cost=cost,
        profit=revenue - cost,
        sale_date=date,
        sales_agent_id=None,
    )


SALES = [
    _sale(1, "2026-03-02T10:00:00+00:00", 100.0, 60.0),
    _sale(2, "2026-01-15T09:30:00+00:00", 50.0, 20.0, "Cable"),
    _sale(3, "2026-03-20T16:45:00+00:00", 30.0, 10.0),
]


def test_overview_totals():
    totals = overview(SALES)

    assert totals.total_revenue == 180.0
    assert totals.total_profit == 90.0
    assert totals.total_sales == 3


def test_monthly_series_is_chronological_and_labelled():
    series = monthly_series(SALES)

    assert [p.month for p in series] == ["Jan 2026", "Mar 2026"]
    assert (series[1].revenue, series[1].profit) == (130.0, 60.0)


def test_format_currency():
    assert format_currency(1234.5) == "₦1,234.50"
    assert format_currency(-3) == "-₦3.00"


def test_dashboard_is_admin_only_and_exports_excel(repo, people, tmp_path: Path):
    admin, agent = people
    ledger = build_ledger(repo, clock=lambda: "2026-05-04T12:00:00+00:00")
    pid = repo.add_product("Widget", 5.0, 8.0, 10)
    ledger.record_sale(agent, pid, 4)
    reporting = ReportingService(repo, AuthService(repo, repo))

    with pytest.raises(AuthorizationError):
        reporting.overview(agent)

    assert reporting.overview(admin).total_profit == 12.0
    assert [p.month for p in reporting.monthly_series(admin)] == ["May 2026"]

    path = tmp_path / "report.xlsx"
    reporting.export_sales_report_excel(admin, str(path))
    wb = load_workbook(path)
    assert wb.sheetnames == ["Summary", "Monthly", "Sales"]
    assert wb["Summary"]["B3"].value == 1
    row = [c.value for c in wb["Sales"][2]]
    assert row[2:7] == ["Widget", 4, 32, 20, 12]
    assert row[7] == "Sam Seller"


def test_trend_analysis_for_actor_is_admin_only_and_reads_stored_sales(repo, people):
    admin, agent = people
    ledger = build_ledger(repo, clock=lambda: "2026-05-04T12:00:00+00:00")
    pid = repo.add_product("Widget", 5.0, 8.0, 10)
    ledger.record_sale(agent, pid, 4)
    trends = TrendAnalysisService(repo, AuthService(repo, repo), url=None)

    with pytest.raises(AuthorizationError, match="view_dashboard"):
        trends.analyze_for(agent)

    text = trends.analyze_for(admin)
    assert "1 sales generated ₦32.00 in revenue and ₦12.00 in profit" in text
    assert "Most profitable product: Widget" in text


def test_trend_analysis_for_admin_without_sales_returns_notice(repo, people):
    admin, _agent = people
    trends = TrendAnalysisService(repo, AuthService(repo, repo), url="http://summarizer.local/analyze")

    assert trends.analyze_for(admin) == NO_DATA_MESSAGE


def test_trend_analysis_without_sales_returns_notice():
    trends = TrendAnalysisService(repo=None, auth=None, url="http://summarizer.local/analyze")

    assert trends.analyze([]) == NO_DATA_MESSAGE


def test_trend_analysis_falls_back_to_local_summary():
    trends = TrendAnalysisService(repo=None, auth=None, url=None)

    text = trends.analyze(SALES)

    assert "3 sales generated ₦180.00 in revenue" in text
    assert "Most profitable product: Widget" in text
    assert "Mar 2026" in text


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


def test_trend_analysis_posts_serialized_sales(monkeypatch):
    seen = {}

    def fake_post(url, json, timeout):
        seen.update(url=url, body=json, timeout=timeout)
        return FakeResponse({"analysis": "  Profit is growing.  "})

    monkeypatch.setattr(requests, "post", fake_post)
    trends = TrendAnalysisService(repo=None, auth=None, url="http://summarizer.local/analyze", timeout=3)

    assert trends.analyze(SALES) == "Profit is growing."
    assert seen["url"] == "http://summarizer.local/analyze"
    assert seen["timeout"] == 3
    assert seen["body"]["salesData"] == serialize_sales(SALES)
    assert '"product_name": "Cable"' in seen["body"]["prompt"]


@pytest.mark.parametrize(
    "response",
    [FakeResponse({}, status=503), FakeResponse({"unexpected": True}), FakeResponse(["not", "a", "dict"])],
)
def test_trend_analysis_failures_return_generic_message(monkeypatch, response):
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: response)
    trends = TrendAnalysisService(repo=None, auth=None, url="http://summarizer.local/analyze")

    assert trends.analyze(SALES) == FAILURE_MESSAGE


def test_trend_analysis_network_error(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", fake_post)
    trends = TrendAnalysisService(repo=None, auth=None, url="http://summarizer.local/analyze")

    assert trends.analyze(SALES) == FAILURE_MESSAGE
