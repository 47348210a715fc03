from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

import requests

from profitpro.domain.models import Sale
from profitpro.services.reporting_service import format_currency, monthly_series, overview

log = logging.getLogger("profitpro.trends")

NO_DATA_MESSAGE = "No sales data available to analyze."
FAILURE_MESSAGE = (
    "An error occurred while analyzing profit trends. Please check the server logs and try again."
)

PROMPT = (
    "You are an expert business analyst.\n\n"
    "Analyze the following sales data to identify key profit trends and performance indicators.\n"
    "Provide a concise summary of your findings, highlighting any significant patterns or insights.\n"
    "Sales Data: {sales_data}"
)


def serialize_sales(sales: Iterable[Sale]) -> str:
    return json.dumps([s.to_dict() for s in sales], indent=2, ensure_ascii=False)


def local_summary(sales: list[Sale]) -> str:
    """Plain summary used when no summarization service is configured."""
    totals = overview(sales)
    series = monthly_series(sales)
    margin = (totals.total_profit / totals.total_revenue) if totals.total_revenue else 0.0

    by_product: dict[str, float] = {}
    for s in sales:
        by_product[s.product_name] = by_product.get(s.product_name, 0.0) + s.profit
    best_name, best_profit = max(by_product.items(), key=lambda kv: kv[1])

    lines = [
        f"{totals.total_sales} sales generated {format_currency(totals.total_revenue)} in revenue "
        f"and {format_currency(totals.total_profit)} in profit ({margin:.1%} margin).",
        f"Most profitable product: {best_name} ({format_currency(best_profit)}).",
    ]
    if len(series) >= 2:
        prev, last = series[-2], series[-1]
        if prev.profit:
            change = (last.profit - prev.profit) / abs(prev.profit)
            direction = "up" if change >= 0 else "down"
            lines.append(f"Profit in {last.month} is {direction} {abs(change):.1%} compared with {prev.month}.")
        else:
            lines.append(f"Profit in {last.month} was {format_currency(last.profit)}.")
    return " ".join(lines)


class TrendAnalysisService:
    def __init__(self, repo, auth, url: Optional[str] = None, timeout: float = 10.0):
        self.repo = repo
        self.auth = auth
        self.url = url
        self.timeout = timeout

    def _post(self, sales_data: str) -> str:
        r = requests.post(
            self.url,
            json={"prompt": PROMPT.format(sales_data=sales_data), "salesData": sales_data},
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        text = None
        if isinstance(data, dict):
            text = data.get("analysis") or data.get("output") or data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValueError(f"Summarizer response missing analysis text. Raw: {data}")
        return text.strip()

    def analyze(self, sales: Iterable[Sale]) -> str:
        sales = list(sales)
        if not sales:
            return NO_DATA_MESSAGE
        if not self.url:
            return local_summary(sales)
        try:
            analysis = self._post(serialize_sales(sales))
        except (requests.RequestException, ValueError) as e:
            log.warning("trend_analysis_failed url=%s error=%s", self.url, e)
            return FAILURE_MESSAGE
        log.info("trend_analysis_ok sales=%s chars=%s", len(sales), len(analysis))
        return analysis

    def analyze_for(self, actor_id: int) -> str:
        self.auth.require_action(actor_id, "view_dashboard")
        return self.analyze(self.repo.list_sales())
