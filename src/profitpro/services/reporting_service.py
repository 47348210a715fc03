from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from profitpro.domain.models import Sale

CURRENCY_SYMBOL = "₦"


@dataclass(frozen=True)
class Overview:
    total_revenue: float
    total_profit: float
    total_sales: int


@dataclass(frozen=True)
class MonthlyPoint:
    month: str
    revenue: float
    profit: float


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{abs(float(amount)):,.2f}"


def _parse_date(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def overview(sales: Iterable[Sale]) -> Overview:
    sales = list(sales)
    return Overview(
        total_revenue=sum(s.total_revenue for s in sales),
        total_profit=sum(s.profit for s in sales),
        total_sales=len(sales),
    )


def monthly_series(sales: Iterable[Sale]) -> list[MonthlyPoint]:
    buckets: dict[tuple[int, int], list[float]] = {}
    for s in sales:
        d = _parse_date(s.sale_date)
        acc = buckets.setdefault((d.year, d.month), [0.0, 0.0])
        acc[0] += s.total_revenue
        acc[1] += s.profit
    return [
        MonthlyPoint(month=datetime(y, m, 1).strftime("%b %Y"), revenue=rev, profit=prof)
        for (y, m), (rev, prof) in sorted(buckets.items())
    ]


class ReportingService:
    def __init__(self, repo, auth):
        self.repo = repo
        self.auth = auth

    def _all_sales(self, actor_id: int) -> list[Sale]:
        self.auth.require_action(actor_id, "view_dashboard")
        return self.repo.list_sales()

    def overview(self, actor_id: int) -> Overview:
        return overview(self._all_sales(actor_id))

    def monthly_series(self, actor_id: int) -> list[MonthlyPoint]:
        return monthly_series(self._all_sales(actor_id))

    def export_sales_report_excel(self, actor_id: int, path: str) -> None:
        sales = self._all_sales(actor_id)
        users = {u.id: u.full_name for u in self.repo.list_users()}
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        totals = overview(sales)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)

        rows = [
            ("Total Sales", totals.total_sales, "int"),
            ("Total Revenue", totals.total_revenue, "money"),
            ("Total Profit", totals.total_profit, "money"),
        ]
        for i, (label, val, kind) in enumerate(rows):
            r = 3 + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])
        set_widths(ws, {"A": 20, "B": 20})

        # -------- 2) Monthly --------
        ws2 = wb.create_sheet("Monthly")
        ws2.append(["Month", "Revenue", "Profit"])
        bold_row(ws2, 1)
        for point in monthly_series(sales):
            ws2.append([point.month, point.revenue, point.profit])
            money(ws2[f"B{ws2.max_row}"])
            money(ws2[f"C{ws2.max_row}"])
        set_widths(ws2, {"A": 12, "B": 16, "C": 16})

        # -------- 3) Sales --------
        ws3 = wb.create_sheet("Sales")
        ws3.append(["Sale ID", "Date", "Product", "Qty", "Revenue", "Cost", "Profit", "Sales Agent"])
        bold_row(ws3, 1)
        for s in sales:
            ws3.append([
                s.id, s.sale_date, s.product_name, s.quantity,
                s.total_revenue, s.total_cost, s.profit,
                users.get(s.sales_agent_id, ""),
            ])
            for col in ("E", "F", "G"):
                money(ws3[f"{col}{ws3.max_row}"])
        ws3.freeze_panes = "A2"
        set_widths(ws3, {"A": 10, "B": 26, "C": 30, "D": 6, "E": 14, "F": 14, "G": 14, "H": 24})
        if ws3.max_row >= 2:
            add_table(ws3, "SalesLedger", 1, 1, ws3.max_row, 8)

        wb.save(path)
