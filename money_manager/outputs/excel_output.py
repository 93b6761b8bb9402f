# money_manager/outputs/excel_output.py

"""Excel output module backed by XlsxWriter.

Each month gets its own worksheet with the transactions as an Excel
table, largest amounts first. ``AllData`` consolidates every row,
``Summary`` totals expenses by category for each month and overall, and
``Charts`` plots monthly spend and the category split.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

import xlsxwriter

from money_manager.outputs.base import HEADERS, BaseOutput

logger = logging.getLogger(__name__)


class ExcelOutput(BaseOutput):
    """Generate a local Excel workbook of transactions."""

    MONTH_FMT = "%B %Y"
    ALL_DATA = "AllData"
    SUMMARY = "Summary"
    CHARTS = "Charts"
    AMOUNT_FORMAT = "#,##0.00"

    def __init__(self, config: dict):
        self.config = config
        self.output_dir = config.get("output_dir", "data")
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions, category_names=None, account_names=None):
        if not transactions:
            logger.info("No transactions to write.")
            return None

        months = sorted({tx.date.strftime("%Y-%m") for tx in transactions})
        year = datetime.strptime(months[0], "%Y-%m").year
        out_path = os.path.join(self.output_dir, f"Transactions{year}.xlsx")

        workbook = xlsxwriter.Workbook(out_path)
        amount_fmt = workbook.add_format({"num_format": self.AMOUNT_FORMAT})
        amount_cols = (HEADERS.index("amount"), HEADERS.index("net_amount"))
        last_col = len(HEADERS) - 1

        all_rows = []
        expense_totals = {}
        for month_str in months:
            sheet_name = datetime.strptime(month_str, "%Y-%m").strftime(self.MONTH_FMT)
            ws = workbook.add_worksheet(sheet_name)
            ws.freeze_panes(1, 0)
            ws.write_row(0, 0, HEADERS)

            month_rows = []
            for tx in transactions:
                if tx.date.strftime("%Y-%m") != month_str:
                    continue
                row = self.to_row(tx, category_names, account_names)
                month_rows.append(row)
                all_rows.append([sheet_name] + row)
                if tx.is_expense:
                    cats = expense_totals.setdefault(sheet_name, {})
                    cats[row[4]] = cats.get(row[4], 0.0) + row[6]

            month_rows.sort(key=lambda r: r[5], reverse=True)
            for row_idx, row in enumerate(month_rows, start=1):
                ws.write_row(row_idx, 0, row)
                for col in amount_cols:
                    ws.write_number(row_idx, col, row[col], amount_fmt)

            ws.add_table(0, 0, len(month_rows), last_col, {
                "columns": [{"header": h} for h in HEADERS]
            })

        # AllData worksheet consolidating all transactions
        all_ws = workbook.add_worksheet(self.ALL_DATA)
        all_ws.freeze_panes(1, 0)
        all_headers = ["month"] + HEADERS
        all_ws.write_row(0, 0, all_headers)
        for idx, row in enumerate(all_rows, start=1):
            all_ws.write_row(idx, 0, row)
            for col in amount_cols:
                all_ws.write_number(idx, col + 1, row[col + 1], amount_fmt)
        all_ws.add_table(0, 0, len(all_rows), len(all_headers) - 1, {
            "columns": [{"header": h} for h in all_headers]
        })

        # Summary worksheet: expenses by month & category
        summary_ws = workbook.add_worksheet(self.SUMMARY)
        summary_ws.freeze_panes(1, 0)
        summary_ws.write_row(0, 0, ["month", "category", "expense"])
        row_idx = 1
        grand_total = 0.0
        category_totals = {}
        for month_str in months:
            sheet_name = datetime.strptime(month_str, "%Y-%m").strftime(self.MONTH_FMT)
            cats = expense_totals.get(sheet_name, {})
            for i, cat in enumerate(sorted(cats)):
                if i == 0:
                    summary_ws.write(row_idx, 0, sheet_name)
                summary_ws.write(row_idx, 1, cat)
                summary_ws.write_number(row_idx, 2, cats[cat], amount_fmt)
                category_totals[cat] = category_totals.get(cat, 0.0) + cats[cat]
                row_idx += 1
            month_total = sum(cats.values())
            summary_ws.write(row_idx, 0, f"{sheet_name} Total")
            summary_ws.write_number(row_idx, 2, month_total, amount_fmt)
            grand_total += month_total
            row_idx += 1
        summary_ws.write(row_idx, 0, "Grand Total")
        summary_ws.write_number(row_idx, 2, grand_total, amount_fmt)

        self._write_charts(workbook, months, expense_totals, category_totals, amount_fmt)

        workbook.close()
        logger.info("Written Excel workbook %s", out_path)
        return out_path

    def _build_chart_tables(self, months, expense_totals, category_totals):
        """Return the monthly and per-category tables the charts are drawn from."""
        monthly = [["Month", "Expense"]]
        for month_str in months:
            sheet_name = datetime.strptime(month_str, "%Y-%m").strftime(self.MONTH_FMT)
            monthly.append([sheet_name, sum(expense_totals.get(sheet_name, {}).values())])
        categories = [["Category", "Expense"]] + [
            [cat, total]
            for cat, total in sorted(category_totals.items(), key=lambda item: item[1], reverse=True)
        ]
        return {"monthly": monthly, "categories": categories}

    def _write_charts(self, workbook, months, expense_totals, category_totals, amount_fmt):
        charts_ws = workbook.add_worksheet(self.CHARTS)
        charts_ws.set_column(1, 1, None, amount_fmt)

        tables = self._build_chart_tables(months, expense_totals, category_totals)
        monthly, categories = tables["monthly"], tables["categories"]

        for offset, row in enumerate(monthly):
            charts_ws.write_row(offset, 0, row)
        cat_start = len(monthly) + 2
        for offset, row in enumerate(categories):
            charts_ws.write_row(cat_start + offset, 0, row)

        if len(monthly) > 1:
            chart = workbook.add_chart({"type": "column"})
            chart.add_series({
                "categories": [charts_ws.name, 1, 0, len(monthly) - 1, 0],
                "values": [charts_ws.name, 1, 1, len(monthly) - 1, 1],
                "name": "Monthly spending",
            })
            chart.set_title({"name": "Monthly spending"})
            chart.set_legend({"position": "bottom"})
            charts_ws.insert_chart(0, 4, chart)

        if len(categories) > 1:
            chart = workbook.add_chart({"type": "pie"})
            chart.add_series({
                "categories": [charts_ws.name, cat_start + 1, 0, cat_start + len(categories) - 1, 0],
                "values": [charts_ws.name, cat_start + 1, 1, cat_start + len(categories) - 1, 1],
                "name": "Spending by category",
            })
            chart.set_title({"name": "Spending by category"})
            chart.set_legend({"position": "right"})
            charts_ws.insert_chart(18, 4, chart)
