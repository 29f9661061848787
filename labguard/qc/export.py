import io
import logging
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from ..config import ExportConfig
from ..exceptions import NoDataToExportError
from .domain import ControlConfiguration, QCDataPoint
from .recompute import audit_history, recompute_history

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    ("Analyte", 20),
    ("Date", 12),
    ("Result", 10),
    ("Target Mean", 12),
    ("SD", 10),
    ("Z-Score", 10),
    ("Westgard Status", 18),
    ("All Triggered Rules", 22),
    ("+1 SD", 10),
    ("-1 SD", 10),
    ("+2 SD", 10),
    ("-2 SD", 10),
    ("+3 SD", 10),
    ("-3 SD", 10),
]

MAX_SHEET_NAME = 30
_INVALID_SHEET_CHARS = re.compile(r"[/\\?*\[\]:]")


def build_export_rows(config: ControlConfiguration, points: Iterable[QCDataPoint],
                      date_format: str = "%Y-%m-%d") -> List[Dict[str, Any]]:
    """Report rows in date order, classified with the current configuration.

    Stored classifications are not trusted: every row is re-evaluated so the
    whole report reflects one configuration.
    """
    evaluated = recompute_history(points, config)
    audit = audit_history(evaluated, config)
    mean, sd = config.mean, config.sd

    rows = []
    for point, all_rules in zip(evaluated, audit):
        rows.append({
            "Analyte": config.display_name,
            "Date": point.date.strftime(date_format),
            "Result": point.value,
            "Target Mean": mean,
            "SD": sd,
            "Z-Score": round(point.z_score, 2) if point.z_score is not None else None,
            "Westgard Status": ", ".join(point.rules) if point.rules else "OK",
            "All Triggered Rules": ", ".join(all_rules),
            "+1 SD": mean + sd,
            "-1 SD": mean - sd,
            "+2 SD": mean + 2 * sd,
            "-2 SD": mean - 2 * sd,
            "+3 SD": mean + 3 * sd,
            "-3 SD": mean - 3 * sd,
        })
    return rows


def _frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=[name for name, _ in EXPORT_COLUMNS])


def export_analyte_csv(config: ControlConfiguration, points: Sequence[QCDataPoint],
                       export_config: ExportConfig) -> bytes:
    """CSV for one analyte, UTF-8 with BOM so spreadsheet tools detect the encoding"""
    if not points:
        raise NoDataToExportError()

    df = _frame(build_export_rows(config, points, export_config.date_format))
    csv_buffer = io.StringIO()
    df.to_csv(csv_buffer, index=False, sep=export_config.csv_separator, decimal=export_config.decimal)
    return csv_buffer.getvalue().encode("utf-8-sig")


def safe_sheet_name(name: str, fallback: str) -> str:
    cleaned = _INVALID_SHEET_CHARS.sub(" ", name).strip()[:MAX_SHEET_NAME].strip()
    return cleaned or fallback[:MAX_SHEET_NAME]


def export_workbook(configs: Mapping[str, ControlConfiguration],
                    histories: Mapping[str, Sequence[QCDataPoint]],
                    export_config: ExportConfig) -> bytes:
    """Excel workbook with one sheet per analyte that has data, sorted by name"""
    ordered = sorted(configs.values(), key=lambda c: c.display_name.casefold())
    with_data = [c for c in ordered if histories.get(c.analyte_id)]
    if not with_data:
        raise NoDataToExportError()

    excel_buffer = io.BytesIO()
    used_names = set()
    with pd.ExcelWriter(excel_buffer, engine="xlsxwriter") as writer:
        for config in with_data:
            rows = build_export_rows(config, histories[config.analyte_id], export_config.date_format)

            sheet_name = safe_sheet_name(config.display_name, config.analyte_id)
            base, suffix = sheet_name, 2
            while sheet_name.lower() in used_names:
                tag = f" ({suffix})"
                sheet_name = base[:MAX_SHEET_NAME - len(tag)] + tag
                suffix += 1
            used_names.add(sheet_name.lower())

            _frame(rows).to_excel(writer, sheet_name=sheet_name, index=False)
            worksheet = writer.sheets[sheet_name]
            for idx, (_, width) in enumerate(EXPORT_COLUMNS):
                worksheet.set_column(idx, idx, width)

    logger.info(f"Exported {len(with_data)} analyte sheet(s) to workbook")
    return excel_buffer.getvalue()


def workbook_filename(today: date) -> str:
    return f"labguard_qc_report_{today.isoformat()}.xlsx"


def csv_filename(config: ControlConfiguration, today: date) -> str:
    safe_name = re.sub(r"[^a-z0-9]", "_", config.display_name, flags=re.IGNORECASE).lower()
    return f"qc_{safe_name}_{today.isoformat()}.csv"
