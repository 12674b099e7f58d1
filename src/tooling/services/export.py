"""CSV and Excel export service for families, holders and ROBs.

Exported CSV uses the same column names the importer reads, so a family
export can be fed straight back into the import pipeline.
"""

from io import BytesIO

import openpyxl
from openpyxl.styles import Font, PatternFill

from ..models import Family, Holder, Rob
from .csvio import write_table
from .records import FAMILIES, HOLDERS, ROBS

# Threshold above which .iterator() is used for memory efficiency
ITERATOR_THRESHOLD = 1000
ITERATOR_CHUNK_SIZE = 1000

FAMILY_HEADERS = [
    "Family Name",
    "Family Code",
    "Type",
    "Status",
    "KITs",
    "Led",
    "Goullet",
    "BCC Optosoft",
    "BCC Main",
    "Rob Main",
    "Rob Suite",
    "Torque",
    "Rack 30",
    "Machine Visio",
    "Comment",
    "Total Holders",
    "Created At",
    "Updated At",
]

HOLDER_HEADERS = [
    "Holder ID",
    "Holder Name",
    "Family Code",
    "Family Name",
    "Status",
    "ROB Assignment",
    "Assigned Date",
    "Created At",
]

ROB_HEADERS = [
    "ROB ID",
    "ROB Name",
    "Type",
    "Capacity",
    "Current Load",
    "Status",
    "Created At",
    "Updated At",
]

TEMPLATES = {
    FAMILIES: (
        FAMILY_HEADERS[:16],
        ["Sample Family", "FAM-001", "Body", "draft"]
        + [0] * 10
        + ["", 0],
    ),
    HOLDERS: (
        ["Holder ID", "Holder Name", "Family Code", "Status", "ROB Assignment"],
        ["HLD-001", "Sample Holder", "FAM-001", "available", ""],
    ),
    ROBS: (
        ["ROB ID", "ROB Name", "Type", "Capacity", "Status"],
        ["ROB-001", "Sample ROB", "SERIAL", 50, "active"],
    ),
}


def _timestamp(value) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S") if value else ""


def _family_row(family):
    return [
        family.name,
        family.code,
        family.type,
        family.status,
        *(getattr(family, name) for name in Family.COUNTER_FIELDS),
        family.comment,
        family.total_holders,
        _timestamp(family.created_at),
        _timestamp(family.updated_at),
    ]


def _holder_row(holder):
    return [
        holder.code,
        holder.name,
        holder.family.code if holder.family else "",
        holder.family.name if holder.family else "",
        holder.status,
        holder.rob.code if holder.rob else "",
        _timestamp(holder.assigned_at),
        _timestamp(holder.created_at),
    ]


def _rob_row(rob):
    return [
        rob.code,
        rob.name,
        rob.type,
        rob.capacity,
        rob.current_load,
        rob.status,
        _timestamp(rob.created_at),
        _timestamp(rob.updated_at),
    ]


TABLES = {
    FAMILIES: (FAMILY_HEADERS, _family_row, lambda: Family.objects.all()),
    HOLDERS: (
        HOLDER_HEADERS,
        _holder_row,
        lambda: Holder.objects.select_related("family", "rob"),
    ),
    ROBS: (ROB_HEADERS, _rob_row, lambda: Rob.objects.all()),
}


def export_rows(kind: str, queryset=None):
    """Return ``(headers, rows)`` for ``kind``; rows is a generator."""
    if kind not in TABLES:
        raise ValueError(f"Unknown export kind '{kind}'")
    headers, to_row, default = TABLES[kind]
    if queryset is None:
        queryset = default()

    use_iterator = queryset.count() > ITERATOR_THRESHOLD
    records = (
        queryset.iterator(chunk_size=ITERATOR_CHUNK_SIZE)
        if use_iterator
        else queryset
    )
    return headers, (to_row(record) for record in records)


def export_csv(kind: str, queryset=None, stream=None) -> str:
    headers, rows = export_rows(kind, queryset)
    return write_table(headers, rows, stream=stream)


def export_families_csv(queryset=None, stream=None) -> str:
    return export_csv(FAMILIES, queryset, stream)


def export_holders_csv(queryset=None, stream=None) -> str:
    return export_csv(HOLDERS, queryset, stream)


def export_robs_csv(queryset=None, stream=None) -> str:
    return export_csv(ROBS, queryset, stream)


def build_template(kind: str) -> str:
    """Return an import template for ``kind`` with one sample row."""
    if kind not in TEMPLATES:
        raise ValueError(f"Unknown template kind '{kind}'")
    headers, sample = TEMPLATES[kind]
    return write_table(headers, [sample])


def export_table_xlsx(kind: str, queryset=None) -> BytesIO:
    """Export one table to an Excel workbook.

    Returns a BytesIO containing the .xlsx file.
    """
    headers, rows = export_rows(kind, queryset)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = kind.capitalize()
    header_font = Font(bold=True)
    header_fill = PatternFill(
        start_color="1D4ED8", end_color="1D4ED8", fill_type="solid"
    )
    ws.append(headers)
    for col_idx, _header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.fill = header_fill

    for row in rows:
        ws.append(row)

    # Auto-size columns
    for column_cells in ws.columns:
        max_length = max(len(str(cell.value or "")) for cell in column_cells)
        ws.column_dimensions[column_cells[0].column_letter].width = min(
            max_length + 2, 50
        )

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
