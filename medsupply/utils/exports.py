import csv
import io
from typing import Iterable, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

PURCHASE_ORDER_HEADERS = [
    "PO Number", "PO Date", "Principal", "Bill To", "Status", "Stage",
    "Sub Total", "Discount", "GST", "Shipping", "Grand Total", "Created By",
]


def purchase_order_rows(orders) -> List[list]:
    return [
        [
            po.po_number,
            po.po_date.isoformat() if po.po_date else "",
            po.principal_name or "",
            po.bill_to_name or "",
            po.status.value,
            po.current_stage.value,
            po.sub_total,
            po.product_level_discount + po.additional_discount,
            po.gst_amount,
            po.shipping_amount,
            po.grand_total,
            po.created_by or "",
        ]
        for po in orders
    ]


def to_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    """Header row plus one row per record; every field quoted, embedded quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else str(value) for value in row])
    return buffer.getvalue()


def to_xlsx(headers: Sequence[str], rows: Iterable[Sequence], title: str = "Export") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append(list(headers))
    header_fill = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    for row in rows:
        ws.append([value for value in row])

    for index, header in enumerate(headers, start=1):
        width = max([len(str(header))] + [len(str(c.value)) for c in ws[get_column_letter(index)] if c.value is not None])
        ws.column_dimensions[get_column_letter(index)].width = min(width + 2, 40)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
