from fpdf import FPDF
from fpdf.enums import XPos, YPos
import logging

from medsupply.utils.formatting import format_indian_currency, paise_to_words
from medsupply.utils.po_totals import TaxType

logger = logging.getLogger(__name__)

# Core PDF fonts are latin-1 only
CURRENCY = "Rs."

# Cell placement that ends the current line
NEXT_LINE = {"new_x": XPos.LMARGIN, "new_y": YPos.NEXT}


def _latin1(text) -> str:
    return str(text or "").encode("latin-1", "replace").decode("latin-1")


class PDF(FPDF):
    def __init__(self, title: str, company: str = "MedSupply"):
        super().__init__()
        self.doc_title = title
        self.company = company

    def header(self):
        self.set_font('Helvetica', 'B', 14)
        self.cell(0, 8, _latin1(self.company), align='L', **NEXT_LINE)
        self.set_font('Helvetica', 'B', 12)
        self.cell(0, 8, _latin1(self.doc_title), align='C', **NEXT_LINE)
        self.ln(4)

    def footer(self):
        self.set_y(-15)
        self.set_font('Helvetica', 'I', 8)
        self.cell(0, 10, f'Page {self.page_no()}', align='C')

    def pair(self, left: str, right: str):
        """Two values on one line, the second right-aligned."""
        self.cell(95, 6, _latin1(left), align='L')
        self.cell(95, 6, _latin1(right), align='R', **NEXT_LINE)

    def table(self, widths, headers, rows, aligns):
        self.set_font('Helvetica', 'B', 9)
        for width, header in zip(widths, headers):
            self.cell(width, 7, header, border=1, align='C')
        self.ln()
        self.set_font('Helvetica', '', 9)
        for row in rows:
            for width, value, align in zip(widths, row, aligns):
                self.cell(width, 7, value, border=1, align=align)
            self.ln()


def _address(pdf: PDF, label: str, block: dict) -> None:
    pdf.set_font('Helvetica', 'B', 10)
    pdf.cell(0, 6, label, align='L', **NEXT_LINE)
    pdf.set_font('Helvetica', '', 10)
    for key in ("branch_warehouse", "name", "address", "gstin", "drug_license", "phone"):
        value = (block or {}).get(key)
        if value:
            prefix = {"gstin": "GSTIN: ", "drug_license": "DL No: ", "phone": "Ph: "}.get(key, "")
            pdf.cell(0, 5, _latin1(f"{prefix}{value}"), align='L', **NEXT_LINE)
    pdf.ln(2)


def generate_purchase_order_pdf(po) -> bytes:
    """Render a purchase order document and return the PDF bytes."""
    pdf = PDF(title="PURCHASE ORDER")
    pdf.add_page()

    pdf.set_font('Helvetica', '', 10)
    pdf.pair(f"PO Number: {po.po_number}", f"PO Date: {po.po_date.strftime('%d-%m-%Y')}")
    pdf.pair(f"Principal: {po.principal_name or ''}", f"Status: {po.status.value}")
    pdf.ln(4)

    _address(pdf, "Bill To:", po.bill_to)
    _address(pdf, "Ship To:", po.ship_to)

    rows = []
    for index, item in enumerate(po.items, start=1):
        discount = f"{item.discount}%" if item.discount_type.value == "percentage" else f"{item.discount}"
        rows.append([
            str(index),
            _latin1(item.product_name)[:38],
            str(item.quantity),
            str(item.foc),
            f"{item.unit_price:.2f}",
            discount,
            format_indian_currency(item.total_cost, CURRENCY),
        ])
    pdf.table(
        [8, 62, 16, 12, 24, 22, 40],
        ["#", "Product", "Qty", "FOC", "Rate", "Disc.", "Amount"],
        rows,
        ['C', 'L', 'R', 'R', 'R', 'R', 'R'],
    )
    pdf.ln(4)

    summary = [
        ("Sub Total", po.sub_total),
        ("Additional Discount", po.additional_discount),
        ("Total After Discount", po.total_after_discount),
    ]
    if po.tax_type == TaxType.CGST_SGST:
        summary += [(f"CGST ({po.gst_rate / 2}%)", po.cgst), (f"SGST ({po.gst_rate / 2}%)", po.sgst)]
    else:
        summary.append((f"IGST ({po.gst_rate}%)", po.igst))
    summary += [("Shipping", po.shipping_amount), ("Grand Total", po.grand_total)]
    for label, amount in summary:
        pdf.set_font('Helvetica', 'B' if label == "Grand Total" else '', 10)
        pdf.cell(146, 6, label, align='R')
        pdf.cell(40, 6, format_indian_currency(amount, CURRENCY), align='R', **NEXT_LINE)

    pdf.ln(3)
    pdf.set_font('Helvetica', 'I', 9)
    pdf.multi_cell(0, 5, _latin1(f"Amount in words: {paise_to_words(po.grand_total_paise)} Only"))
    if po.terms:
        pdf.ln(2)
        pdf.set_font('Helvetica', 'B', 9)
        pdf.cell(0, 5, "Terms & Conditions", align='L', **NEXT_LINE)
        pdf.set_font('Helvetica', '', 9)
        pdf.multi_cell(0, 5, _latin1(po.terms))

    logger.info(f"Generated PDF for purchase order {po.po_number}")
    return bytes(pdf.output())


def generate_invoice_receiving_pdf(receiving, po_number: str) -> bytes:
    """Goods receipt note for one invoice: what arrived, in which batch, at what rate."""
    pdf = PDF(title="GOODS RECEIPT NOTE")
    pdf.add_page()

    pdf.set_font('Helvetica', '', 10)
    pdf.pair(f"Invoice: {receiving.invoice_number}", f"Invoice Date: {receiving.invoice_date.strftime('%d-%m-%Y')}")
    pdf.pair(f"PO Number: {po_number}", f"Received: {receiving.received_date.strftime('%d-%m-%Y')}")
    pdf.pair(f"Received By: {receiving.received_by}", f"Status: {receiving.status.value}")
    pdf.ln(4)

    rows = []
    for index, item in enumerate(receiving.items, start=1):
        rows.append([
            str(index),
            _latin1(item.product_name)[:30],
            _latin1(item.batch_no or "-"),
            item.exp_date.strftime('%m/%Y') if item.exp_date else "-",
            str(item.ordered_qty),
            str(item.received_qty),
            str(item.foc),
            f"{item.unit_price:.2f}",
            item.status.value,
        ])
    pdf.table(
        [8, 50, 22, 16, 16, 18, 12, 22, 26],
        ["#", "Product", "Batch", "Expiry", "Ord.", "Recd.", "FOC", "Rate", "Status"],
        rows,
        ['C', 'L', 'L', 'C', 'R', 'R', 'R', 'R', 'C'],
    )
    pdf.ln(4)

    pdf.set_font('Helvetica', 'B', 10)
    pdf.cell(146, 6, "Invoice Amount", align='R')
    pdf.cell(40, 6, format_indian_currency(receiving.invoice_amount, CURRENCY), align='R', **NEXT_LINE)
    if receiving.notes:
        pdf.ln(2)
        pdf.set_font('Helvetica', '', 9)
        pdf.multi_cell(0, 5, _latin1(f"Notes: {receiving.notes}"))

    logger.info(f"Generated PDF for invoice receiving {receiving.invoice_number}")
    return bytes(pdf.output())
