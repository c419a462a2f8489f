import io
from decimal import Decimal

from openpyxl import load_workbook

from medsupply.utils.exports import to_csv, to_xlsx
from medsupply.utils.formatting import format_indian_currency, format_paise, paise_to_words


def test_indian_digit_grouping():
    assert format_indian_currency(Decimal("1234567.89")) == "₹ 12,34,567.89"
    assert format_indian_currency(Decimal("999")) == "₹ 999.00"
    assert format_indian_currency(Decimal("-100000"), "Rs.") == "-Rs. 1,00,000.00"
    assert format_paise(425250) == "₹ 4,252.50"


def test_amount_in_words():
    assert paise_to_words(425250) == "Four Thousand Two Hundred Fifty Two Rupees and Fifty Paise"
    assert paise_to_words(100) == "One Rupees"
    assert paise_to_words(0) == "Zero Rupees"
    assert paise_to_words(1500000000) == "One Crore Fifty Lakh Rupees"


def test_csv_quotes_every_field_and_doubles_quotes():
    content = to_csv(["Name", "Note"], [['Cough "DX" Syrup', None], ["Plain", 12]])
    assert content.splitlines() == [
        '"Name","Note"',
        '"Cough ""DX"" Syrup",""',
        '"Plain","12"',
    ]


def test_xlsx_has_bold_header_and_rows():
    content = to_xlsx(["PO Number", "Grand Total"], [["PO-202410-0001", 4252.5]], title="Purchase Orders")
    sheet = load_workbook(io.BytesIO(content)).active

    assert sheet.title == "Purchase Orders"
    assert [cell.value for cell in sheet[1]] == ["PO Number", "Grand Total"]
    assert sheet["A1"].font.bold
    assert sheet["A2"].value == "PO-202410-0001"
    assert sheet["B2"].value == 4252.5
