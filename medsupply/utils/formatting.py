from decimal import Decimal

from medsupply.utils.money import from_paise


def format_indian_currency(amount: Decimal, symbol: str = "₹") -> str:
    """Group digits the Indian way: 12,34,567.89."""
    if amount is None:
        return f"{symbol} 0.00"
    amount = Decimal(amount)
    sign = "-" if amount < 0 else ""
    amount_str = f"{abs(amount):.2f}"
    integer_part, decimal_part = amount_str.split(".")

    if len(integer_part) <= 3:
        return f"{sign}{symbol} {integer_part}.{decimal_part}"

    last_three = integer_part[-3:]
    remaining = integer_part[:-3]

    formatted_remaining = ""
    while len(remaining) > 2:
        formatted_remaining = "," + remaining[-2:] + formatted_remaining
        remaining = remaining[:-2]

    formatted_remaining = remaining + formatted_remaining

    return f"{sign}{symbol} {formatted_remaining},{last_three}.{decimal_part}"


def format_paise(paise: int, symbol: str = "₹") -> str:
    return format_indian_currency(from_paise(paise), symbol)


UNITS = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten", "Eleven", "Twelve",
         "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen"]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _convert(num: int) -> str:
    if num < 20:
        return UNITS[num]
    elif num < 100:
        return TENS[num // 10] + (" " + UNITS[num % 10] if num % 10 != 0 else "")
    elif num < 1000:
        return UNITS[num // 100] + " Hundred" + (" " + _convert(num % 100) if num % 100 != 0 else "")
    elif num < 100000:
        return _convert(num // 1000) + " Thousand" + (" " + _convert(num % 1000) if num % 1000 != 0 else "")
    elif num < 10000000:
        return _convert(num // 100000) + " Lakh" + (" " + _convert(num % 100000) if num % 100000 != 0 else "")
    else:
        return _convert(num // 10000000) + " Crore" + (" " + _convert(num % 10000000) if num % 10000000 != 0 else "")


def paise_to_words(paise: int) -> str:
    """Amount in words for documents, e.g. 425250 -> 'Four Thousand Two Hundred Fifty Two Rupees and Fifty Paise'."""
    if paise is None:
        return ""
    if paise < 0:
        return "Minus " + paise_to_words(-paise)
    if paise == 0:
        return "Zero Rupees"

    rupees, cents = divmod(paise, 100)
    parts = []
    if rupees:
        parts.append(_convert(rupees) + " Rupees")
    if cents:
        parts.append(_convert(cents) + " Paise")
    return " and ".join(parts)
