"""
Broker option symbol parsing.

Handles the E*TRADE style ticker used in gain/loss exports, e.g.
``-SPY250703C618``: optional leading sign, underlying, YYMMDD expiry,
C/P and the strike.
"""
import re
from dataclasses import dataclass
from datetime import date


class TradeImportError(ValueError):
    """Base class for user-facing parse errors raised while importing trades."""


class FormatError(TradeImportError):
    """Raised when a symbol does not follow the option ticker grammar."""


_SYMBOL_RE = re.compile(r"^([A-Z]+)(\d{6})([CP])(\d+)$")
_SHAPE_RE = re.compile(r"^-?[A-Z]+\d{6}[CP]\d+$")

# OCC strikes are written x1000 (618000 or zero padded 00618000)
_SCALED_STRIKE_DIGITS = 6


@dataclass(frozen=True)
class ParsedSymbol:
    ticker: str
    option_type: str  # "calls" or "puts"
    strike_price: float
    expiration_date: date


def is_option_symbol(symbol: str) -> bool:
    return bool(_SHAPE_RE.match(symbol or ""))


def _strike_from_digits(digits: str) -> float:
    value = int(digits)
    if len(digits) >= _SCALED_STRIKE_DIGITS:
        return value / 1000
    return float(value)


def parse_symbol(symbol: str) -> ParsedSymbol:
    """Decode ``[-]TICKER YYMMDD C|P STRIKE`` into its parts.

    The expiration is returned as a plain ``date`` (no timezone). Raises
    FormatError if the string does not match or the date is impossible.
    """
    raw = (symbol or "").strip()
    clean = raw[1:] if raw.startswith("-") else raw

    match = _SYMBOL_RE.match(clean)
    if not match:
        raise FormatError(f"Invalid symbol format: {symbol}")

    ticker, date_str, type_letter, strike_str = match.groups()
    year = 2000 + int(date_str[0:2])
    month = int(date_str[2:4])
    day = int(date_str[4:6])
    try:
        expiration = date(year, month, day)
    except ValueError:
        raise FormatError(f"Invalid expiration date in symbol: {symbol}") from None

    return ParsedSymbol(
        ticker=ticker,
        option_type="calls" if type_letter == "C" else "puts",
        strike_price=_strike_from_digits(strike_str),
        expiration_date=expiration,
    )
