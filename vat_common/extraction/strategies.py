# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Extraction strategies for VAT amounts.

Each strategy scans document text independently and returns the candidate
amounts it recognises. The extraction service runs them in order and merges
the candidates.
"""

import csv
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from vat_common.extraction.models import (
    COUNTRY_SUMMARY_REPORT,
    ORDER_DETAIL_REPORT,
    STANDARD_REPORT,
    AmountCandidate,
)
from vat_common.models import TaxDirection
from vat_common.utils import dedupe, round_currency

logger = logging.getLogger(__name__)

TAX_KEYWORDS = ("vat", "tax", "cáin", "btw", "mwst")

# Words introducing a document, registration or phone number rather than an amount
IDENTIFIER_WORDS = (
    "no",
    "nr",
    "number",
    "reg",
    "registration",
    "id",
    "ref",
    "invoice",
    "tel",
    "telephone",
    "phone",
    "fax",
    "call",
)

_NUMBER = r"(?:\d{1,3}(?:[.,]\d{3})+|\d+)(?:[.,]\d{1,2})?"

_TAX_KEYWORD_RE = re.compile(r"\b(?:vat|tax|cáin|btw|mwst)\b", re.IGNORECASE)

_CURRENCY_AMOUNT_RE = re.compile(
    r"(?:€|£|\$|\b(?:EUR|GBP|USD))\s?(?P<amount>" + _NUMBER + r")(?![\d%])",
    re.IGNORECASE,
)

# Lines quoting a net or gross figure rather than the tax itself
_NET_OR_GROSS_RE = re.compile(
    r"\b(?:incl(?:uding|\.)?|excl(?:uding|\.)?|ex\.?|before|after|plus)\s+(?:of\s+)?(?:vat|tax)\b",
    re.IGNORECASE,
)

_NUMERIC_TOKEN_RE = re.compile(r"^-?" + _NUMBER + r"$")
_YEAR_RE = re.compile(r"^(?:19|20)\d{2}$")
_DIGITS_RE = re.compile(r"^\d+$")
_TOKEN_STRIP = "€£$:;()[]*"

_RATE_RES = (
    re.compile(
        r"\b(?:vat|tax|btw|mwst)\b[^\n%]{0,12}?(?P<rate>\d{1,2}(?:[.,]\d{1,2})?)\s*%",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?P<rate>\d{1,2}(?:[.,]\d{1,2})?)\s*%\s*(?:vat|tax|btw|mwst)\b",
        re.IGNORECASE,
    ),
)

_TOTAL_RE = re.compile(
    r"\b(?:grand\s+total|total|amount\s+due)\b[^\d\n]{0,24}?(?P<amount>" + _NUMBER + r")(?![\d%])",
    re.IGNORECASE,
)
# Totals quoted before tax, which carry no VAT share
_NET_TOTAL_RE = re.compile(r"\b(?:net|sub|excl(?:uding|\.)?|ex\.?|before)\b", re.IGNORECASE)

_SALES_HINT_RE = re.compile(
    r"\b(?:sales?|output|sold|customers?|revenue)\b", re.IGNORECASE
)
_PURCHASE_HINT_RE = re.compile(
    r"\b(?:purchases?|input|suppliers?|bought|expenses?)\b", re.IGNORECASE
)

COUNTRY_COLUMNS = (
    "country",
    "billing_country",
    "shipping_country",
    "country_code",
    "region",
)
COUNTRY_TAX_COLUMNS = ("net total tax", "tax total", "total tax", "net tax", "vat amount")
ORDER_COLUMNS = ("order number", "order_number", "order id", "order_id", "order")
ORDER_TAX_COLUMNS = ("order_tax_amount", "order tax", "total tax")
ORDER_ITEM_TAX_COLUMNS = ("item tax amt.", "item tax amount", "item tax")
ORDER_SHIPPING_TAX_COLUMNS = ("shipping tax amt.", "shipping tax amount", "shipping tax")

HEADER_SEARCH_ROWS = 10
SUMMARY_ROW_LABELS = ("total", "grand total", "totals", "sum")


def parse_amount(raw: str) -> Optional[float]:
    """
    Parse a monetary token written with either decimal point or decimal comma.

    Args:
        raw: Token such as "1,234.56", "1.234,56", "€12,50" or "-5.00"

    Returns:
        The value, or None if the token is not a number
    """
    token = raw.strip().strip(_TOKEN_STRIP).replace(" ", "")
    for symbol in ("€", "£", "$", "EUR", "GBP", "USD"):
        token = token.replace(symbol, "")
    negative = token.startswith("-")
    token = token.lstrip("-")
    if not token:
        return None

    if "," in token and "." in token:
        if token.rfind(",") > token.rfind("."):
            token = token.replace(".", "").replace(",", ".")
        else:
            token = token.replace(",", "")
    elif "," in token:
        head, _, tail = token.rpartition(",")
        if len(tail) == 3:
            token = token.replace(",", "")
        else:
            token = head.replace(",", "") + "." + tail
    elif token.count(".") > 1 or (token.count(".") == 1 and len(token.rpartition(".")[2]) == 3):
        token = token.replace(".", "")

    try:
        value = float(token)
    except ValueError:
        return None
    return -value if negative else value


def direction_hint(text: str) -> Optional[TaxDirection]:
    """Tax direction suggested by words in a line, None when absent or mixed."""
    sales = bool(_SALES_HINT_RE.search(text))
    purchase = bool(_PURCHASE_HINT_RE.search(text))
    if sales and not purchase:
        return TaxDirection.SALES
    if purchase and not sales:
        return TaxDirection.PURCHASE
    return None


def find_vat_rates(text: str) -> List[float]:
    """Percentages declared next to a tax keyword, in order of appearance."""
    rates = []
    for pattern in _RATE_RES:
        for match in pattern.finditer(text):
            rate = parse_amount(match.group("rate"))
            if rate is not None and 0 <= rate <= 100:
                rates.append((match.start(), rate))
    return dedupe(rate for _, rate in sorted(rates))


def read_rows(text: str) -> List[List[str]]:
    """
    Read delimited (CSV, semicolon or tab separated) text into rows.

    Returns an empty list when the text does not look tabular.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return []
    head = lines[:HEADER_SEARCH_ROWS]
    delimiter = max((",", ";", "\t"), key=lambda d: sum(line.count(d) for line in head))
    if not any(delimiter in line for line in head):
        return []
    return [[cell.strip() for cell in row] for row in csv.reader(lines, delimiter=delimiter)]


def find_column(headers: Sequence[str], names: Sequence[str]) -> int:
    """
    Locate a column by name, preferring exact matches over partial ones.

    Returns:
        The column index, or -1 if no header matches
    """
    normalized = [h.strip().lower().replace("_", " ") for h in headers]
    for name in names:
        wanted = name.lower().replace("_", " ")
        if wanted in normalized:
            return normalized.index(wanted)
    for name in names:
        wanted = name.lower().replace("_", " ")
        for index, header in enumerate(normalized):
            if wanted in header:
                return index
    return -1


def _find_header(
    rows: List[List[str]], *column_groups: Sequence[str]
) -> Optional[Tuple[int, List[int]]]:
    for row_index, row in enumerate(rows[:HEADER_SEARCH_ROWS]):
        columns = [find_column(row, names) for names in column_groups]
        if all(column >= 0 for column in columns):
            return row_index, columns
    return None


def detect_report_type(text: str) -> str:
    """
    Classify a document as a country summary export, an order detail export
    or a standard document, based on its header row.
    """
    rows = read_rows(text)
    if not rows:
        return STANDARD_REPORT
    if _find_header(rows, COUNTRY_COLUMNS, COUNTRY_TAX_COLUMNS):
        return COUNTRY_SUMMARY_REPORT
    order_tax_columns = ORDER_TAX_COLUMNS + ORDER_ITEM_TAX_COLUMNS + ORDER_SHIPPING_TAX_COLUMNS
    if _find_header(rows, ORDER_COLUMNS, order_tax_columns):
        return ORDER_DETAIL_REPORT
    return STANDARD_REPORT


class ExtractionStrategy(ABC):
    """Base class for a named amount-finding strategy"""

    name = ""
    fallback = False  # only run when the other strategies found nothing

    @abstractmethod
    def find(self, text: str) -> List[AmountCandidate]:
        """Return every candidate amount the strategy recognises in text."""


class CurrencyPrefixStrategy(ExtractionStrategy):
    """
    Amounts written with a currency symbol or code in front of them, on lines
    that talk about tax. Lines quoting net or gross figures ("incl. VAT",
    "excl. VAT") are skipped.
    """

    name = "currency_prefix"

    def find(self, text: str) -> List[AmountCandidate]:
        candidates = []
        for line in text.splitlines():
            if not _TAX_KEYWORD_RE.search(line) or _NET_OR_GROSS_RE.search(line):
                continue
            hint = direction_hint(line)
            for match in _CURRENCY_AMOUNT_RE.finditer(line):
                value = parse_amount(match.group("amount"))
                if value is None:
                    continue
                candidates.append(
                    AmountCandidate(
                        value=value,
                        strategy=self.name,
                        direction=hint,
                        context=line.strip(),
                    )
                )
        return candidates


class LabelAdjacentStrategy(ExtractionStrategy):
    """
    Bare numbers within a few tokens of a tax keyword on the same line.

    The tokens after the keyword are searched first, then the tokens before
    it, nearest first. Percentages are rate declarations and never amounts.
    Identifier words such as "No." or "Tel" end the search in their
    direction. A whole number next to another whole number is part of a
    phone number and is skipped.
    """

    name = "label_adjacent"

    def __init__(self, window: int = 4):
        if window < 1:
            raise ValueError("window must be at least 1")
        self.window = window

    @staticmethod
    def _word(token: str) -> str:
        return re.sub(r"[^\w]", "", token.lower())

    @classmethod
    def _is_keyword(cls, token: str) -> bool:
        return cls._word(token) in TAX_KEYWORDS

    @classmethod
    def _is_identifier(cls, token: str) -> bool:
        return cls._word(token) in IDENTIFIER_WORDS

    @staticmethod
    def _bare_number(token: str) -> str:
        stripped = token.strip(_TOKEN_STRIP + ",.")
        for symbol in ("€", "£", "$"):
            stripped = stripped.replace(symbol, "")
        return stripped

    @classmethod
    def _amount_at(cls, tokens: List[str], index: int) -> Optional[float]:
        token = tokens[index]
        if "%" in token:
            return None
        if index + 1 < len(tokens) and tokens[index + 1].startswith("%"):
            return None
        stripped = cls._bare_number(token)
        if not _NUMERIC_TOKEN_RE.match(stripped):
            return None
        if _YEAR_RE.match(stripped):
            return None
        if index > 0 and cls._is_identifier(tokens[index - 1]):
            return None
        if _DIGITS_RE.match(stripped) and any(
            0 <= i < len(tokens) and _DIGITS_RE.match(cls._bare_number(tokens[i]))
            for i in (index - 1, index + 1)
        ):
            return None
        return parse_amount(stripped)

    def find(self, text: str) -> List[AmountCandidate]:
        candidates = []
        for line in text.splitlines():
            if _NET_OR_GROSS_RE.search(line):
                continue
            tokens = line.split()
            for index, token in enumerate(tokens):
                if not self._is_keyword(token):
                    continue
                value = self._nearest_amount(tokens, index)
                if value is None:
                    continue
                candidates.append(
                    AmountCandidate(
                        value=value,
                        strategy=self.name,
                        direction=direction_hint(line),
                        context=line.strip(),
                    )
                )
        return candidates

    def _nearest_amount(self, tokens: List[str], keyword_index: int) -> Optional[float]:
        following = range(keyword_index + 1, min(len(tokens), keyword_index + 1 + self.window))
        preceding = range(keyword_index - 1, max(-1, keyword_index - 1 - self.window), -1)
        for positions in (following, preceding):
            for position in positions:
                if self._is_keyword(tokens[position]) or self._is_identifier(tokens[position]):
                    break
                value = self._amount_at(tokens, position)
                if value is not None:
                    return value
        return None


class CountryBreakdownStrategy(ExtractionStrategy):
    """
    Tax report exports with one row per country (or per order, grouped by
    billing country). Each country's rows are summed into one candidate
    tagged with the country.
    """

    name = "country_breakdown"

    def breakdown(self, text: str) -> Dict[str, float]:
        """Per-country tax subtotals, empty when the text is not such a report."""
        if detect_report_type(text) != COUNTRY_SUMMARY_REPORT:
            return {}
        rows = read_rows(text)
        header = _find_header(rows, COUNTRY_COLUMNS, COUNTRY_TAX_COLUMNS)
        if header is None:
            return {}
        header_index, (country_column, tax_column) = header

        breakdown: Dict[str, float] = {}
        for row in rows[header_index + 1:]:
            if len(row) <= max(country_column, tax_column):
                continue
            country = row[country_column] or "Unknown"
            if country.lower() in SUMMARY_ROW_LABELS:
                continue
            value = parse_amount(row[tax_column])
            if value is None:
                continue
            breakdown[country] = round_currency(breakdown.get(country, 0.0) + value)

        logger.debug(f"Country breakdown found {len(breakdown)} countries")
        return breakdown

    def find(self, text: str) -> List[AmountCandidate]:
        return [
            AmountCandidate(
                value=amount,
                strategy=self.name,
                context=f"{country} subtotal",
                country=country,
            )
            for country, amount in self.breakdown(text).items()
        ]


class OrderColumnStrategy(ExtractionStrategy):
    """
    Order detail exports: an order tax column, or item tax plus shipping tax
    columns, summed over all order rows into a single candidate.
    """

    name = "order_columns"

    def find(self, text: str) -> List[AmountCandidate]:
        if detect_report_type(text) != ORDER_DETAIL_REPORT:
            return []
        rows = read_rows(text)
        header = _find_header(rows, ORDER_COLUMNS)
        if header is None:
            return []
        header_index, _ = header
        headers = rows[header_index]

        order_tax = find_column(headers, ORDER_TAX_COLUMNS)
        tax_columns = [order_tax] if order_tax >= 0 else [
            column
            for column in (
                find_column(headers, ORDER_ITEM_TAX_COLUMNS),
                find_column(headers, ORDER_SHIPPING_TAX_COLUMNS),
            )
            if column >= 0
        ]
        if not tax_columns:
            return []

        total = 0.0
        orders = 0
        for row in rows[header_index + 1:]:
            if row and row[0].lower() in SUMMARY_ROW_LABELS:
                continue
            values = [parse_amount(row[c]) for c in tax_columns if c < len(row)]
            values = [v for v in values if v is not None]
            if values:
                total += sum(values)
                orders += 1

        if not orders:
            return []
        return [
            AmountCandidate(
                value=round_currency(total),
                strategy=self.name,
                context=f"{orders} orders",
            )
        ]


class TotalAndRateStrategy(ExtractionStrategy):
    """
    Fallback for documents that state a gross total and a single VAT rate
    but no VAT amount: the VAT share of the total is total * rate / (100 + rate).

    Only consulted when no other strategy produced an amount.
    """

    name = "total_and_rate"
    fallback = True

    def find(self, text: str) -> List[AmountCandidate]:
        rates = find_vat_rates(text)
        if len(rates) != 1 or rates[0] <= 0:
            return []
        total = None
        total_line = ""
        for line in text.splitlines():
            if _NET_TOTAL_RE.search(line):
                continue
            for match in _TOTAL_RE.finditer(line):
                value = parse_amount(match.group("amount"))
                if value is not None and value > 0:
                    # the last stated total wins
                    total, total_line = value, line.strip()
        if total is None:
            return []

        rate = rates[0]
        vat = round_currency(total * rate / (100 + rate))
        logger.debug(f"Derived VAT {vat} from total {total} at {rate}%")
        return [
            AmountCandidate(
                value=vat,
                strategy=self.name,
                direction=direction_hint(total_line),
                context=f"{total_line} at {rate:g}% VAT",
            )
        ]


def default_strategies(label_window: int = 4) -> List[ExtractionStrategy]:
    """The strategy chain in priority order."""
    return [
        CurrencyPrefixStrategy(),
        LabelAdjacentStrategy(window=label_window),
        CountryBreakdownStrategy(),
        OrderColumnStrategy(),
        TotalAndRateStrategy(),
    ]
