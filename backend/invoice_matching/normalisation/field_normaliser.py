"""
Field Normaliser

Maps raw ledger rows from any source (Xero exports, CSV uploads, manual
entry) onto the canonical TransactionRecord schema.

Handles:
- Field-name variants through an explicit alias table, resolved per record
- Amount parsing (currency symbols, thousands separators, parentheses)
- Date parsing through a fixed fallback chain
- Paid / voided / partially-paid flags

Nothing in here raises for bad data: unusable amounts become zero and
unusable dates become None, each with a logged warning and a processing
note on the record.
"""

import re
import logging
from collections.abc import Mapping
from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional, List, Tuple

from dateutil import parser as dateutil_parser

from invoice_matching.schema import TransactionRecord

logger = logging.getLogger(__name__)


DEFAULT_DATE_FORMAT = "DD/MM/YYYY"

# Canonical field -> raw keys, in precedence order
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "transaction_number": (
        "transaction_number", "transactionNumber", "invoice_number",
        "invoiceNumber", "InvoiceNumber", "id",
    ),
    "transaction_type": ("transaction_type", "type", "Type"),
    "amount": ("amount", "Total", "total"),
    "issue_date": ("issue_date", "date", "invoiceDate", "Date"),
    "due_date": ("due_date", "dueDate", "DueDate"),
    "status": ("status", "Status"),
    "reference": ("reference", "ref", "Reference"),
    "is_paid": ("is_paid", "isPaid"),
    "is_voided": ("is_voided", "isVoided"),
    "is_partially_paid": ("is_partially_paid", "isPartiallyPaid"),
    "original_amount": ("original_amount", "originalAmount"),
    "amount_paid": ("amount_paid", "amountPaid"),
    "payment_date": ("payment_date", "paymentDate"),
    "void_date": ("void_date", "voidDate"),
}

# Xero .NET JSON date, e.g. /Date(1762646400000+0000)/
XERO_DATE_PATTERN = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")
DAY_MONTH_YEAR_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\b")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
FORMAT_TOKEN_PATTERN = re.compile(r"YYYY|YY|MMMM|MMM|MM|M|DD|D")
CURRENCY_CODE_PATTERN = re.compile(r"^[A-Za-z]{3}\s*|\s*[A-Za-z]{3}$")
DECIMAL_COMMA_PATTERN = re.compile(r",\d{1,2}\s*\)?$")

FORMAT_TOKENS = {
    "YYYY": "%Y",
    "YY": "%y",
    "MMMM": "%B",
    "MMM": "%b",
    "MM": "%m",
    "M": "%m",
    "DD": "%d",
    "D": "%d",
}

TRUE_STRINGS = ("true", "yes", "1", "y")
FALSE_STRINGS = ("false", "no", "0", "n", "")

# Fills the parts a generic parse cannot find, so results never depend on today's date
_GENERIC_PARSE_DEFAULT = datetime(1900, 1, 1)


def strptime_format(date_format: str) -> str:
    """Translate a hint such as DD/MM/YYYY into a strptime directive string."""
    escaped = date_format.replace("%", "%%")
    return FORMAT_TOKEN_PATTERN.sub(lambda m: FORMAT_TOKENS[m.group(0)], escaped)


def _epoch_millis_to_date(millis: int) -> Optional[date]:
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def parse_date(value: Any, date_format: Optional[str] = None) -> Optional[date]:
    """
    Parse a raw date value to a calendar date.

    Fallback chain, first success wins:
    - date / datetime objects, Xero /Date(...)/ strings, epoch milliseconds
    - (a) DD/MM/YYYY hint with a slash-separated value: explicit day-month-year split
    - (b) values already starting YYYY-MM-DD
    - (c) the supplied format
    - (d) generic parsing

    Returns None when every step fails.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, (int, float)):
        return _epoch_millis_to_date(int(value))

    if not isinstance(value, str):
        logger.debug(f"Unsupported date type: {type(value).__name__}")
        return None

    text = value.strip()
    if not text:
        return None

    date_format = date_format or DEFAULT_DATE_FORMAT

    xero_match = XERO_DATE_PATTERN.match(text)
    if xero_match:
        parsed = _epoch_millis_to_date(int(xero_match.group(1)))
        if parsed:
            return parsed

    # (a) explicit day-month-year split
    if date_format.upper() == "DD/MM/YYYY" and "/" in text:
        dmy_match = DAY_MONTH_YEAR_PATTERN.match(text)
        if dmy_match:
            day, month, year = (int(part) for part in dmy_match.groups())
            try:
                return date(year, month, day)
            except ValueError:
                logger.debug(f"Day-month-year split failed for {text!r}")

    # (b) ISO prefix
    iso_match = ISO_DATE_PATTERN.match(text)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            logger.debug(f"ISO prefix is not a calendar date: {text!r}")

    # (c) supplied format
    try:
        return datetime.strptime(text, strptime_format(date_format)).date()
    except ValueError:
        logger.debug(f"Date {text!r} does not fit format {date_format}")

    # (d) generic parse
    try:
        return dateutil_parser.parse(
            text,
            dayfirst=date_format.upper().startswith("D"),
            default=_GENERIC_PARSE_DEFAULT
        ).date()
    except (ValueError, OverflowError):
        logger.debug(f"Generic date parse failed for {text!r}")

    return None


def parse_amount(value: Any) -> Tuple[Decimal, bool]:
    """
    Parse a raw amount to a signed Decimal.

    Returns (amount, parsed_ok). Missing values and values that cannot be
    read both yield Decimal("0"); parsed_ok is False for the latter.
    """
    if value is None:
        return Decimal("0"), True

    if isinstance(value, bool):
        return Decimal("0"), False

    if isinstance(value, Decimal):
        return (value, True) if value.is_finite() else (Decimal("0"), False)

    if isinstance(value, (int, float)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return Decimal("0"), False
        return (amount, True) if amount.is_finite() else (Decimal("0"), False)

    if not isinstance(value, str):
        return Decimal("0"), False

    text = value.strip()
    if not text:
        return Decimal("0"), True

    negative = text.startswith("(") and text.endswith(")")
    cleaned = re.sub(r"[^\d.\-]", "", text)
    if not any(ch.isdigit() for ch in cleaned):
        return Decimal("0"), False

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0"), False

    if negative:
        amount = -abs(amount)
    return amount, True


def amount_read_is_lossy(value: Any) -> bool:
    """
    True when parse_amount() had to discard something that may have carried
    meaning: letters other than a leading or trailing currency code (1e5),
    or a trailing decimal comma (1 000,50).
    """
    if not isinstance(value, str):
        return False
    text = CURRENCY_CODE_PATTERN.sub("", value.strip())
    if re.search(r"[A-Za-z]", text):
        return True
    return bool(DECIMAL_COMMA_PATTERN.search(text))


def parse_flag(value: Any) -> Optional[bool]:
    """Read an explicit boolean field; None when absent or unreadable."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    return None


class FieldNormaliser:
    """
    Normalises raw ledger rows into TransactionRecord objects.

    Every record gets a stable integer handle (its position plus an
    optional offset) so later stages can track identity without
    comparing record contents.
    """

    @classmethod
    def resolve_field(cls, raw: Mapping, canonical: str) -> Any:
        """Return the first non-blank value among a canonical field's aliases."""
        for alias in FIELD_ALIASES[canonical]:
            value = raw.get(alias)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
        return None

    @classmethod
    def normalise_record(
        cls,
        raw: Any,
        handle: int,
        date_format: Optional[str] = None
    ) -> TransactionRecord:
        """
        Normalise one raw row.

        Args:
            raw: Raw record (any mapping)
            handle: Identity assigned to the record
            date_format: Date-format hint for this record's source

        Returns:
            TransactionRecord; never raises for bad field values
        """
        if not isinstance(raw, Mapping):
            logger.warning(f"Record {handle} is not a mapping ({type(raw).__name__}); treating as empty")
            return TransactionRecord(
                handle=handle,
                amount_present=False,
                processing_notes=[f"record is not a mapping: {type(raw).__name__}"]
            )

        notes: List[str] = []
        transaction_number = cls._safe_string(cls.resolve_field(raw, "transaction_number"))

        raw_amount = cls.resolve_field(raw, "amount")
        amount, amount_ok = parse_amount(raw_amount)
        if not amount_ok:
            logger.warning(f"Unparseable amount {raw_amount!r} on record {transaction_number or handle}; using 0")
            notes.append(f"amount could not be parsed: {str(raw_amount)[:50]}")
        elif amount_read_is_lossy(raw_amount):
            logger.warning(f"Amount {raw_amount!r} on record {transaction_number or handle} read as {amount}")
            notes.append(f"amount read as {amount} after discarding characters: {str(raw_amount)[:50]}")

        raw_issue_date = cls.resolve_field(raw, "issue_date")
        issue_date = parse_date(raw_issue_date, date_format)
        if raw_issue_date is not None and issue_date is None:
            logger.warning(f"Unparseable date {raw_issue_date!r} on record {transaction_number or handle}")
            notes.append(f"date could not be parsed: {str(raw_issue_date)[:50]}")

        raw_due_date = cls.resolve_field(raw, "due_date")
        due_date = parse_date(raw_due_date, date_format)
        if raw_due_date is not None and due_date is None:
            logger.warning(f"Unparseable due date {raw_due_date!r} on record {transaction_number or handle}")
            notes.append(f"due date could not be parsed: {str(raw_due_date)[:50]}")

        status = cls._safe_string(cls.resolve_field(raw, "status"))
        status_upper = status.upper()

        is_paid = parse_flag(cls.resolve_field(raw, "is_paid"))
        if is_paid is None:
            is_paid = status_upper == "PAID"

        is_voided = parse_flag(cls.resolve_field(raw, "is_voided"))
        if is_voided is None:
            is_voided = status_upper == "VOIDED"

        raw_original = cls.resolve_field(raw, "original_amount")
        if raw_original is None:
            original_amount = amount
        else:
            original_amount, original_ok = parse_amount(raw_original)
            if not original_ok:
                logger.warning(f"Unparseable original amount {raw_original!r} on record {transaction_number or handle}")
                notes.append(f"original amount could not be parsed: {str(raw_original)[:50]}")

        raw_paid = cls.resolve_field(raw, "amount_paid")
        amount_paid, paid_ok = parse_amount(raw_paid)
        if not paid_ok:
            logger.warning(f"Unparseable amount paid {raw_paid!r} on record {transaction_number or handle}")
            notes.append(f"amount paid could not be parsed: {str(raw_paid)[:50]}")

        return TransactionRecord(
            handle=handle,
            transaction_number=transaction_number,
            type=cls._safe_string(cls.resolve_field(raw, "transaction_type")),
            amount=amount,
            date=issue_date,
            due_date=due_date,
            status=status,
            reference=cls._safe_string(cls.resolve_field(raw, "reference")),
            is_paid=is_paid,
            is_voided=is_voided,
            is_partially_paid=bool(parse_flag(cls.resolve_field(raw, "is_partially_paid"))),
            original_amount=original_amount,
            amount_paid=amount_paid,
            payment_date=parse_date(cls.resolve_field(raw, "payment_date"), date_format),
            void_date=parse_date(cls.resolve_field(raw, "void_date"), date_format),
            amount_present=raw_amount is not None and amount_ok,
            processing_notes=notes
        )

    @classmethod
    def normalise_records(
        cls,
        raw_records: List[Any],
        date_format: Optional[str] = None,
        handle_offset: int = 0
    ) -> List[TransactionRecord]:
        """
        Normalise a batch of raw rows.

        Returns one record per input row, in input order. Errors on one
        row don't stop the batch.
        """
        records = []
        for index, raw in enumerate(raw_records):
            handle = handle_offset + index
            try:
                records.append(cls.normalise_record(raw, handle, date_format))
            except Exception as e:
                logger.error(f"Unexpected normalisation error on record {handle}: {e}")
                records.append(TransactionRecord(
                    handle=handle,
                    amount_present=False,
                    processing_notes=[f"normalisation failed: {e}"]
                ))
        return records

    @classmethod
    def _safe_string(cls, value: Any) -> str:
        """Safely convert value to a stripped string ('' when missing)."""
        if value is None:
            return ""
        return str(value).strip()
