"""
Invoice number reservation.

The counter in `invoice_settings` is only ever advanced by a single
UPDATE ... RETURNING statement, so two writers can never read the same
value. Uniqueness against stored invoices is still verified by the caller
through `reserve_unique`, which retries a bounded number of times.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional

from sqlalchemy import and_, case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.modules.invoices.models import InvoiceSettings

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"PREFIX|SUFFIX|FY|YYYY|YY|MM|#+|N{2,}")
SEQUENCE_PATTERN = re.compile(r"#+|N{2,}")
DEFAULT_SEQUENCE_WIDTH = 4


def financial_year_label(today: date, start_month: int) -> str:
    """'2024-25' for any date between April 2024 and March 2025 when start_month is 4."""
    start_year = today.year if today.month >= start_month else today.year - 1
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def format_invoice_number(
    number_format: str,
    sequence: int,
    today: date,
    prefix: str = "",
    suffix: str = "",
    financial_year: str = "",
    reset_annually: bool = False,
) -> str:
    """
    Render a number template. Tokens: PREFIX, SUFFIX, FY, YYYY, YY, MM and a
    run of '#' or 'N' for the zero padded sequence. Prefix, suffix and the
    sequence are joined with '-' when the template does not place them.
    """
    template = number_format or ""

    def substitute(match):
        token = match.group(0)
        if token == "PREFIX":
            return prefix
        if token == "SUFFIX":
            return suffix
        if token == "FY":
            return financial_year
        if token == "YYYY":
            return f"{today.year:04d}"
        if token == "YY":
            return f"{today.year % 100:02d}"
        if token == "MM":
            return f"{today.month:02d}"
        return str(sequence).zfill(len(token))

    body = TOKEN_PATTERN.sub(substitute, template)
    parts = []
    if prefix and "PREFIX" not in template:
        parts.append(prefix)
    if reset_annually and financial_year and not re.search(r"FY|YY", template):
        parts.append(financial_year)
    if body:
        parts.append(body)
    if not SEQUENCE_PATTERN.search(template):
        parts.append(str(sequence).zfill(DEFAULT_SEQUENCE_WIDTH))
    if suffix and "SUFFIX" not in template:
        parts.append(suffix)
    return "-".join(part.strip("-") for part in parts if part)


@dataclass(frozen=True)
class NumberingResult:
    """Outcome of a bounded reservation loop: a number, or exhausted."""
    number: Optional[str]
    attempts: int
    last_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.number is not None


class InvoiceNumberService:
    def __init__(
        self,
        db: AsyncSession,
        max_attempts: Optional[int] = None,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.max_attempts = max_attempts or settings.INVOICE_NUMBER_MAX_ATTEMPTS
        self.today = today

    async def get_settings(self) -> InvoiceSettings:
        """Load the numbering settings, creating the default row if absent."""
        result = await self.db.execute(
            select(InvoiceSettings)
            .order_by(InvoiceSettings.created_at, InvoiceSettings.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        row = result.scalars().first()
        if row is None:
            row = InvoiceSettings(
                current_financial_year=financial_year_label(self.today(), 4),
                current_number=0,
            )
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
            logger.info("Created default invoice numbering settings")
        return row

    def _format(self, row: InvoiceSettings, sequence: int, financial_year: str) -> str:
        return format_invoice_number(
            row.number_format,
            sequence,
            self.today(),
            prefix=row.invoice_prefix or "",
            suffix=row.invoice_suffix or "",
            financial_year=financial_year,
            reset_annually=row.reset_annually,
        )

    async def peek(self) -> str:
        """Next number as it would be reserved now, without touching the counter."""
        row = await self.get_settings()
        financial_year = financial_year_label(self.today(), row.financial_year_start_month)
        if row.reset_annually and row.current_financial_year != financial_year:
            sequence = 1
        else:
            sequence = row.current_number + 1
        return self._format(row, sequence, financial_year)

    async def reserve(self) -> str:
        """Atomically advance the counter and return the formatted number."""
        row = await self.get_settings()
        financial_year = financial_year_label(self.today(), row.financial_year_start_month)

        stmt = (
            update(InvoiceSettings)
            .where(InvoiceSettings.id == row.id)
            .values(
                current_number=case(
                    (
                        and_(
                            InvoiceSettings.reset_annually.is_(True),
                            InvoiceSettings.current_financial_year != financial_year,
                        ),
                        1,
                    ),
                    else_=InvoiceSettings.current_number + 1,
                ),
                current_financial_year=financial_year,
                version=InvoiceSettings.version + 1,
            )
            .returning(InvoiceSettings.current_number, InvoiceSettings.version)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        sequence, version = result.one()
        await self.db.commit()

        number = self._format(row, sequence, financial_year)
        logger.info(f"Reserved invoice number {number} (sequence {sequence}, version {version})")
        return number

    async def reserve_unique(self, exists: Callable[[str], Awaitable[bool]]) -> NumberingResult:
        """
        Reserve numbers until one is not already used by a stored invoice.

        Store failures during an attempt count as an attempt. After
        `max_attempts` the result comes back without a number.
        """
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                number = await self.reserve()
                if not await exists(number):
                    return NumberingResult(number=number, attempts=attempt)
                logger.warning(
                    f"Invoice number {number} already exists, retrying ({attempt}/{self.max_attempts})"
                )
            except SQLAlchemyError as e:
                await self.db.rollback()
                last_error = str(e)
                logger.warning(
                    f"Invoice number reservation failed ({attempt}/{self.max_attempts}): {last_error}"
                )
        logger.error(f"Invoice numbering exhausted after {self.max_attempts} attempts")
        return NumberingResult(number=None, attempts=self.max_attempts, last_error=last_error)
