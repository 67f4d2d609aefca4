"""Value objects produced by extraction strategies."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class VendorField:
    """A vendor name with the line it was read from."""

    name: str
    confidence: float
    method: str
    raw: str


@dataclass(frozen=True)
class AmountField:
    """A monetary amount. ``value`` lies strictly between 0 and 999999."""

    value: Decimal
    confidence: float
    method: str


@dataclass(frozen=True)
class AmountFields:
    total: AmountField | None = None
    subtotal: AmountField | None = None
    tax: AmountField | None = None

    def is_empty(self) -> bool:
        return self.total is None and self.subtotal is None and self.tax is None


@dataclass(frozen=True)
class DateField:
    """A transaction date as ISO ``YYYY-MM-DD`` plus the layout it was read in."""

    value: str
    confidence: float
    method: str
    format: str


@dataclass(frozen=True)
class LineItem:
    description: str
    confidence: float
    quantity: int | None = None
    unit_price: Decimal | None = None
    total_price: Decimal | None = None


@dataclass(frozen=True)
class ExtractionResult:
    """Partial, confidence-scored output of one strategy.

    Every field is optional. ``confidence`` is filled in by the strategy
    from the fields it populated.
    """

    strategy: str
    priority: int
    confidence: float = 0.0
    vendor: VendorField | None = None
    amounts: AmountFields | None = None
    date: DateField | None = None
    line_items: list[LineItem] | None = field(default=None)

    @property
    def total(self) -> AmountField | None:
        return self.amounts.total if self.amounts else None

    @property
    def subtotal(self) -> AmountField | None:
        return self.amounts.subtotal if self.amounts else None

    @property
    def tax(self) -> AmountField | None:
        return self.amounts.tax if self.amounts else None

    def has_fields(self) -> bool:
        """Return True if any field carries a value."""
        return bool(
            self.vendor
            or (self.amounts and not self.amounts.is_empty())
            or self.date
            or self.line_items
        )
