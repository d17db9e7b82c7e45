"""Fee schedules for the "Our Fees" table.

Two policies exist. ``flat_average`` is the long-standing behaviour: each
scheme row shows a fixed amount from :data:`FIXED_SCHEME_FEES` and the total is
``len(schemes) * FLAT_AVERAGE_RATE`` regardless of the row amounts or the fee
fields captured on the mandate form. ``declared`` uses the per-scheme
``fees``/``percentages``/``fee_types`` entered on the form; percentage fees are
listed as ``N% of subsidy amount`` and only fixed fees count towards the
rupee total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

from .formatting import format_percentage, format_rupees

if TYPE_CHECKING:
    from .document import MandateDocumentInput

FIXED_FEE_LABEL = "Fixed Fee"
PERCENTAGE_FEE_LABEL = "Percentage Fee"
FLAT_AVERAGE_RATE = Decimal(15000)
DEFAULT_SCHEME_FEE = Decimal(10000)
FIXED_SCHEME_FEES = {
    "Interest Subsidy": Decimal(25000),
    "Power Connection Charges": Decimal(15000),
    "Electric Duty Exemption": Decimal(20000),
}

FEE_TYPE_FIXED = "fee"
FEE_TYPE_PERCENTAGE = "percentage"


@dataclass(frozen=True)
class FeeRow:
    service: str
    structure: str
    amount: str


@dataclass(frozen=True)
class FeeSchedule:
    rows: tuple[FeeRow, ...]
    total: Decimal

    @property
    def total_display(self) -> str:
        return format_rupees(self.total)


def flat_average_schedule(document: MandateDocumentInput) -> FeeSchedule:
    rows = tuple(
        FeeRow(
            service=scheme,
            structure=FIXED_FEE_LABEL,
            amount=format_rupees(FIXED_SCHEME_FEES.get(scheme, DEFAULT_SCHEME_FEE)),
        )
        for scheme in document.schemes
    )
    return FeeSchedule(rows=rows, total=len(document.schemes) * FLAT_AVERAGE_RATE)


def declared_schedule(document: MandateDocumentInput) -> FeeSchedule:
    rows: list[FeeRow] = []
    total = Decimal(0)
    for scheme in document.schemes:
        fee_type = document.fee_types.get(scheme, FEE_TYPE_PERCENTAGE)
        if fee_type == FEE_TYPE_FIXED:
            amount = Decimal(str(document.fees.get(scheme, 0) or 0))
            total += amount
            rows.append(FeeRow(scheme, FIXED_FEE_LABEL, format_rupees(amount)))
        else:
            percentage = document.percentages.get(scheme, 0) or 0
            rows.append(
                FeeRow(scheme, PERCENTAGE_FEE_LABEL, f"{format_percentage(percentage)} of subsidy amount")
            )
    return FeeSchedule(rows=tuple(rows), total=total)


FEE_POLICIES: dict[str, Callable[[MandateDocumentInput], FeeSchedule]] = {
    "flat_average": flat_average_schedule,
    "declared": declared_schedule,
}
DEFAULT_FEE_POLICY = "flat_average"


def get_fee_policy(name: str | None) -> Callable[[MandateDocumentInput], FeeSchedule]:
    key = (name or DEFAULT_FEE_POLICY).strip().lower()
    try:
        return FEE_POLICIES[key]
    except KeyError:
        raise ValueError(f"Unknown fee policy: {name}") from None
