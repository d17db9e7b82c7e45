from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping


@dataclass(frozen=True)
class SchemeEntry:
    title: str
    short_name: str = ""
    description: tuple[str, ...] = field(default_factory=tuple)

    @property
    def subject_name(self) -> str:
        return self.short_name or self.title


class SchemeCatalog(Mapping[str, SchemeEntry]):
    """Read-only lookup of scheme identifiers to catalog entries.

    A miss never raises from :meth:`entry`; the identifier itself becomes the
    title and the entry carries no description lines.
    """

    def __init__(self, entries: Mapping[str, SchemeEntry]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, key: str) -> SchemeEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, identifier: str) -> SchemeEntry:
        found = self._entries.get(identifier)
        if found is None:
            return SchemeEntry(title=identifier, short_name=identifier)
        return found

    def choices(self) -> list[tuple[str, str]]:
        return [(key, value.title) for key, value in self._entries.items()]


def build_catalog(rows: Iterable[tuple[str, str, str, Iterable[str]]]) -> SchemeCatalog:
    return SchemeCatalog(
        {
            identifier: SchemeEntry(title=title, short_name=short_name, description=tuple(lines))
            for identifier, title, short_name, lines in rows
        }
    )


DEFAULT_SCHEME_CATALOG = build_catalog(
    [
        (
            "Interest Subsidy",
            "Interest Subsidy",
            "Interest Subsidy",
            [
                "Interest subsidy @ 6% per annum on term loan sanctioned by Bank/Financial Institution.",
                "Maximum subsidy amount: Rs. 25 Lakhs per unit.",
                "Subsidy is provided for a maximum period of 5 years from the date of disbursement.",
                "The subsidy is credited directly to the loan account of the beneficiary.",
            ],
        ),
        (
            "Power Connection Charges",
            "Power Connection Charges (PCC)",
            "Power Connection Charges benefits (PCC)",
            [
                "Reimbursement of 100% of the power connection charges paid to DISCOM.",
                "Maximum reimbursement amount: Rs. 10 Lakhs per unit.",
                "Applicable for new power connections of 11 KV and above.",
                "Reimbursement is provided after successful connection and payment of charges.",
            ],
        ),
        (
            "Electric Duty Exemption",
            "Electric Duty Exemption (EDE)",
            "Electricity Duty Exemption (EDE)",
            [
                "Exemption from payment of electricity duty for a period of 5 years.",
                "Applicable for new industrial units with power connection of 11 KV and above.",
                "Exemption is provided from the date of commencement of commercial production.",
                "Maximum exemption limit: Rs. 50 Lakhs per unit.",
            ],
        ),
        (
            "SGST Subsidy",
            "SGST Subsidy",
            "SGST Subsidy",
            [
                "Reimbursement of State Goods and Services Tax (SGST) paid on capital investment.",
                "Maximum reimbursement amount: Rs. 15 Lakhs per unit.",
                "Applicable for new industrial units with minimum investment of Rs. 50 Lakhs.",
                "Reimbursement is provided in 5 equal annual installments.",
            ],
        ),
        (
            "Rent",
            "Rent Subsidy",
            "Rent Subsidy",
            [
                "Rent subsidy @ Rs. 50 per sq. ft. per month for industrial plots.",
                "Maximum subsidy period: 5 years from the date of allotment.",
                "Applicable for new industrial units in GIDC areas.",
                "Subsidy is credited directly to the unit's bank account.",
            ],
        ),
        (
            "Solar Subsidy",
            "Solar Subsidy",
            "Solar Subsidy",
            [
                "Subsidy for installation of solar power plants.",
                "Maximum subsidy amount: Rs. 2 Lakhs per KW of installed capacity.",
                "Applicable for solar power plants of minimum 1 KW capacity.",
                "Subsidy is provided after successful commissioning and grid connection.",
            ],
        ),
        (
            "Capital Subsidy",
            "Capital Subsidy",
            "Capital Subsidy",
            [
                "Capital subsidy on eligible term loan as per taluka category.",
                "Category I: 25% of term loan, up to Rs. 35 Lakhs.",
                "Category II: 20% of term loan, up to Rs. 30 Lakhs.",
                "Category III: 10% of term loan, up to Rs. 10 Lakhs.",
                "One time benefit, claimed within 1 year from first disbursement.",
            ],
        ),
    ]
)


def resolve_catalog(catalog: SchemeCatalog | None) -> SchemeCatalog:
    """Fall back to the built-in catalog only when none was passed; an empty one is kept."""
    return catalog if catalog is not None else DEFAULT_SCHEME_CATALOG
