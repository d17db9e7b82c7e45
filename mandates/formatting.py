"""Text helpers shared by the mandate preview and the PDF composer.

Anything that turns mandate data into visible words lives here, so the
on-screen preview and the generated document cannot drift apart.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from .schemes import SchemeCatalog, resolve_catalog

NOT_SPECIFIED = "Not specified"
NO_SCHEMES_SELECTED = "No specific schemes selected"
DEFAULT_POLICY = "Atmanirbhar Gujarat Scheme 2022"
SUBJECT_PREFIX = "Consulting fees for government subsidy work for"
GENERIC_SCHEME_PHRASE = "government subsidy schemes"
BULLET = "•"


def not_specified(value: object) -> str:
    if value is None:
        return NOT_SPECIFIED
    text = str(value).strip()
    return text or NOT_SPECIFIED


def join_names(names: Sequence[str]) -> str:
    """Join names as ``A``, ``A and B`` or ``A, B, and C``."""
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return f"{', '.join(names[:-1])}, and {names[-1]}"


def format_subject_line(
    schemes: Iterable[str],
    catalog: SchemeCatalog | None = None,
    policy: str | None = None,
) -> str:
    catalog = resolve_catalog(catalog)
    policy_text = f"under the {(policy or '').strip() or DEFAULT_POLICY}"
    names = [catalog.entry(scheme).subject_name for scheme in schemes]
    scheme_text = join_names(names) or GENERIC_SCHEME_PHRASE
    return f"{SUBJECT_PREFIX} {scheme_text} for your new firm {policy_text}."


def scheme_title(scheme: str, catalog: SchemeCatalog | None = None) -> str:
    return resolve_catalog(catalog).entry(scheme).title


def benefit_lines(schemes: Sequence[str], catalog: SchemeCatalog | None = None) -> list[tuple[str, list[str]]]:
    """Numbered scheme titles with their bullet lines, in selection order."""
    catalog = resolve_catalog(catalog)
    entries: list[tuple[str, list[str]]] = []
    for index, scheme in enumerate(schemes):
        entry = catalog.entry(scheme)
        bullets = [f"{BULLET} {line}" for line in entry.description]
        entries.append((f"{index + 1}. {entry.title}", bullets))
    return entries


def numbered(items: Iterable[str]) -> list[str]:
    return [f"{index}. {item}" for index, item in enumerate(items, 1)]


def format_document_date(value: date) -> str:
    return value.strftime("%d-%m-%Y")


def mandate_filename(client_name: str, value: date) -> str:
    clean_name = re.sub(r"[^a-zA-Z0-9]", "_", client_name or "")
    return f"Mandate_{clean_name}_{format_document_date(value)}.pdf"


def format_inr(amount: Decimal | int | float) -> str:
    """
    Indian-style comma formatting.
    350000 -> 3,50,000
    """
    try:
        n = int(Decimal(str(amount)).to_integral_value())
    except Exception:
        return str(amount)
    sign = "-" if n < 0 else ""
    s = str(abs(n))
    if len(s) <= 3:
        return f"{sign}{s}"
    last3 = s[-3:]
    rest = s[:-3]
    parts = []
    while len(rest) > 2:
        parts.insert(0, rest[-2:])
        rest = rest[:-2]
    if rest:
        parts.insert(0, rest)
    return f"{sign}{','.join(parts)},{last3}"


def format_rupees(amount: Decimal | int | float) -> str:
    return f"Rs. {format_inr(amount)}"


def format_percentage(value: Decimal | int | float) -> str:
    number = Decimal(str(value)).normalize()
    if number == number.to_integral_value():
        number = number.quantize(Decimal(1))
    return f"{number}%"
