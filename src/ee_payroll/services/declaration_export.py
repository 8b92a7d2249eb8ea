"""TSD declaration export to the e-MTA XML document and CSV.

Both serializers are pure: they take a declaration with its rows loaded and
return bytes. Rows are numbered from 1 in the order they are given.
"""

from __future__ import annotations

import csv
import io
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal

from ee_payroll.entities import TSDDeclaration
from ee_payroll.errors import ValidationError
from ee_payroll.schemas import CompanyInfo

TSD_NAMESPACE = "http://www.emta.ee/xml/tsd"
TSD_DOCUMENT_TYPE = "TSD"
TSD_VERSION = "1"
XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'

CSV_HEADER = [
    "row_number",
    "personal_code",
    "first_name",
    "last_name",
    "payment_type",
    "gross_payment",
    "basic_exemption",
    "taxable_amount",
    "income_tax",
    "social_tax",
    "unemployment_ee",
    "unemployment_er",
    "funded_pension",
]


def format_amount(amount: Decimal) -> str:
    """Format with exactly two decimals."""
    return f"{amount:.2f}"


def _sub(parent: ET.Element, tag: str, text: str) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = text
    return element


def _sub_if_positive(parent: ET.Element, tag: str, amount: Decimal) -> None:
    if amount > 0:
        _sub(parent, tag, format_amount(amount))


def to_xml(declaration: TSDDeclaration, company: CompanyInfo) -> bytes:
    """Render the declaration as a TSD XML document (UTF-8, two-space indent)."""
    root = ET.Element("tpiDeklaratsioon", {"xmlns": TSD_NAMESPACE})

    header = ET.SubElement(root, "dpiPais")
    taxpayer = ET.SubElement(header, "dpiMkIsik")
    _sub(taxpayer, "rpiMkIsikKood", company.registry_code)
    _sub(taxpayer, "rpiMkIsikNimi", company.name)
    _sub(header, "dpiPeriood", f"{declaration.period_year:04d}{declaration.period_month:02d}")
    _sub(header, "dpiDokLiik", TSD_DOCUMENT_TYPE)
    _sub(header, "dpiVersioon", TSD_VERSION)

    body = ET.SubElement(root, "dpiKeha")
    _sub(body, "dpsMaksedKokku", format_amount(declaration.total_payments))
    _sub(body, "dpsTm", format_amount(declaration.total_income_tax))
    _sub(body, "dpsSm", format_amount(declaration.total_social_tax))
    _sub_if_positive(body, "dpsTkm", declaration.total_unemployment_employee)
    _sub_if_positive(body, "dpsTkmTootja", declaration.total_unemployment_employer)
    _sub_if_positive(body, "dpsKp", declaration.total_funded_pension)

    annexes = ET.SubElement(root, "dpiLisad")
    if declaration.rows:
        annex1 = ET.SubElement(annexes, "dpiLisa1")
        for number, row in enumerate(declaration.rows, start=1):
            line = ET.SubElement(annex1, "l1Rida")
            _sub(line, "l1Jrk", str(number))
            _sub(line, "l1Isikukood", row.personal_code)
            _sub(line, "l1Eesnimi", row.first_name)
            _sub(line, "l1Perenimi", row.last_name)
            _sub(line, "l1MakseliikKood", row.payment_type)
            _sub(line, "l1Mk", format_amount(row.gross_payment))
            _sub_if_positive(line, "l1Mv", row.basic_exemption)
            _sub(line, "l1Mmv", format_amount(row.taxable_amount))
            _sub(line, "l1Tm", format_amount(row.income_tax))
            _sub(line, "l1Sm", format_amount(row.social_tax))
            _sub_if_positive(line, "l1Tkm", row.unemployment_insurance_employee)
            _sub_if_positive(line, "l1TkmTootja", row.unemployment_insurance_employer)
            _sub_if_positive(line, "l1Kp", row.funded_pension)

    ET.indent(root, space="  ")
    document = XML_HEADER + ET.tostring(root, encoding="unicode") + "\n"
    return document.encode("utf-8")


def to_csv(declaration: TSDDeclaration) -> bytes:
    """Render the declaration rows as semicolon-delimited CSV."""
    output = io.StringIO()
    writer = csv.writer(output, delimiter=";", lineterminator="\n")

    writer.writerow(CSV_HEADER)
    for number, row in enumerate(declaration.rows, start=1):
        writer.writerow([
            number,
            row.personal_code,
            row.first_name,
            row.last_name,
            row.payment_type,
            format_amount(row.gross_payment),
            format_amount(row.basic_exemption),
            format_amount(row.taxable_amount),
            format_amount(row.income_tax),
            format_amount(row.social_tax),
            format_amount(row.unemployment_insurance_employee),
            format_amount(row.unemployment_insurance_employer),
            format_amount(row.funded_pension),
        ])

    return output.getvalue().encode("utf-8")


def build_filename(
    registry_code: str,
    year: int,
    month: int,
    extension: str,
    generated_on: date | None = None,
) -> str:
    """Build ``TSD_<registry>_<YYYYMM>_<YYYYMMDD>.<ext>``."""
    stamp = (generated_on or date.today()).strftime("%Y%m%d")
    return f"TSD_{registry_code}_{year:04d}{month:02d}_{stamp}.{extension}"


class DeclarationExporter:
    """Exports declarations for one company in either supported format."""

    FORMATS = ("xml", "csv")

    def __init__(self, company: CompanyInfo):
        self.company = company

    def export(
        self,
        declaration: TSDDeclaration,
        fmt: str,
        generated_on: date | None = None,
    ) -> tuple[str, bytes]:
        """Return ``(filename, content)`` for the declaration."""
        if fmt == "xml":
            content = to_xml(declaration, self.company)
        elif fmt == "csv":
            content = to_csv(declaration)
        else:
            raise ValidationError(f"unsupported export format: {fmt}", field="format")

        filename = build_filename(
            self.company.registry_code,
            declaration.period_year,
            declaration.period_month,
            fmt,
            generated_on,
        )
        return filename, content
