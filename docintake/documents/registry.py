"""Static catalog of supporting document types.

Titles and descriptions are the German texts shown to applicants. The
``repeatable`` flag marks types that accept more than one file per owner
(e.g. monthly payslips); every other type has exactly one upload slot.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

import icu  # type: ignore[import-untyped]


class DocumentCategory(str, Enum):
    GENERAL = "General"
    APPLICANT = "Applicant"


@dataclass(frozen=True)
class DocumentTypeDescriptor:
    id: str
    title: str
    description: str
    category: DocumentCategory
    repeatable: bool = False


def _general(doc_id: str, title: str, description: str, repeatable: bool = False) -> DocumentTypeDescriptor:
    return DocumentTypeDescriptor(doc_id, title, description, DocumentCategory.GENERAL, repeatable)


def _applicant(doc_id: str, title: str, description: str, repeatable: bool = False) -> DocumentTypeDescriptor:
    return DocumentTypeDescriptor(doc_id, title, description, DocumentCategory.APPLICANT, repeatable)


_CATALOG: tuple[DocumentTypeDescriptor, ...] = (
    _general(
        "meldebescheinigung",
        "Meldebescheinigung",
        "Meldebescheinigung von allen Personen, die das Förderobjekt nach Fertigstellung beziehen sollen",
        repeatable=True,
    ),
    _general(
        "bauzeichnung",
        "Bauzeichnung",
        "Bauzeichnung (im Maßstab 1:100 mit eingezeichneter Möbelstellung)",
        repeatable=True,
    ),
    _general("lageplan", "Lageplan", "Lageplan nach den Vorschriften Bau NRW (2018)"),
    _general("grundbuchblattkopie", "Grundbuchblattkopie", "Grundbuchblattkopie nach neuestem Stand"),
    _general(
        "baugenehmigung_vorbescheid",
        "Baugenehmigung oder Vorbescheid",
        "Baugenehmigung oder Vorbescheid gemäß § 7 BauO NRW (2018)",
    ),
    _general(
        "bergsenkungsGebiet_erklaerung",
        "Erklärung der Bergbaugesellschaft",
        "Erklärung der Bergbaugesellschaft über die Notwendigkeit von baulichen Anpassungs- und Sicherungsmaßnahmen",
    ),
    _general(
        "neubau_kaufvertrag",
        "Grundstückskaufvertrag/Entwurf des Kaufvertrags",
        "Bei Neubau: Grundstückskaufvertrag/Entwurf des Kaufvertrags.",
    ),
    _general("erbbaurechtsvertrag", "Erbbaurechtsvertrag", "Vollständige Kopie des Erbbaurechtsvertrages"),
    _general("kaufvertrag", "Entwurf des Kaufvertrags", "Entwurf des Kaufvertrags"),
    _general(
        "standortbedingte_mehrkosten",
        "Nachweis für standortbedingte Mehrkosten",
        "Gutachten, Rechnungen oder Kostenvoranschläge",
        repeatable=True,
    ),
    _general(
        "haswoodconstructionloan",
        "Nachweis: Zusatzdarlehen für Bauen mit Holz",
        "Nachweis: Zusatzdarlehen für Bauen mit Holz",
    ),
    _general(
        "beg40standard_cert",
        "Nachweis: Zusatzdarlehen für BEG Effizienzstandard 40",
        "Nachweis: Zusatzdarlehen für BEG Effizienzstandard 40",
    ),
    _general("pregnancy-cert", "Schwangerschafts Nachweis", "Nachweis über die Schwangerschaft"),
    _general(
        "marriage_cert",
        "Heiratsurkunde/Lebenspartnerschaftsurkunde",
        "Aktuelle Heiratsurkunde oder Lebenspartnerschaftsurkunde",
    ),
    _general("vollmacht-cert", "Vollmachtsurkunde", "Vollmachtsurkunde für die bevollmächtigte Person/Firma"),
    _general(
        "nachweis_darlehen",
        "Darlehenszusage(n)",
        "Darlehenszusage(n) für alle Fremddarlehen",
        repeatable=True,
    ),
    _general(
        "eigenkapital_nachweis",
        "Nachweis Eigenkapital",
        "Nachweis über verfügbares Eigenkapital (z.B. Bankauszüge, Sparbücher, Wertpapiere)",
        repeatable=True,
    ),
    _applicant(
        "nachweis_disability",
        "Nachweis über die Schwerbehinderteneigenschaft/GdB",
        "Nachweis über die Schwerbehinderteneigenschaft/Grad der Behinderung (GdB)",
    ),
    _applicant("pflegegrad_nachweis", "Nachweis der Pflegebedürftigkeit", "Nachweis über den Pflegegrad"),
    _applicant(
        "lohn_gehaltsbescheinigungen",
        "Lohn-/Gehaltsbescheinigungen",
        "Lohn-/Gehaltsbescheinigungen",
        repeatable=True,
    ),
    _applicant("einkommenssteuerbescheid", "Letzter Einkommenssteuerbescheid", "Letzter Einkommenssteuerbescheid"),
    _applicant(
        "einkommenssteuererklaerung",
        "Letzte Einkommenssteuererklärung",
        "Letzte Einkommenssteuererklärung",
    ),
    _applicant(
        "rentenbescheid",
        "Rentenbescheid/Versorgungsbezüge",
        "Aktueller Rentenbescheid/aktueller Bescheid über Versorgungsbezüge",
        repeatable=True,
    ),
    _applicant("arbeitslosengeldbescheid", "Arbeitslosengeldbescheid", "Arbeitslosengeldbescheid"),
    _applicant(
        "werbungskosten_nachweis",
        "Nachweis Werbungskosten",
        "Nachweis über erhöhte Werbungskosten (z. B. Steuerbescheid, Bestätigung Finanzamt)",
        repeatable=True,
    ),
    _applicant(
        "kinderbetreuungskosten_nachweis",
        "Nachweis Kinderbetreuungskosten",
        "Nachweis über die geleisteten Kinderbetreuungskosten",
        repeatable=True,
    ),
    _applicant(
        "unterhaltsverpflichtung_nachweis",
        "Nachweis Unterhaltsverpflichtung",
        "Nachweis über die gesetzliche Unterhaltsverpflichtung und Höhe der Unterhaltszahlungen",
        repeatable=True,
    ),
    _applicant(
        "unterhaltsleistungen_nachweis",
        "Nachweis Unterhaltsleistungen",
        "Nachweis über erhaltene Unterhaltsleistungen/Unterhaltsvorschuss",
        repeatable=True,
    ),
    _applicant(
        "krankengeld_nachweis",
        "Nachweis Krankengeld",
        "Nachweis über erhaltenes Krankengeld",
        repeatable=True,
    ),
    _applicant(
        "elterngeld_nachweis",
        "Nachweis Elterngeld",
        "Nachweis über erhaltenes Elterngeld",
        repeatable=True,
    ),
    _applicant(
        "guv_euer_nachweis",
        "Gewinn- und Verlustrechnung (GuV)/Einnahmenüberschussrechnung (EÜR)",
        "Gewinn- und Verlustrechnung (GuV)/Einnahmenüberschussrechnung (EÜR)",
        repeatable=True,
    ),
    _applicant(
        "ausbildungsfoerderung_nachweis",
        "Leistungen der Ausbildungsförderung (BAföG, Berufsausbildungsbeihilfe SGB III)",
        "Leistungen der Ausbildungsförderung (BAföG, Berufsausbildungsbeihilfe SGB III) (optional)",
        repeatable=True,
    ),
    _applicant(
        "sonstige_dokumente",
        "Sonstige Dokumente",
        "Weitere relevante Dokumente",
        repeatable=True,
    ),
)

DOCUMENT_TYPES: dict[str, DocumentTypeDescriptor] = {doc.id: doc for doc in _CATALOG}


def get_document_type(doc_id: str) -> DocumentTypeDescriptor | None:
    return DOCUMENT_TYPES.get(doc_id)


def document_title(doc_id: str) -> str:
    """Display title, falling back to the raw id for unknown types."""
    descriptor = DOCUMENT_TYPES.get(doc_id)
    return descriptor.title if descriptor is not None else doc_id


def is_repeatable(doc_id: str) -> bool:
    descriptor = DOCUMENT_TYPES.get(doc_id)
    return descriptor is not None and descriptor.repeatable


@lru_cache(maxsize=8)
def _collator(locale: str) -> icu.Collator:
    collator = icu.Collator.createInstance(icu.Locale(locale))
    # Secondary strength ignores case but keeps accent ordering.
    collator.setStrength(icu.Collator.SECONDARY)
    return collator


def sort_by_title(doc_ids: Iterable[str], locale: str = "de_DE") -> list[str]:
    """Order document ids by display title using the locale's collation.

    Ties (identical titles) fall back to the id so the order is total.
    """
    collator = _collator(locale)
    return sorted(doc_ids, key=lambda doc_id: (collator.getSortKey(document_title(doc_id)), doc_id))
