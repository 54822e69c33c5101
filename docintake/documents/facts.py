"""Builds ApplicationFacts from raw store rows.

Every reader here is total: missing rows, NULL columns, strings where
numbers are expected and legacy list-shaped JSON all degrade to the
"false/empty" value instead of raising.
"""

import re
from typing import Any

from docintake.documents.models import (
    ApplicationFacts,
    FinancePlanFacts,
    IncomeFacts,
    LoanEntry,
    ObjectFacts,
    PersonFacts,
)

_LEADING_NUMBER_RE = re.compile(r"^[-+]?\d+(?:\.\d+)?")

Row = dict[str, Any] | None


def to_number(value: Any) -> float:
    """Lenient numeric read: ``"2,5"`` -> 2.5, ``"50 %"`` -> 50.0, junk -> 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(value.strip().replace(",", "."))
        return float(match.group(0)) if match else 0.0
    return 0.0


def is_true(value: Any) -> bool:
    """Only a real boolean ``True`` counts; ``"true"`` or ``1`` do not."""
    return value is True


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_additional_applicants(raw: Any) -> dict[str, dict[str, Any]]:
    """Return additional applicants as an insertion-ordered UUID map.

    Older records store a list; those entries are keyed by their ``id`` or,
    lacking one, by ``legacy_{index}``.
    """
    if isinstance(raw, list):
        result: dict[str, dict[str, Any]] = {}
        for index, person in enumerate(raw):
            if not isinstance(person, dict):
                continue
            person_uuid = str(person.get("id") or f"legacy_{index}")
            result[person_uuid] = {**person, "id": person_uuid}
        return result
    if isinstance(raw, dict):
        return {str(uuid): person for uuid, person in raw.items() if isinstance(person, dict)}
    return {}


def normalize_additional_financials(raw: Any, person_uuids: list[str]) -> dict[str, dict[str, Any]]:
    """Return per-applicant financial data keyed by UUID.

    A legacy list is matched to applicants by position.
    """
    if isinstance(raw, list):
        return {
            person_uuids[index]: financials
            for index, financials in enumerate(raw)
            if index < len(person_uuids) and isinstance(financials, dict)
        }
    if isinstance(raw, dict):
        return {str(uuid): fin for uuid, fin in raw.items() if isinstance(fin, dict)}
    return {}


def _other_income_types(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(
        entry["type"]
        for entry in raw
        if isinstance(entry, dict) and isinstance(entry.get("type"), str)
    )


def build_income_facts(row: dict[str, Any]) -> IncomeFacts:
    return IncomeFacts(
        has_salary_income=is_true(row.get("hasSalaryIncome")),
        is_earning_regular_income=is_true(row.get("isEarningRegularIncome")),
        has_rent_income=is_true(row.get("hasrentincome")),
        has_pension_income=is_true(row.get("haspensionincome")),
        has_unemployment_income=is_true(row.get("hasablgincome")),
        advertising_costs=to_number(row.get("werbungskosten")),
        childcare_costs=to_number(row.get("kinderbetreuungskosten")),
        pays_maintenance=is_true(row.get("ispayingunterhalt")),
        has_taxfree_maintenance_income=is_true(row.get("hastaxfreeunterhaltincome")),
        has_taxable_maintenance_income=is_true(row.get("hastaxableunterhaltincome")),
        other_income_types=_other_income_types(row.get("othermonthlynetincome")),
        has_parental_benefit_income=is_true(row.get("haselterngeldincome")),
        has_business_income=is_true(row.get("hasbusinessincome")),
        has_agriculture_income=is_true(row.get("hasagricultureincome")),
    )


def build_person_facts(uuid: str, raw: dict[str, Any]) -> PersonFacts:
    return PersonFacts(
        uuid=uuid,
        first_name=_text(raw.get("firstName")),
        last_name=_text(raw.get("lastName")),
        disability_grade=to_number(raw.get("behinderungsgrad")),
        care_grade=to_number(raw.get("pflegegrad")),
        no_income=is_true(raw.get("noIncome")),
        not_household=is_true(raw.get("notHousehold")),
    )


def build_object_facts(row: Row) -> ObjectFacts | None:
    if not row:
        return None
    return ObjectFacts(
        subsidy_variant=_text(row.get("foerderVariante")),
        ownership_status=_text(row.get("eigentumsverhaeltnis")) or (
            "ja" if is_true(row.get("eigentumsverhaeltnis")) else ""
        ),
        erbbaurecht=is_true(row.get("erbbaurecht")),
        building_permit_required=is_true(row.get("baugenehmigung_erforderlich")),
        mining_subsidence_zone=is_true(row.get("bergsenkungsGebiet")),
        barrier_free=is_true(row.get("barrierefrei")),
        has_location_cost_loan=is_true(row.get("haslocationcostloan")),
        has_wood_construction_loan=is_true(row.get("haswoodconstructionloan")),
        has_efficiency_40_standard=is_true(row.get("beg_effizienzhaus_40_standard")),
    )


def _loan_entries(raw: Any) -> tuple[LoanEntry, ...] | None:
    if not isinstance(raw, list):
        return None
    return tuple(
        LoanEntry(
            lender=_text(entry.get("darlehenGeber")),
            nominal_amount=_text(entry.get("nennbetrag")),
            interest_rate=_text(entry.get("zinssatz")),
            disbursement=_text(entry.get("auszahlung")),
            repayment=_text(entry.get("tilgung")),
        )
        for entry in raw
        if isinstance(entry, dict)
    )


def build_finance_plan_facts(row: Row) -> FinancePlanFacts | None:
    if not row:
        return None
    return FinancePlanFacts(
        loans=_loan_entries(row.get("fremddarlehen")),
        barrier_free_loan_amount=to_number(row.get("zusatzdarlehen_barrierefreiheit_nennbetrag")),
        location_cost_loan_amount=to_number(
            row.get("zusatzdarlehen_standortbedingte_mehrkosten_nennbetrag")
        ),
        wood_construction_loan_amount=to_number(row.get("zusatzdarlehen_bauen_mit_holz_nennbetrag")),
        efficiency_40_loan_amount=to_number(row.get("zusatzdarlehen_effizienzhaus40_nennbetrag")),
    )


def build_facts(
    user_row: Row,
    object_row: Row = None,
    financial_row: Row = None,
    finance_structure_row: Row = None,
) -> ApplicationFacts:
    """Assemble ApplicationFacts from the four store rows (any may be None)."""
    user = user_row or {}
    persons = normalize_additional_applicants(user.get("weitere_antragstellende_personen"))
    additional = tuple(build_person_facts(uuid, raw) for uuid, raw in persons.items())

    main_income: IncomeFacts | None = None
    additional_income: dict[str, IncomeFacts] = {}
    if financial_row:
        main_income = build_income_facts(financial_row)
        financials = normalize_additional_financials(
            financial_row.get("additional_applicants_financials"),
            list(persons),
        )
        additional_income = {uuid: build_income_facts(fin) for uuid, fin in financials.items()}

    return ApplicationFacts(
        is_pregnant=is_true(user.get("ispregnant")),
        is_married=is_true(user.get("is_married")),
        has_authorized_person=is_true(user.get("hasauthorizedperson")),
        has_supplementary_loan=is_true(user.get("hassupplementaryloan")),
        main_first_name=_text(user.get("firstname")),
        main_last_name=_text(user.get("lastname")),
        main_disability_grade=to_number(user.get("main_behinderungsgrad")),
        main_care_grade=to_number(user.get("main_pflegegrad")),
        main_no_income=is_true(user.get("noIncome")),
        main_income=main_income,
        additional_applicants=additional,
        additional_income=additional_income,
        object=build_object_facts(object_row),
        finance_plan=build_finance_plan_facts(finance_structure_row),
    )
