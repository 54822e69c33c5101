"""Derives which supporting documents each applicant has to submit.

Every rule is a predicate over ApplicationFacts that contributes at most one
document id (rental income contributes the tax assessment and the tax
return). Loan documents need both the qualitative flag and a positive
amount in the finance plan.
"""

from collections.abc import Callable

from docintake.documents.income import sick_pay_matcher
from docintake.documents.models import (
    ApplicationFacts,
    FinancePlanFacts,
    IncomeFacts,
    ObjectFacts,
    RequiredDocumentSet,
)
from docintake.documents.registry import sort_by_title

_PERMIT_VARIANTS = frozenset(
    {"neubau", "neubau-wohnung", "ersterwerb-wohnung", "ersterwerb-eigenheim"}
)
_MINING_VARIANTS = _PERMIT_VARIANTS | {"nutzungsaenderung"}

GeneralRule = Callable[[ApplicationFacts, ObjectFacts, FinancePlanFacts], bool]
IncomeRule = Callable[[IncomeFacts], bool]


def _is_new_build(obj: ObjectFacts) -> bool:
    return "neubau" in obj.subsidy_variant


def _is_first_purchase(obj: ObjectFacts) -> bool:
    return "ersterwerb" in obj.subsidy_variant


def _needs_loan_confirmation(facts: ApplicationFacts, _obj: ObjectFacts, plan: FinancePlanFacts) -> bool:
    if plan.loans:
        return any(loan.has_data() for loan in plan.loans)
    return facts.has_supplementary_loan


def _needs_building_drawing(_facts: ApplicationFacts, obj: ObjectFacts, plan: FinancePlanFacts) -> bool:
    if _is_new_build(obj):
        return True
    return _is_first_purchase(obj) and obj.barrier_free and plan.barrier_free_loan_amount > 0


GENERAL_RULES: tuple[tuple[str, GeneralRule], ...] = (
    ("meldebescheinigung", lambda f, o, p: True),
    ("eigenkapital_nachweis", lambda f, o, p: True),
    ("nachweis_darlehen", _needs_loan_confirmation),
    ("bauzeichnung", _needs_building_drawing),
    ("lageplan", lambda f, o, p: _is_new_build(o)),
    ("grundbuchblattkopie", lambda f, o, p: bool(o.ownership_status)),
    (
        "baugenehmigung_vorbescheid",
        lambda f, o, p: o.subsidy_variant in _PERMIT_VARIANTS and o.building_permit_required,
    ),
    (
        "bergsenkungsGebiet_erklaerung",
        lambda f, o, p: o.subsidy_variant in _MINING_VARIANTS and o.mining_subsidence_zone,
    ),
    ("neubau_kaufvertrag", lambda f, o, p: _is_new_build(o)),
    ("erbbaurechtsvertrag", lambda f, o, p: o.erbbaurecht),
    (
        "kaufvertrag",
        lambda f, o, p: _is_first_purchase(o) or "bestandserwerb" in o.subsidy_variant,
    ),
    (
        "standortbedingte_mehrkosten",
        lambda f, o, p: (_is_new_build(o) or _is_first_purchase(o))
        and o.has_location_cost_loan
        and p.location_cost_loan_amount > 0,
    ),
    (
        "haswoodconstructionloan",
        lambda f, o, p: o.has_wood_construction_loan and p.wood_construction_loan_amount > 0,
    ),
    (
        "beg40standard_cert",
        lambda f, o, p: (_is_new_build(o) or _is_first_purchase(o))
        and o.has_efficiency_40_standard
        and p.efficiency_40_loan_amount > 0,
    ),
    ("pregnancy-cert", lambda f, o, p: f.is_pregnant),
    ("marriage_cert", lambda f, o, p: f.is_married),
    ("vollmacht-cert", lambda f, o, p: f.has_authorized_person),
)


def _has_salary(income: IncomeFacts) -> bool:
    return income.has_salary_income or income.is_earning_regular_income


INCOME_RULES: tuple[tuple[str, IncomeRule], ...] = (
    ("lohn_gehaltsbescheinigungen", _has_salary),
    ("einkommenssteuerbescheid", lambda i: i.has_rent_income),
    ("einkommenssteuererklaerung", lambda i: i.has_rent_income),
    ("rentenbescheid", lambda i: i.has_pension_income),
    ("arbeitslosengeldbescheid", lambda i: i.has_unemployment_income),
    ("werbungskosten_nachweis", lambda i: _has_salary(i) and i.advertising_costs > 0),
    ("kinderbetreuungskosten_nachweis", lambda i: i.childcare_costs > 0),
    ("unterhaltsverpflichtung_nachweis", lambda i: i.pays_maintenance),
    (
        "unterhaltsleistungen_nachweis",
        lambda i: i.has_taxfree_maintenance_income or i.has_taxable_maintenance_income,
    ),
    ("krankengeld_nachweis", lambda i: sick_pay_matcher.any_match(i.other_income_types)),
    ("elterngeld_nachweis", lambda i: i.has_parental_benefit_income),
    ("guv_euer_nachweis", lambda i: i.has_business_income or i.has_agriculture_income),
)


def _unique(doc_ids: list[str]) -> list[str]:
    return list(dict.fromkeys(doc_ids))


def _health_documents(disability_grade: float, care_grade: float) -> list[str]:
    result = []
    if disability_grade > 0:
        result.append("nachweis_disability")
    if care_grade > 0:
        result.append("pflegegrad_nachweis")
    return result


def _income_documents(income: IncomeFacts) -> list[str]:
    return [doc_id for doc_id, rule in INCOME_RULES if rule(income)]


def derive_requirements(facts: ApplicationFacts, locale: str = "de_DE") -> RequiredDocumentSet:
    """Pure, deterministic mapping from facts to per-applicant document lists.

    Lists are de-duplicated and sorted by localized display title.
    """
    obj = facts.object or ObjectFacts()
    plan = facts.finance_plan or FinancePlanFacts()

    general = [doc_id for doc_id, rule in GENERAL_RULES if rule(facts, obj, plan)]

    main = _health_documents(facts.main_disability_grade, facts.main_care_grade)
    if facts.main_income is not None and not facts.main_no_income:
        main.extend(_income_documents(facts.main_income))

    per_applicant: dict[str, list[str]] = {}
    for person in facts.additional_applicants:
        docs = _health_documents(person.disability_grade, person.care_grade)
        income = facts.additional_income.get(person.uuid)
        if income is not None and not person.no_income and not person.not_household:
            docs.extend(_income_documents(income))
        per_applicant[person.uuid] = docs

    return RequiredDocumentSet(
        general=sort_by_title(_unique(general), locale),
        main=sort_by_title(_unique(main), locale),
        per_applicant={
            uuid: sort_by_title(_unique(docs), locale) for uuid, docs in per_applicant.items()
        },
    )
