from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

GENERAL_KEY = "general"
MAIN_APPLICANT_KEY = "hauptantragsteller"
ADDITIONAL_APPLICANT_PREFIX = "applicant_"

OptionalSelection = dict[str, list[str]]


class ApplicantKind(str, Enum):
    GENERAL = "general"
    MAIN = "hauptantragsteller"
    ADDITIONAL = "applicant"


@dataclass(frozen=True)
class ApplicantRef:
    """Identifies a document owner: the general bucket, the main applicant,
    or an additional applicant addressed by a stable UUID."""

    kind: ApplicantKind
    uuid: str | None = None

    @classmethod
    def general(cls) -> "ApplicantRef":
        return cls(ApplicantKind.GENERAL)

    @classmethod
    def main(cls) -> "ApplicantRef":
        return cls(ApplicantKind.MAIN)

    @classmethod
    def additional(cls, uuid: str) -> "ApplicantRef":
        if not uuid:
            raise ValueError("Additional applicants require a non-empty uuid")
        return cls(ApplicantKind.ADDITIONAL, uuid)

    @classmethod
    def from_key(cls, key: str) -> "ApplicantRef":
        """Parse a persisted applicant key.

        Raises:
            ValueError: if the key is not one of the known shapes.
        """
        if key == GENERAL_KEY:
            return cls.general()
        if key == MAIN_APPLICANT_KEY:
            return cls.main()
        if key.startswith(ADDITIONAL_APPLICANT_PREFIX):
            return cls.additional(key[len(ADDITIONAL_APPLICANT_PREFIX):])
        raise ValueError(f"Unknown applicant key '{key}'")

    @property
    def key(self) -> str:
        if self.kind is ApplicantKind.ADDITIONAL:
            return f"{ADDITIONAL_APPLICANT_PREFIX}{self.uuid}"
        return self.kind.value


@dataclass
class RequiredDocumentSet:
    """Derived requirement lists. Recomputed on every load, never persisted."""

    general: list[str] = field(default_factory=list)
    main: list[str] = field(default_factory=list)
    per_applicant: dict[str, list[str]] = field(default_factory=dict)

    def for_key(self, applicant_key: str) -> list[str]:
        if applicant_key == GENERAL_KEY:
            return self.general
        if applicant_key == MAIN_APPLICANT_KEY:
            return self.main
        if applicant_key.startswith(ADDITIONAL_APPLICANT_PREFIX):
            uuid = applicant_key[len(ADDITIONAL_APPLICANT_PREFIX):]
            return self.per_applicant.get(uuid, [])
        return []

    def as_key_map(self) -> dict[str, list[str]]:
        result = {GENERAL_KEY: list(self.general), MAIN_APPLICANT_KEY: list(self.main)}
        for uuid, doc_ids in self.per_applicant.items():
            result[f"{ADDITIONAL_APPLICANT_PREFIX}{uuid}"] = list(doc_ids)
        return result

    def is_empty(self) -> bool:
        return not self.general and not self.main and not any(self.per_applicant.values())


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str) and raw:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid uploadedAt value: {raw!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: datetime) -> str:
    """UTC, millisecond precision, ``Z`` suffix: ``2024-05-01T10:00:00.000Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class UploadedFile:
    """One uploaded file as recorded in the document status store."""

    file_name: str
    storage_path: str
    uploaded_at: datetime
    document_type_id: str
    applicant_type: str
    applicant_uuid: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "UploadedFile":
        """Build from the persisted JSON shape.

        Raises:
            ValueError: if required keys are missing or malformed.
        """
        file_name = raw.get("fileName")
        storage_path = raw.get("filePath")
        document_type_id = raw.get("documentTypeId")
        if not file_name or not storage_path or not document_type_id:
            raise ValueError("Uploaded file entry requires fileName, filePath and documentTypeId")
        return cls(
            file_name=str(file_name),
            storage_path=str(storage_path),
            uploaded_at=_parse_timestamp(raw.get("uploadedAt")),
            document_type_id=str(document_type_id),
            applicant_type=str(raw.get("applicantType") or ""),
            applicant_uuid=raw.get("applicantUuid") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fileName": self.file_name,
            "filePath": self.storage_path,
            "uploadedAt": format_timestamp(self.uploaded_at),
            "documentTypeId": self.document_type_id,
            "applicantType": self.applicant_type,
            "uploaded": True,
        }
        if self.applicant_uuid:
            payload["applicantUuid"] = self.applicant_uuid
        return payload

    def matches(self, file_name: str, uploaded_at: datetime) -> bool:
        return self.file_name == file_name and self.uploaded_at == uploaded_at


UploadedFiles = dict[str, dict[str, list[UploadedFile]]]


@dataclass(frozen=True)
class Slot:
    """One materialized upload position. Disposable, never persisted."""

    slot_id: str
    document_type_id: str
    applicant_key: str
    is_main_slot: bool
    is_required: bool
    file: UploadedFile | None = None

    @property
    def applicant_uuid(self) -> str | None:
        return ApplicantRef.from_key(self.applicant_key).uuid

    @property
    def has_file(self) -> bool:
        return self.file is not None


@dataclass(frozen=True)
class SlotSection:
    """All slots of one applicant, in presentation order."""

    applicant_key: str
    display_name: str
    slots: tuple[Slot, ...] = ()

    @property
    def is_placeholder(self) -> bool:
        return not self.slots


@dataclass(frozen=True)
class IncomeFacts:
    """Income and expense flags of one person's financial self-disclosure."""

    has_salary_income: bool = False
    is_earning_regular_income: bool = False
    has_rent_income: bool = False
    has_pension_income: bool = False
    has_unemployment_income: bool = False
    advertising_costs: float = 0.0
    childcare_costs: float = 0.0
    pays_maintenance: bool = False
    has_taxfree_maintenance_income: bool = False
    has_taxable_maintenance_income: bool = False
    other_income_types: tuple[str, ...] = ()
    has_parental_benefit_income: bool = False
    has_business_income: bool = False
    has_agriculture_income: bool = False


@dataclass(frozen=True)
class PersonFacts:
    uuid: str
    first_name: str = ""
    last_name: str = ""
    disability_grade: float = 0.0
    care_grade: float = 0.0
    no_income: bool = False
    not_household: bool = False


@dataclass(frozen=True)
class ObjectFacts:
    subsidy_variant: str = ""
    ownership_status: str = ""
    erbbaurecht: bool = False
    building_permit_required: bool = False
    mining_subsidence_zone: bool = False
    barrier_free: bool = False
    has_location_cost_loan: bool = False
    has_wood_construction_loan: bool = False
    has_efficiency_40_standard: bool = False


@dataclass(frozen=True)
class LoanEntry:
    lender: str = ""
    nominal_amount: str = ""
    interest_rate: str = ""
    disbursement: str = ""
    repayment: str = ""

    def has_data(self) -> bool:
        return any(
            value.strip()
            for value in (
                self.lender,
                self.nominal_amount,
                self.interest_rate,
                self.disbursement,
                self.repayment,
            )
        )


@dataclass(frozen=True)
class FinancePlanFacts:
    loans: tuple[LoanEntry, ...] | None = None
    barrier_free_loan_amount: float = 0.0
    location_cost_loan_amount: float = 0.0
    wood_construction_loan_amount: float = 0.0
    efficiency_40_loan_amount: float = 0.0


@dataclass(frozen=True)
class ApplicationFacts:
    """Everything requirement derivation reads. Absent facts mean false/empty."""

    is_pregnant: bool = False
    is_married: bool = False
    has_authorized_person: bool = False
    has_supplementary_loan: bool = False
    main_first_name: str = ""
    main_last_name: str = ""
    main_disability_grade: float = 0.0
    main_care_grade: float = 0.0
    main_no_income: bool = False
    main_income: IncomeFacts | None = None
    additional_applicants: tuple[PersonFacts, ...] = ()
    additional_income: dict[str, IncomeFacts] = field(default_factory=dict)
    object: ObjectFacts | None = None
    finance_plan: FinancePlanFacts | None = None

    @property
    def has_financial_data(self) -> bool:
        return self.main_income is not None


@dataclass(frozen=True)
class FormProgress:
    """Completion percentages of the application forms (0-100 each)."""

    hauptantrag: float = 0
    einkommenserklaerung: float = 0
    selbstauskunft: float = 0
    haushaltsauskunft: float = 0
    selbsthilfe: float = 0
    berechnung_din277: float = 0
    wofiv: float = 0

    @property
    def weighted_forms(self) -> tuple[float, float, float]:
        return (self.hauptantrag, self.einkommenserklaerung, self.selbstauskunft)

    @property
    def bonus_forms(self) -> tuple[float, float, float, float]:
        return (self.haushaltsauskunft, self.selbsthilfe, self.berechnung_din277, self.wofiv)
