from dataclasses import dataclass

from docintake.documents.exceptions import UnknownApplicantError
from docintake.documents.models import (
    ApplicantKind,
    ApplicantRef,
    ApplicationFacts,
    PersonFacts,
)

GENERAL_SECTION_TITLE = "Allgemeine Dokumente"
MAIN_APPLICANT_FALLBACK_NAME = "Hauptantragsteller"


@dataclass(frozen=True)
class ApplicantEntry:
    ref: ApplicantRef
    display_name: str
    number: int | None = None


class ApplicantDirectory:
    """Resolves the applicants of one application and their display names.

    Additional applicants are identified by UUID only. Their display number
    (starting at 2, the main applicant being person 1) follows insertion
    order and is recomputed on every read, so removing a person renumbers
    the others without moving any documents.
    """

    def __init__(
        self,
        additional: tuple[PersonFacts, ...] = (),
        main_first_name: str = "",
        main_last_name: str = "",
    ) -> None:
        self._additional = {person.uuid: person for person in additional}
        self._main_name = f"{main_first_name} {main_last_name}".strip()
        if not (main_first_name and main_last_name):
            self._main_name = MAIN_APPLICANT_FALLBACK_NAME

    @classmethod
    def from_facts(cls, facts: ApplicationFacts) -> "ApplicantDirectory":
        return cls(
            additional=facts.additional_applicants,
            main_first_name=facts.main_first_name,
            main_last_name=facts.main_last_name,
        )

    @property
    def additional_uuids(self) -> list[str]:
        return list(self._additional)

    def number_of(self, uuid: str) -> int:
        """Display number of an additional applicant (2, 3, ...)."""
        try:
            return self.additional_uuids.index(uuid) + 2
        except ValueError:
            raise UnknownApplicantError(f"Applicant {uuid} not found") from None

    def contains(self, ref: ApplicantRef) -> bool:
        if ref.kind is ApplicantKind.ADDITIONAL:
            return ref.uuid in self._additional
        return True

    def contains_key(self, applicant_key: str) -> bool:
        try:
            return self.contains(ApplicantRef.from_key(applicant_key))
        except ValueError:
            return False

    def display_name(self, ref: ApplicantRef) -> str:
        if ref.kind is ApplicantKind.GENERAL:
            return GENERAL_SECTION_TITLE
        if ref.kind is ApplicantKind.MAIN:
            return self._main_name
        person = self._additional.get(ref.uuid or "")
        if person is None:
            raise UnknownApplicantError(f"Applicant {ref.uuid} not found")
        if person.first_name and person.last_name:
            return f"{person.first_name} {person.last_name}"
        return f"Person {self.number_of(person.uuid)}"

    def entries(self) -> list[ApplicantEntry]:
        """General bucket, main applicant, then additional applicants in order."""
        result = [
            ApplicantEntry(ApplicantRef.general(), GENERAL_SECTION_TITLE),
            ApplicantEntry(ApplicantRef.main(), self._main_name, 1),
        ]
        for number, uuid in enumerate(self._additional, start=2):
            ref = ApplicantRef.additional(uuid)
            result.append(ApplicantEntry(ref, self.display_name(ref), number))
        return result
