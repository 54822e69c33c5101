from typing import Any

from psycopg.types.json import Jsonb

from docintake.database.connection import get_connection
from docintake.documents.exceptions import ApplicantNotFoundError
from docintake.documents.models import OptionalSelection


def _parse_selection(raw: Any) -> OptionalSelection:
    if not isinstance(raw, dict):
        return {}
    return {
        str(applicant_key): [doc_id for doc_id in doc_ids if isinstance(doc_id, str)]
        for applicant_key, doc_ids in raw.items()
        if isinstance(doc_ids, list)
    }


class OptionalSelectionRepository:
    """Reads and writes user-chosen optional documents (user_data.additional_documents)."""

    def get(self, user_id: str) -> OptionalSelection:
        """Fetch the optional selection map.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT additional_documents FROM user_data WHERE id = %s",
                    (user_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise ApplicantNotFoundError(f"User {user_id} not found")
        return _parse_selection(row[0])

    def save(self, user_id: str, selection: OptionalSelection) -> None:
        """Overwrite the optional selection map. Empty maps are stored as NULL.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE user_data
                    SET additional_documents = %s, updated_at = NOW()
                    WHERE id = %s
                    """,
                    (Jsonb(selection) if selection else None, user_id),
                )
                if cur.rowcount == 0:
                    raise ApplicantNotFoundError(f"User {user_id} not found")
            conn.commit()
