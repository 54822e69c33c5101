from psycopg.types.json import Jsonb

from docintake.database.connection import get_connection
from docintake.documents.exceptions import ApplicantNotFoundError
from docintake.documents.models import UploadedFiles
from docintake.documents.status import carry_unparsed, parse_status, serialize_status


class DocumentStatusRepository:
    """Reads and writes the uploaded-file map in user_data.document_status."""

    def get(self, user_id: str) -> UploadedFiles:
        """Fetch the latest uploaded-file map.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT document_status FROM user_data WHERE id = %s",
                    (user_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise ApplicantNotFoundError(f"User {user_id} not found")
        return parse_status(row[0])

    def save(self, user_id: str, uploaded: UploadedFiles) -> None:
        """Overwrite the uploaded-file map. Empty maps are stored as NULL.

        Stored entries the parser cannot read are kept as they are. The row
        is locked between reading them and writing the new map.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT document_status FROM user_data WHERE id = %s FOR UPDATE",
                    (user_id,),
                )
                row = cur.fetchone()
                if row is None:
                    raise ApplicantNotFoundError(f"User {user_id} not found")

                payload = carry_unparsed(serialize_status(uploaded), row[0])
                cur.execute(
                    """
                    UPDATE user_data
                    SET document_status = %s, updated_at = NOW()
                    WHERE id = %s
                    """,
                    (Jsonb(payload) if payload else None, user_id),
                )
            conn.commit()
