from psycopg.rows import dict_row

from docintake.database.connection import get_connection
from docintake.database.models import ProgressRecord
from docintake.documents.exceptions import ApplicantNotFoundError
from docintake.documents.models import FormProgress


class ProgressRepository:
    """Form completion percentages and the overall application score."""

    def get(self, user_id: str) -> ProgressRecord:
        """Fetch all progress columns; NULLs read as 0.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT hauptantrag_progress, einkommenserklarung_progress,
                           selbstauskunft_progress, haushaltsauskunft_progress,
                           selbsthilfe_progress, berechnung_din277_progress,
                           wofiv_progress, application_progress
                    FROM user_data
                    WHERE id = %s
                    """,
                    (user_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise ApplicantNotFoundError(f"User {user_id} not found")

        return ProgressRecord(
            forms=FormProgress(
                hauptantrag=row["hauptantrag_progress"] or 0,
                einkommenserklaerung=row["einkommenserklarung_progress"] or 0,
                selbstauskunft=row["selbstauskunft_progress"] or 0,
                haushaltsauskunft=row["haushaltsauskunft_progress"] or 0,
                selbsthilfe=row["selbsthilfe_progress"] or 0,
                berechnung_din277=row["berechnung_din277_progress"] or 0,
                wofiv=row["wofiv_progress"] or 0,
            ),
            application_progress=row["application_progress"],
        )

    def save_overall(self, user_id: str, value: int) -> None:
        """Persist the overall application score.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE user_data
                    SET application_progress = %s, updated_at = NOW()
                    WHERE id = %s
                    """,
                    (value, user_id),
                )
                if cur.rowcount == 0:
                    raise ApplicantNotFoundError(f"User {user_id} not found")
            conn.commit()
