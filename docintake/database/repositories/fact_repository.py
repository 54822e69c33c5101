from typing import Any

import psycopg
from psycopg.rows import dict_row

from docintake.database.connection import get_connection
from docintake.documents.exceptions import ApplicantNotFoundError
from docintake.documents.facts import build_facts
from docintake.documents.models import ApplicationFacts


class FactRepository:
    """Read-only access to applicant, object and finance facts of a user."""

    def load(self, user_id: str) -> ApplicationFacts:
        """Load every fact requirement derivation needs.

        Object, income and finance plan rows are optional; a missing
        user_data row is not.

        Raises:
            ApplicantNotFoundError: if no user_data row exists for the user.
        """
        with get_connection() as conn:
            user_row = self._fetch_one(
                conn,
                """
                SELECT ispregnant, is_married, hasauthorizedperson,
                       hassupplementaryloan, firstname, lastname,
                       weitere_antragstellende_personen, "noIncome",
                       main_behinderungsgrad, main_pflegegrad
                FROM user_data
                WHERE id = %s
                """,
                user_id,
            )
            if user_row is None:
                raise ApplicantNotFoundError(f"User {user_id} not found")

            object_row = self._fetch_one(
                conn,
                """
                SELECT "foerderVariante", haslocationcostloan,
                       haswoodconstructionloan, eigentumsverhaeltnis,
                       baugenehmigung_erforderlich, "bergsenkungsGebiet",
                       erbbaurecht, barrierefrei, beg_effizienzhaus_40_standard
                FROM object_data
                WHERE user_id = %s
                """,
                user_id,
            )
            financial_row = self._fetch_one(
                conn,
                "SELECT * FROM user_financials WHERE user_id = %s",
                user_id,
            )
            finance_structure_row = self._fetch_one(
                conn,
                "SELECT * FROM finance_structure WHERE user_id = %s",
                user_id,
            )

        return build_facts(user_row, object_row, financial_row, finance_structure_row)

    @staticmethod
    def _fetch_one(
        conn: psycopg.Connection[Any],
        sql: str,
        user_id: str,
    ) -> dict[str, Any] | None:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(sql, (user_id,))
            return cur.fetchone()
