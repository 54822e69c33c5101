from unittest.mock import MagicMock, patch

import pytest

from docintake.database.repositories.optional_selection_repository import OptionalSelectionRepository
from docintake.documents.exceptions import ApplicantNotFoundError


def _mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, MagicMock]:
    """Wire up a mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn, mock_cursor


class TestGet:
    @patch("docintake.database.repositories.optional_selection_repository.get_connection")
    def test_filters_malformed_values(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = (
            {"general": ["lageplan", 3], "hauptantragsteller": "rentenbescheid"},
        )

        assert OptionalSelectionRepository().get("u1") == {"general": ["lageplan"]}

    @patch("docintake.database.repositories.optional_selection_repository.get_connection")
    def test_raises_when_user_missing(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        with pytest.raises(ApplicantNotFoundError):
            OptionalSelectionRepository().get("u9")


class TestSave:
    @patch("docintake.database.repositories.optional_selection_repository.get_connection")
    def test_writes_selection(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 1

        OptionalSelectionRepository().save("u1", {"general": ["lageplan"]})

        payload, user_id = mock_cursor.execute.call_args.args[1]
        assert payload.obj == {"general": ["lageplan"]}
        assert user_id == "u1"
        mock_conn.commit.assert_called_once()

    @patch("docintake.database.repositories.optional_selection_repository.get_connection")
    def test_raises_when_no_row_updated(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.rowcount = 0

        with pytest.raises(ApplicantNotFoundError):
            OptionalSelectionRepository().save("u9", {"general": []})
