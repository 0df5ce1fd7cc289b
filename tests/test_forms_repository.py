"""
FormRepository reindexing runs inside one transaction on one connection.
"""

from unittest.mock import MagicMock, patch

import pytest

from backend.app.db import postgres_client
from backend.app.db.postgres_client import Database
from backend.app.errors import AppError, ErrorKind
from backend.app.repositories.forms import FormRepository


@pytest.fixture()
def conn():
    conn = MagicMock()
    with patch.object(postgres_client, "get_conn", return_value=conn), \
            patch.object(postgres_client, "put_conn"):
        yield conn


def _cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


class TestReorderSteps:

    def test_rewrites_order_then_commits(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],              # lock
            [{"id": "a"}, {"id": "b"}],      # current steps
            [{"id": "b"}],                   # update b
            [{"id": "a"}],                   # update a
        ]

        result = FormRepository(Database()).reorder_steps("form-1", ["b", "a"])

        assert [(r.id, r.order) for r in result] == [("b", 0), ("a", 1)]
        updates = [c[0] for c in cur.execute.call_args_list if c[0][0].startswith("UPDATE")]
        assert [u[1] for u in updates] == [[0, "b"], [1, "a"]]
        conn.commit.assert_called_once()

    def test_mismatched_ids_roll_back(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],
            [{"id": "a"}, {"id": "b"}],
        ]

        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).reorder_steps("form-1", ["a"])

        assert exc_info.value.kind == ErrorKind.VALIDATION
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_duplicate_ids_rejected(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],
            [{"id": "a"}, {"id": "b"}],
        ]
        with pytest.raises(AppError):
            FormRepository(Database()).reorder_steps("form-1", ["a", "a"])

    def test_missing_form(self, conn):
        _cursor(conn).fetchall.side_effect = [[]]
        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).reorder_steps("gone", ["a"])
        assert exc_info.value.kind == ErrorKind.NOT_FOUND


class TestDeleteStep:

    def test_redensifies_remaining_steps(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],              # lock
            [{"id": "b"}],                   # delete returning
            [{"id": "a"}, {"id": "c"}],      # remaining, by order
            [{"id": "a"}],
            [{"id": "c"}],
        ]

        FormRepository(Database()).delete_step("form-1", "b")

        updates = [c[0][1] for c in cur.execute.call_args_list if c[0][0].startswith("UPDATE")]
        assert updates == [[0, "a"], [1, "c"]]
        conn.commit.assert_called_once()

    def test_unknown_step(self, conn):
        _cursor(conn).fetchall.side_effect = [[{"id": "form-1"}], []]
        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).delete_step("form-1", "nope")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        conn.rollback.assert_called_once()


class TestReads:

    def test_steps_ordered_requires_live_form(self, conn):
        _cursor(conn).fetchall.side_effect = [[]]
        with pytest.raises(AppError):
            FormRepository(Database()).get_steps_ordered("gone")

    def test_verify_ownership(self, conn):
        _cursor(conn).fetchall.side_effect = [[{"id": "f", "user_id": "u2"}]]
        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).verify_ownership("f", "u1")
        assert exc_info.value.kind == ErrorKind.FORBIDDEN

    def test_form_schema_collects_fields_across_steps(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "f", "status": "PUBLISHED"}],
            [{"id": "s1"}, {"id": "s2"}],
            [
                {"id": "a", "label": "Name", "required": True},
                {"id": "b", "label": "Notes", "required": False},
            ],
        ]

        schema = FormRepository(Database()).get_form_schema("f")

        assert schema.status == "PUBLISHED"
        assert [(f.label, f.required) for f in schema.fields] == [("Name", True), ("Notes", False)]
        cur.execute.assert_called_with(
            "SELECT id, label, required FROM form_fields WHERE step_id = ANY(%s::uuid[])",
            [["s1", "s2"]],
        )

    def test_form_schema_without_steps_skips_field_query(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [[{"id": "f", "status": "DRAFT"}], []]

        schema = FormRepository(Database()).get_form_schema("f")

        assert schema.fields == []
        assert cur.execute.call_count == 2


class TestReorderFields:

    def test_rewrites_order_then_commits(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],                        # form lock
            [{"id": "step-1"}],                        # step lock
            [{"id": "x"}, {"id": "y"}, {"id": "z"}],   # current fields
            [{"id": "z"}],
            [{"id": "x"}],
            [{"id": "y"}],
        ]

        result = FormRepository(Database()).reorder_fields("form-1", "step-1", ["z", "x", "y"])

        assert [(r.id, r.order) for r in result] == [("z", 0), ("x", 1), ("y", 2)]
        statements = [c[0] for c in cur.execute.call_args_list]
        assert statements[1] == (
            "SELECT id FROM form_steps WHERE id = %s AND form_id = %s FOR UPDATE",
            ["step-1", "form-1"],
        )
        assert [s[1] for s in statements if s[0].startswith("UPDATE form_fields")] == [[0, "z"], [1, "x"], [2, "y"]]
        conn.commit.assert_called_once()

    def test_unknown_field_rolls_back(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],
            [{"id": "step-1"}],
            [{"id": "x"}, {"id": "y"}],
        ]

        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).reorder_fields("form-1", "step-1", ["x", "other"])

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert exc_info.value.details == {"unknownIds": ["other"]}
        assert not any(c[0][0].startswith("UPDATE") for c in cur.execute.call_args_list)
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_step_of_another_form(self, conn):
        _cursor(conn).fetchall.side_effect = [[{"id": "form-1"}], []]
        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).reorder_fields("form-1", "step-9", ["x"])
        assert exc_info.value.message == "Step not found"
        conn.rollback.assert_called_once()


class TestDeleteField:

    def test_redensifies_remaining_fields(self, conn):
        cur = _cursor(conn)
        cur.fetchall.side_effect = [
            [{"id": "form-1"}],
            [{"id": "step-1"}],
            [{"id": "y"}],                   # delete returning
            [{"id": "x"}, {"id": "z"}],      # remaining, by order
            [{"id": "x"}],
            [{"id": "z"}],
        ]

        FormRepository(Database()).delete_field("form-1", "step-1", "y")

        statements = [c[0] for c in cur.execute.call_args_list]
        assert ("DELETE FROM form_fields WHERE id = %s AND step_id = %s RETURNING *", ["y", "step-1"]) in statements
        assert [s[1] for s in statements if s[0].startswith("UPDATE form_fields")] == [[0, "x"], [1, "z"]]
        conn.commit.assert_called_once()

    def test_unknown_field(self, conn):
        _cursor(conn).fetchall.side_effect = [[{"id": "form-1"}], [{"id": "step-1"}], []]
        with pytest.raises(AppError) as exc_info:
            FormRepository(Database()).delete_field("form-1", "step-1", "nope")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.message == "Field not found"
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
