from __future__ import annotations

import unittest

from fastapi import status
from sqlalchemy.exc import IntegrityError

from flexbase.errors import integrity_error_details


def _integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception(message))


class TestIntegrityErrorDetails(unittest.TestCase):
    def test_sqlite_foreign_key_failure(self) -> None:
        self.assertEqual(
            integrity_error_details(_integrity_error("FOREIGN KEY constraint failed")),
            (status.HTTP_404_NOT_FOUND, "Referenced resource not found"),
        )

    def test_postgres_foreign_key_failure(self) -> None:
        exc = _integrity_error(
            'insert or update on table "collection_items" violates foreign key constraint '
            '"collection_items_post_id_fkey"'
        )
        self.assertEqual(integrity_error_details(exc)[0], status.HTTP_404_NOT_FOUND)

    def test_unique_username(self) -> None:
        exc = _integrity_error("UNIQUE constraint failed: users.username")
        self.assertEqual(integrity_error_details(exc), (status.HTTP_400_BAD_REQUEST, "Username already taken"))

    def test_unique_email(self) -> None:
        exc = _integrity_error('duplicate key value violates unique constraint "users_email_key"')
        self.assertEqual(integrity_error_details(exc), (status.HTTP_400_BAD_REQUEST, "Email already exists"))

    def test_self_follow_check(self) -> None:
        exc = _integrity_error("CHECK constraint failed: ck_follows_not_self")
        self.assertEqual(integrity_error_details(exc)[1], "You cannot follow yourself")

    def test_other_unique_violation(self) -> None:
        exc = _integrity_error("UNIQUE constraint failed: likes.post_id, likes.user_id")
        self.assertEqual(
            integrity_error_details(exc), (status.HTTP_400_BAD_REQUEST, "Duplicate field value entered")
        )


if __name__ == "__main__":
    unittest.main()
