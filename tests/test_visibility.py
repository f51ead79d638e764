from __future__ import annotations

import unittest
import uuid

from flexbase.services.visibility_service import resolve_visibility
from flexbase.utils.types import Visibility


class TestResolveVisibility(unittest.TestCase):
    def setUp(self) -> None:
        self.owner = uuid.uuid4()
        self.other = uuid.uuid4()

    def test_owner_sees_everything(self) -> None:
        self.assertEqual(
            resolve_visibility(self.owner, self.owner),
            {Visibility.PUBLIC, Visibility.FOLLOWERS, Visibility.PRIVATE},
        )

    def test_follower_sees_public_and_followers(self) -> None:
        self.assertEqual(
            resolve_visibility(self.other, self.owner, viewer_follows_owner=True),
            {Visibility.PUBLIC, Visibility.FOLLOWERS},
        )

    def test_stranger_sees_public_only(self) -> None:
        self.assertEqual(resolve_visibility(self.other, self.owner), {Visibility.PUBLIC})

    def test_anonymous_sees_public_only(self) -> None:
        self.assertEqual(resolve_visibility(None, self.owner), {Visibility.PUBLIC})

    def test_follow_flag_ignored_for_anonymous(self) -> None:
        self.assertEqual(resolve_visibility(None, self.owner, viewer_follows_owner=True), {Visibility.PUBLIC})

    def test_private_never_leaks_to_followers(self) -> None:
        self.assertNotIn(Visibility.PRIVATE, resolve_visibility(self.other, self.owner, True))


if __name__ == "__main__":
    unittest.main()
