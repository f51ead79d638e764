from __future__ import annotations

import unittest

from fastapi import HTTPException

from flexbase.schemas import TagIn
from flexbase.services.post_service import normalize_tags, parse_tags
from flexbase.utils.types import TagCategory


class TestParseTags(unittest.TestCase):
    def test_missing_or_blank_is_empty(self) -> None:
        self.assertEqual(parse_tags(None), [])
        self.assertEqual(parse_tags("   "), [])

    def test_accepts_category_or_type_key(self) -> None:
        tags = parse_tags('[{"name": "Nike", "category": "brand"}, {"name": "Jordan 1", "type": "rarity"}]')
        self.assertEqual([t.name for t in tags], ["Nike", "Jordan 1"])
        self.assertEqual([t.category for t in tags], [TagCategory.BRAND, TagCategory.RARITY])

    def test_malformed_json_is_bad_request(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            parse_tags("not json")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_unknown_category_is_bad_request(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            parse_tags('[{"name": "Nike", "category": "vibes"}]')
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertTrue(ctx.exception.detail["errors"])


class TestNormalizeTags(unittest.TestCase):
    def test_strips_names_and_defaults_category(self) -> None:
        tags = [TagIn(name="  Nike "), TagIn(name="Rolex", category=TagCategory.BRAND)]
        self.assertEqual(
            normalize_tags(tags),
            [("Nike", TagCategory.GENERAL), ("Rolex", TagCategory.BRAND)],
        )

    def test_drops_whitespace_only_names(self) -> None:
        self.assertEqual(normalize_tags([TagIn(name="   ")]), [])

    def test_preserves_order(self) -> None:
        names = [name for name, _ in normalize_tags([TagIn(name=n) for n in ("c", "a", "b")])]
        self.assertEqual(names, ["c", "a", "b"])


if __name__ == "__main__":
    unittest.main()
