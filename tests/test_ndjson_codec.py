from __future__ import annotations

import json
import unittest

from app.codecs.ndjson import (
    build_delete_action_line,
    build_delete_payload,
    build_index_action_line,
    build_ndjson,
    count_items,
    is_valid_ndjson,
    parse_ndjson,
)
from app.domain.imports import CanonicalItem


class TestBuildNdjson(unittest.TestCase):
    def test_emits_action_and_data_line_per_item(self) -> None:
        items = [
            CanonicalItem(id="a1", content_type="Product", properties={"Title": "Widget"}),
            CanonicalItem(id="a2", content_type="Product", properties={"Title": "Gadget"}),
        ]

        payload = build_ndjson(items)
        lines = payload.split("\n")

        self.assertTrue(payload.endswith("\n"))
        self.assertEqual(lines[-1], "")
        self.assertEqual(len(lines) - 1, 4)
        self.assertEqual(json.loads(lines[0]), {"index": {"_id": "a1"}})
        self.assertEqual(json.loads(lines[2]), {"index": {"_id": "a2"}})

    def test_injects_defaults_without_overwriting_caller_keys(self) -> None:
        item = CanonicalItem(
            id="a1",
            content_type="Product",
            properties={"Title": "Widget", "Status": "Draft"},
        )

        data = json.loads(build_ndjson([item]).splitlines()[1])

        self.assertEqual(data["Title"], "Widget")
        self.assertEqual(data["Status"], "Draft")
        self.assertEqual(data["ContentType"], ["Product"])
        self.assertEqual(data["RolesWithReadAccess"], "Everyone")

    def test_content_type_only_injected_when_present(self) -> None:
        item = CanonicalItem(id="a1", content_type="", properties={})

        data = json.loads(build_ndjson([item]).splitlines()[1])

        self.assertNotIn("ContentType", data)
        self.assertEqual(data["Status"], "Published")

    def test_language_routing_goes_on_action_line(self) -> None:
        item = CanonicalItem(id="a1", content_type="Product", language_routing="en")

        action = json.loads(build_ndjson([item]).splitlines()[0])

        self.assertEqual(action, {"index": {"_id": "a1", "language_routing": "en"}})

    def test_non_ascii_is_preserved(self) -> None:
        item = CanonicalItem(id="ø1", content_type="Product", properties={"Title": "Crème brûlée"})

        payload = build_ndjson([item])

        self.assertIn("Crème brûlée", payload)
        self.assertIn('"_id":"ø1"', payload)

    def test_empty_identifier_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            build_ndjson([CanonicalItem(id="  ", content_type="Product")])

    def test_end_to_end_item_encoding(self) -> None:
        item = CanonicalItem(id="a1", content_type="Product", properties={"Title": "Widget"})

        lines = build_ndjson([item]).splitlines()

        self.assertEqual(lines[0], '{"index":{"_id":"a1"}}')
        self.assertEqual(
            json.loads(lines[1]),
            {
                "Title": "Widget",
                "ContentType": ["Product"],
                "Status": "Published",
                "RolesWithReadAccess": "Everyone",
            },
        )


class TestActionLines(unittest.TestCase):
    def test_index_action_line_skips_blank_language(self) -> None:
        self.assertEqual(build_index_action_line("x", "  "), '{"index":{"_id":"x"}}')

    def test_delete_action_line(self) -> None:
        self.assertEqual(build_delete_action_line("x"), '{"delete":{"_id":"x"}}')

    def test_delete_payload_has_one_line_per_id(self) -> None:
        payload = build_delete_payload(["a", "b"])

        self.assertEqual(payload, '{"delete":{"_id":"a"}}\n{"delete":{"_id":"b"}}\n')


class TestParseNdjson(unittest.TestCase):
    def test_round_trip_preserves_items(self) -> None:
        items = [
            CanonicalItem(
                id="a1",
                content_type="Product",
                language_routing="en",
                properties={"Title": "Widget", "Price": 9.5, "Tags": ["x", "y"], "InStock": True},
            ),
            CanonicalItem(id="a2", content_type="Product", properties={"Count": 3, "Note": None}),
        ]

        parsed = parse_ndjson(build_ndjson(items))

        self.assertEqual(len(parsed), 2)
        self.assertEqual(parsed[0].id, "a1")
        self.assertEqual(parsed[0].language_routing, "en")
        self.assertEqual(parsed[0].properties["Title"], "Widget")
        self.assertEqual(parsed[0].properties["Price"], 9.5)
        self.assertEqual(parsed[0].properties["Tags"], ["x", "y"])
        self.assertIs(parsed[0].properties["InStock"], True)
        self.assertEqual(parsed[1].properties["Count"], 3)
        self.assertIsNone(parsed[1].properties["Note"])
        self.assertIsNone(parsed[1].language_routing)

    def test_unicode_separators_inside_values_do_not_split_lines(self) -> None:
        items = [
            CanonicalItem(id="a1", content_type="Product", properties={"Title": "x\u2028y"}),
            CanonicalItem(id="a2", content_type="Product", properties={"Title": "z\x85w\x0cv"}),
        ]
        text = build_ndjson(items)

        parsed = parse_ndjson(text)

        self.assertTrue(is_valid_ndjson(text))
        self.assertEqual(count_items(text), 2)
        self.assertEqual([item.id for item in parsed], ["a1", "a2"])
        self.assertEqual(parsed[0].properties["Title"], "x\u2028y")
        self.assertEqual(parsed[1].properties["Title"], "z\x85w\x0cv")

    def test_crlf_line_endings_are_accepted(self) -> None:
        text = build_ndjson([CanonicalItem(id="a1", properties={"Title": "Widget"})]).replace("\n", "\r\n")

        self.assertTrue(is_valid_ndjson(text))
        self.assertEqual([item.id for item in parse_ndjson(text)], ["a1"])

    def test_type_marker_becomes_content_type(self) -> None:
        text = '{"index":{"_id":"a1"}}\n{"_type":"Article","Title":"Hello"}\n'

        parsed = parse_ndjson(text)

        self.assertEqual(parsed[0].content_type, "Article")
        self.assertNotIn("_type", parsed[0].properties)

    def test_missing_type_leaves_content_type_empty(self) -> None:
        parsed = parse_ndjson('{"index":{"_id":"a1"}}\n{"Title":"Hello"}\n')

        self.assertEqual(parsed[0].content_type, "")

    def test_numeric_identifier_uses_json_text(self) -> None:
        parsed = parse_ndjson('{"index":{"_id":42}}\n{"Title":"Hello"}\n')

        self.assertEqual(parsed[0].id, "42")

    def test_malformed_pairs_are_skipped(self) -> None:
        text = "\n".join(
            [
                '{"index":{"_id":"a1"}}',
                '{"Title":"ok"}',
                "not json",
                '{"Title":"orphan"}',
                '{"delete":{"_id":"a3"}}',
                '{"Title":"ignored"}',
                '{"index":{"_id":""}}',
                '{"Title":"empty id"}',
                '{"index":{"_id":"a5"}}',
                '{"Title":"five"}',
            ]
        )

        parsed = parse_ndjson(text)

        self.assertEqual([item.id for item in parsed], ["a1", "a5"])

    def test_blank_input_yields_nothing(self) -> None:
        self.assertEqual(parse_ndjson(""), [])
        self.assertEqual(parse_ndjson("   \n  "), [])


class TestIsValidNdjson(unittest.TestCase):
    def test_well_formed_pairs_are_valid(self) -> None:
        self.assertTrue(is_valid_ndjson('{"index":{"_id":"a"}}\n{"x":1}\n'))

    def test_odd_line_count_is_invalid(self) -> None:
        self.assertFalse(is_valid_ndjson('{"index":{"_id":"a"}}\n{"x":1}\n{"index":{"_id":"b"}}\n'))

    def test_action_without_index_or_delete_is_invalid(self) -> None:
        self.assertFalse(is_valid_ndjson('{"update":{"_id":"a"}}\n{"x":1}\n'))

    def test_non_json_line_is_invalid(self) -> None:
        self.assertFalse(is_valid_ndjson('{"index":{"_id":"a"}}\nnot-json\n'))

    def test_empty_text_is_invalid(self) -> None:
        self.assertFalse(is_valid_ndjson(""))

    def test_blank_lines_are_ignored(self) -> None:
        self.assertTrue(is_valid_ndjson('\n{"index":{"_id":"a"}}\n\n{"x":1}\n\n'))


class TestCountItems(unittest.TestCase):
    def test_counts_pairs(self) -> None:
        items = [CanonicalItem(id=str(n), content_type="T") for n in range(3)]

        self.assertEqual(count_items(build_ndjson(items)), 3)

    def test_empty_text_counts_zero(self) -> None:
        self.assertEqual(count_items(None), 0)


if __name__ == "__main__":
    unittest.main()
