import unittest

from tests.base import *  # noqa: F401,F403

from menuadmin.core.exceptions import FilterValidationError
from menuadmin.schemas.query import BETWEEN_ERROR, parse_filter
from menuadmin.services.operators import build_condition, compile_filter, compile_filters


def compiled(**raw):
    return compile_filter(parse_filter(raw))


class BuildConditionTests(unittest.TestCase):
    def test_operator_table(self):
        cases = [
            ("eq", 5, {"equals": 5}),
            ("ne", 5, {"not": 5}),
            ("gt", 5, {"gt": 5}),
            ("gte", 5, {"gte": 5}),
            ("lt", 5, {"lt": 5}),
            ("lte", 5, {"lte": 5}),
            ("in", [1, 2], {"in": [1, 2]}),
            ("notIn", [1, 2], {"not_in": [1, 2]}),
            ("contains", "ab", {"contains": "ab", "mode": "insensitive"}),
            ("notContains", "ab", {"not": {"contains": "ab", "mode": "insensitive"}}),
            ("startsWith", "ab", {"starts_with": "ab", "mode": "insensitive"}),
            ("endsWith", "ab", {"ends_with": "ab", "mode": "insensitive"}),
            ("regex", "^a", {"regex": "^a", "mode": "insensitive"}),
            ("search", "ab", {"search": "ab", "mode": "insensitive"}),
            ("isNull", None, None),
            ("isNotNull", None, {"not": None}),
            ("between", [1, 9], {"gte": 1, "lte": 9}),
            ("has", {"active": True}, {"some": {"active": True}}),
            ("some", {"active": True}, {"some": {"active": True}}),
            ("hasNot", {"active": True}, {"none": {"active": True}}),
            ("none", {"active": True}, {"none": {"active": True}}),
            ("every", {"active": True}, {"every": {"active": True}}),
        ]
        for operation, value, expected in cases:
            with self.subTest(operation=operation):
                self.assertEqual(build_condition(operation, value), expected)

    def test_case_sensitive_text_has_no_mode(self):
        self.assertEqual(build_condition("contains", "Ab", case_sensitive=True), {"contains": "Ab"})
        self.assertEqual(
            build_condition("notContains", "Ab", case_sensitive=True), {"not": {"contains": "Ab"}},
        )

    def test_membership_wraps_scalar(self):
        self.assertEqual(build_condition("in", "x"), build_condition("in", ["x"]))
        self.assertEqual(build_condition("notIn", 3), {"not_in": [3]})

    def test_between_shape_is_enforced(self):
        for value in ([1], [1, 2, 3], "12"):
            with self.subTest(value=value):
                with self.assertRaises(FilterValidationError) as ctx:
                    build_condition("between", value)
                self.assertEqual(str(ctx.exception), BETWEEN_ERROR)

    def test_unsupported_operation(self):
        with self.assertRaises(FilterValidationError) as ctx:
            build_condition("approximately", 1)
        self.assertEqual(str(ctx.exception), "Unsupported operation: approximately")

    def test_relation_with_filter_list(self):
        condition = build_condition("some", [
            {"field": "active", "value": True, "operation": "eq"},
            {"field": "title", "value": "main", "operation": "contains"},
        ])
        self.assertEqual(condition, {"some": {"AND": [
            {"active": {"equals": True}},
            {"title": {"contains": "main", "mode": "insensitive"}},
        ]}})

    def test_relation_with_empty_list_matches_any(self):
        self.assertEqual(build_condition("some", []), {"some": {}})


class CompileFilterTests(unittest.TestCase):
    def test_field_wrapping(self):
        self.assertEqual(compiled(field="active", value=True, operation="eq"), {"active": {"equals": True}})
        self.assertEqual(compiled(field="deleted_at", operation="isNull"), {"deleted_at": None})

    def test_relation_nesting(self):
        self.assertEqual(
            compiled(field="title", value="x", operation="contains", relation="store"),
            {"store": {"title": {"contains": "x", "mode": "insensitive"}}},
        )

    def test_dotted_relation_path(self):
        self.assertEqual(
            compiled(field="username", value="ann", operation="eq", relation="store.user"),
            {"store": {"user": {"username": {"equals": "ann"}}}},
        )

    def test_compile_filters_keeps_order(self):
        specs = [
            parse_filter({"field": "a", "value": 1, "operation": "gt"}),
            parse_filter({"field": "a", "value": 5, "operation": "lt"}),
        ]
        self.assertEqual(compile_filters(specs), [{"a": {"gt": 1}}, {"a": {"lt": 5}}])
