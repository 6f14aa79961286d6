import json
import re
import unittest
from datetime import datetime, timedelta, timezone

from doccrud.services.query_normalizer import MalformedQueryError, normalize_filter, normalize_query


def _q(value) -> str:
    return json.dumps(value)


class QueryNormalizerCoercionTests(unittest.TestCase):
    def test_empty_and_null_values_are_removed(self):
        result = normalize_query(_q({"name": "", "email": None, "city": "Riga"}))
        self.assertEqual(result, {"city": "Riga"})

    def test_boolean_strings_become_booleans(self):
        result = normalize_query(_q({"active": "true", "archived": "false"}))
        self.assertIs(result["active"], True)
        self.assertIs(result["archived"], False)

    def test_nested_boolean_strings_become_booleans(self):
        result = normalize_query(_q({"flags": {"$ne": "true"}}))
        self.assertEqual(result, {"flags": {"$ne": True}})

    def test_object_emptied_by_normalization_is_removed(self):
        result = normalize_query(_q({"createdAt": {"$lte": "", "$gte": None}, "name": "a"}))
        self.assertEqual(result, {"name": "a"})

    def test_empty_object_and_array_are_removed(self):
        result = normalize_query(_q({"meta": {}, "tags": [], "kind": "x"}))
        self.assertEqual(result, {"kind": "x"})

    def test_array_elements_are_normalized(self):
        result = normalize_query(_q({"status": {"$in": ["true", "", "open"]}}))
        self.assertEqual(result, {"status": {"$in": [True, "open"]}})

    def test_numbers_and_plain_strings_pass_through(self):
        result = normalize_query(_q({"age": 30, "ratio": 0.5, "name": "Bob", "zero": 0}))
        self.assertEqual(result, {"age": 30, "ratio": 0.5, "name": "Bob", "zero": 0})

    def test_no_keys_are_introduced(self):
        source = {"a": "1", "b": {"$gte": "2"}, "c": "false"}
        result = normalize_query(_q(source))
        self.assertEqual(set(result.keys()), set(source.keys()))


class QueryNormalizerOrSearchTests(unittest.TestCase):
    def test_or_term_expands_to_one_clause_per_field(self):
        result = normalize_query(_q({"$or": "abc"}), ["name", "email"])
        clauses = result["$or"]
        self.assertEqual(len(clauses), 2)
        self.assertEqual(list(clauses[0].keys()), ["name"])
        self.assertEqual(list(clauses[1].keys()), ["email"])
        for clause in clauses:
            matcher = next(iter(clause.values()))
            self.assertEqual(matcher["$options"], "i")
            self.assertTrue(re.search(matcher["$regex"], "xxABCxx", re.IGNORECASE))

    def test_or_without_configured_fields_yields_empty_list(self):
        result = normalize_query(_q({"$or": "abc"}))
        self.assertEqual(result, {"$or": []})

    def test_empty_or_term_is_removed_before_expansion(self):
        result = normalize_query(_q({"$or": ""}), ["name"])
        self.assertEqual(result, {})

    def test_or_term_is_matched_literally(self):
        result = normalize_query(_q({"$or": "a.b"}), ["name"])
        pattern = result["$or"][0]["name"]["$regex"]
        self.assertIsNone(re.search(pattern, "axb"))
        self.assertIsNotNone(re.search(pattern, "xa.bx"))

    def test_boolean_like_or_term_keeps_its_text(self):
        result = normalize_query(_q({"$or": "true"}), ["name"])
        self.assertEqual(result["$or"][0]["name"]["$regex"], "true")

    def test_explicit_or_clause_list_is_not_expanded(self):
        result = normalize_query(_q({"$or": [{"name": "a"}, {"email": ""}]}), ["name"])
        self.assertEqual(result, {"$or": [{"name": "a"}]})


class QueryNormalizerDateTests(unittest.TestCase):
    def test_lte_is_pinned_to_end_of_day(self):
        result = normalize_query(_q({"$lte": "2024-01-01T00:00:00"}))
        value = result["$lte"]
        self.assertIsInstance(value, datetime)
        self.assertEqual((value.year, value.month, value.day), (2024, 1, 1))
        self.assertEqual((value.hour, value.minute), (23, 59))

    def test_gte_is_pinned_to_start_of_day(self):
        result = normalize_query(_q({"$gte": "2024-01-01T08:30:00"}))
        value = result["$gte"]
        self.assertEqual((value.year, value.month, value.day), (2024, 1, 1))
        self.assertEqual((value.hour, value.minute), (0, 0))

    def test_nested_range_is_pinned(self):
        result = normalize_query(
            _q({"createdAt": {"$gte": "2024-03-01T10:00:00", "$lte": "2024-03-02T10:00:00"}})
        )
        self.assertEqual(result["createdAt"]["$gte"], datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc))
        self.assertEqual(result["createdAt"]["$lte"], datetime(2024, 3, 2, 23, 59, tzinfo=timezone.utc))

    def test_other_keys_keep_their_time(self):
        result = normalize_query(_q({"publishedAt": "2024-05-06T07:08:09Z"}))
        self.assertEqual(result["publishedAt"], datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc))

    def test_naive_date_time_is_treated_as_utc(self):
        result = normalize_query(_q({"at": "2024-05-06T07:08:09"}))
        self.assertEqual(result["at"].tzinfo, timezone.utc)

    def test_naive_range_is_pinned_in_utc(self):
        result = normalize_query(_q({"createdAt": {"$lte": "2024-03-02T10:00:00"}}))
        pinned = result["createdAt"]["$lte"]
        self.assertEqual(pinned.utcoffset(), timedelta(0))
        self.assertEqual(pinned, datetime(2024, 3, 2, 23, 59, tzinfo=timezone.utc))

    def test_offset_range_is_pinned_in_its_own_offset(self):
        result = normalize_query(_q({"createdAt": {"$gte": "2024-03-02T10:00:00+03:00"}}))
        self.assertEqual(result["createdAt"]["$gte"], datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc))

    def test_date_only_strings_are_left_alone(self):
        result = normalize_query(_q({"day": "2024-05-06"}))
        self.assertEqual(result, {"day": "2024-05-06"})

    def test_unparsable_date_like_string_is_kept(self):
        text = "ref 2024-05-06T07:08:09 copy"
        result = normalize_query(_q({"note": text}))
        self.assertEqual(result, {"note": text})


class QueryNormalizerParseTests(unittest.TestCase):
    def test_malformed_json_raises(self):
        with self.assertRaises(MalformedQueryError):
            normalize_query("{not json")

    def test_non_object_json_raises(self):
        with self.assertRaises(MalformedQueryError):
            normalize_query("[1, 2]")

    def test_malformed_query_is_a_value_error(self):
        self.assertTrue(issubclass(MalformedQueryError, ValueError))

    def test_normalize_filter_does_not_mutate_input(self):
        source = {"a": "", "b": {"$lte": "2024-01-01T00:00:00"}}
        normalize_filter(source)
        self.assertEqual(source, {"a": "", "b": {"$lte": "2024-01-01T00:00:00"}})


if __name__ == "__main__":
    unittest.main()
