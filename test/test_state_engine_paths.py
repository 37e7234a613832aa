#
# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.
#
# Run with:
# PYTHONPATH=.. python3 test_state_engine_paths.py
#

import sys
assert sys.version_info >= (3, 0) # Bomb out if not running Python3

import unittest

from asl_interpreter.state_engine_paths import (
    PathSegment,
    apply_jsonpath,
    apply_resultpath,
    parse_path,
)
from asl_interpreter.asl_exceptions import PathMatchFailure, ResultPathMatchFailure

"""
JSON document for use by examples from https://goessner.net/articles/JsonPath/
The link above is essentially the de facto definition/specification for JSONPath
from Stefan Goessner.
"""
goessner = { "store": {
    "book": [
      { "category": "reference",
        "author": "Nigel Rees",
        "title": "Sayings of the Century",
        "price": 8.95
      },
      { "category": "fiction",
        "author": "Evelyn Waugh",
        "title": "Sword of Honour",
        "price": 12.99
      },
      { "category": "fiction",
        "author": "Herman Melville",
        "title": "Moby Dick",
        "isbn": "0-553-21311-3",
        "price": 8.99
      }
    ],
    "bicycle": {
      "color": "red",
      "price": 19.95
    }
  }
}


class TestParsePath(unittest.TestCase):

    def test_reference_path(self):
        segments = parse_path("$.a.b")
        self.assertEqual(segments, [
            PathSegment("root", "$", None, None),
            PathSegment("identifier", "a", "member", "child"),
            PathSegment("identifier", "b", "member", "child"),
        ])

    def test_root(self):
        self.assertEqual(parse_path("$"), [PathSegment("root", "$", None, None)])

    def test_descendant_and_subscripts(self):
        segments = parse_path("$..book[0]")
        self.assertEqual(segments[1], PathSegment("identifier", "book", "member", "descendant"))
        self.assertEqual(segments[2], PathSegment("numeric_literal", "0", "subscript", "child"))

        segment = parse_path("$['a b']")[1]
        self.assertEqual(segment, PathSegment("string_literal", "a b", "subscript", "child"))

        segment = parse_path("$.store.book[?(@.price<10)]")[3]
        self.assertEqual(segment.expression, "filter_expression")
        self.assertEqual(segment.value, "@.price<10")

        self.assertEqual(parse_path("$..book[(@.length-1)]")[2].expression, "script_expression")
        self.assertEqual(parse_path("$.a[1:3]")[2].expression, "slice")
        self.assertEqual(parse_path("$.a[0,1]")[2].expression, "union")
        self.assertEqual(parse_path("$.a[*]")[2].expression, "wildcard")
        self.assertEqual(parse_path("$.*")[1], PathSegment("wildcard", "*", "member", "child"))

    def test_invalid_paths(self):
        for path in ["a.b", "$$.Execution.Id", "$.a[", "$.a[foo]", "$a", "$.", None, 1]:
            with self.assertRaises(PathMatchFailure, msg=path) as cm:
                parse_path(path)
            self.assertEqual(cm.exception.error, "States.Runtime")


class TestApplyJsonpath(unittest.TestCase):

    def test_root_returns_input_itself(self):
        data = {"a": "foo"}
        self.assertIs(apply_jsonpath(data, "$"), data)
        self.assertIs(apply_jsonpath(data), data)

    def test_single_match_is_unwrapped(self):
        self.assertEqual(apply_jsonpath(goessner, "$.store.bicycle.color"), "red")
        self.assertEqual(
            apply_jsonpath(goessner, "$.store.bicycle"), {"color": "red", "price": 19.95}
        )

    def test_multiple_matches(self):
        print("The authors of all books in the store.")
        result = apply_jsonpath(goessner, "$.store.book[*].author")
        print(result)
        self.assertEqual(result, ["Nigel Rees", "Evelyn Waugh", "Herman Melville"])

    def test_slice_is_not_unwrapped(self):
        result = apply_jsonpath(goessner, "$..book[-1:]")
        self.assertEqual(result, [goessner["store"]["book"][2]])

    def test_no_match(self):
        with self.assertRaises(PathMatchFailure):
            apply_jsonpath({"a": "foo"}, "$.b")

        with self.assertRaises(PathMatchFailure):
            apply_jsonpath({"inputs": []}, "$.inputs[0]")

    def test_invalid_syntax(self):
        with self.assertRaises(PathMatchFailure):
            apply_jsonpath({"a": "foo"}, "a")


class TestApplyResultpath(unittest.TestCase):

    def test_null_path_keeps_input(self):
        data = {"a": 1}
        self.assertIs(apply_resultpath(data, {"b": 2}, None), data)
        self.assertEqual(data, {"a": 1})

    def test_root_path_replaces_input(self):
        self.assertEqual(apply_resultpath({"a": 1}, {"b": 2}, "$"), {"b": 2})
        self.assertEqual(apply_resultpath({"a": 1}, {"b": 2}), {"b": 2})

    def test_merge_creates_field(self):
        data = {}
        output = apply_resultpath(data, {"b": 1}, "$.x")
        self.assertEqual(output, {"x": {"b": 1}})
        self.assertIs(output, data)  # The input is modified in place

    def test_merge_creates_intermediate_objects(self):
        output = apply_resultpath({"a": 1}, "result", "$.x.y.z")
        self.assertEqual(output, {"a": 1, "x": {"y": {"z": "result"}}})

    def test_merge_overwrites_existing_field(self):
        output = apply_resultpath({"x": {"y": 1, "w": 2}}, [1, 2], "$.x.y")
        self.assertEqual(output, {"x": {"y": [1, 2], "w": 2}})

        output = apply_resultpath({"x": "old"}, "new", "$.x")
        self.assertEqual(output, {"x": "new"})

    def test_null_input_is_empty_object(self):
        self.assertEqual(apply_resultpath(None, 1, "$.x"), {"x": 1})

    def test_null_input_kept_for_null_and_root_paths(self):
        self.assertIsNone(apply_resultpath(None, {"b": 1}, None))
        self.assertEqual(apply_resultpath(None, {"b": 1}, "$"), {"b": 1})

    def test_intermediate_not_an_object(self):
        for data in [{"x": "not-an-object"}, {"x": [1, 2]}, {"x": None}, {"x": 1}]:
            with self.assertRaises(ResultPathMatchFailure, msg=data) as cm:
                apply_resultpath(data, {"b": 1}, "$.x.y")
            self.assertEqual(cm.exception.error, "States.ResultPathMatchFailure")

    def test_input_not_an_object(self):
        with self.assertRaises(ResultPathMatchFailure):
            apply_resultpath("foo", {"b": 1}, "$.x")

        with self.assertRaises(ResultPathMatchFailure):
            apply_resultpath([1, 2], {"b": 1}, "$.x")

    def test_only_reference_paths(self):
        for path in ["$.a[0]", "$.a[0].b", "$..a", "$['a']", "$.a.*", "$$.a", "a.b"]:
            with self.assertRaises(ResultPathMatchFailure, msg=path):
                apply_resultpath({"a": [{}]}, 1, path)


if __name__ == "__main__":
    unittest.main()
