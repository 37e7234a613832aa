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
"""
https://states-language.net/spec.html#filters

A state may want to process only a subset of its input data, and may want that
data structured differently from the way it appears in the input. Similarly, it
may want to control the format and content of the data that it passes on as
output.

Fields named "InputPath", "OutputPath", and "ResultPath" exist to support this.
This module provides the Path handling they need: parsing a path into its
segments, querying JSON data with a path and merging a state's result into its
input as directed by a Reference Path.
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

import re
from collections import namedtuple

"""
ASL paths use JSONPath.
https://goessner.net/articles/JsonPath/
http://www.ultimate.com/phil/python/#jsonpath
Tested using jsonpath 0.82. Note jsponpath_rw was tried but doesn't seem to
correctly support many of the test cases from the goessner link above.
"""
from jsonpath import jsonpath  # pip3 install jsonpath

from asl_interpreter.asl_exceptions import PathMatchFailure, ResultPathMatchFailure


"""
A single step of a parsed path.
expression: root, identifier, numeric_literal, string_literal, wildcard, slice,
            union, filter_expression or script_expression
value:      the text of the expression, with any quotes removed
operation:  member for dotted access e.g. $.a, subscript for bracketed e.g. $[0]
scope:      child, or descendant for recursive descent e.g. $..a
"""
PathSegment = namedtuple("PathSegment", ["expression", "value", "operation", "scope"])

MEMBER_REGEX = re.compile(r"\*|[^.\[\]\s]+")
IDENTIFIER_REGEX = re.compile(r"^[A-Za-z_$][\w$-]*$")
INTEGER_REGEX = re.compile(r"^-?\d+$")


def _find_subscript_end(path, start):
    """
    Given the index of a "[" return the index of its matching "]", skipping
    any brackets that appear within quotes or (script) expressions.
    """
    depth = 0
    quote = None
    for i in range(start + 1, len(path)):
        c = path[i]
        if quote:
            if c == quote and path[i - 1] != "\\":
                quote = None
        elif c in "'\"":
            quote = c
        elif c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
        elif c == "]" and depth == 0:
            return i
    raise PathMatchFailure("Unterminated subscript in path '{}'".format(path))


def _subscript_segment(path, body, scope):
    body = body.strip()
    if body == "*":
        return PathSegment("wildcard", body, "subscript", scope)
    if len(body) >= 2 and body[0] == body[-1] and body[0] in "'\"":
        return PathSegment("string_literal", body[1:-1], "subscript", scope)
    if body.startswith("?(") and body.endswith(")"):
        return PathSegment("filter_expression", body[2:-1], "subscript", scope)
    if body.startswith("(") and body.endswith(")"):
        return PathSegment("script_expression", body[1:-1], "subscript", scope)
    if ":" in body:
        return PathSegment("slice", body, "subscript", scope)
    if "," in body:
        return PathSegment("union", body, "subscript", scope)
    if INTEGER_REGEX.match(body):
        return PathSegment("numeric_literal", body, "subscript", scope)
    raise PathMatchFailure(
        "Invalid subscript [{}] in path '{}'".format(body, path)
    )


def parse_path(path):
    """
    Parse a JSONPath string into an ordered list of PathSegment. The first
    segment is always the root "$". Raises PathMatchFailure if the path is
    not a valid JSONPath. Context Object paths ("$$") are not supported.
    """
    if not isinstance(path, str) or not path.startswith("$"):
        raise PathMatchFailure("{} must be a JSONPath".format(path))

    segments = [PathSegment("root", "$", None, None)]
    i = 1
    length = len(path)
    while i < length:
        if path.startswith("..", i):
            scope = "descendant"
            i += 2
        elif path[i] == ".":
            scope = "child"
            i += 1
        elif path[i] == "[":
            scope = "child"
        else:
            raise PathMatchFailure(
                "Unexpected character '{}' at position {} in path '{}'".format(
                    path[i], i, path
                )
            )

        if i < length and path[i] == "[":
            end = _find_subscript_end(path, i)
            segments.append(_subscript_segment(path, path[i + 1:end], scope))
            i = end + 1
        else:
            match = MEMBER_REGEX.match(path, i)
            if not match:
                raise PathMatchFailure(
                    "Missing member name at position {} in path '{}'".format(i, path)
                )
            name = match.group(0)
            if name == "*":
                expression = "wildcard"
            elif INTEGER_REGEX.match(name):
                expression = "numeric_literal"
            elif IDENTIFIER_REGEX.match(name):
                expression = "identifier"
            else:
                raise PathMatchFailure(
                    "Invalid member name '{}' in path '{}'".format(name, path)
                )
            segments.append(PathSegment(expression, name, "member", scope))
            i = match.end()

    return segments


def apply_jsonpath(input, path="$"):
    """
    Performs the InputPath and OutputPath logic described in the ASL spec.
    https://states-language.net/spec.html#filters
    This is mostly just calling jsonpath() and applying the specified defaults.

    A failed match raises PathMatchFailure, AWS StepFunctions appears to fail
    executions in these cases, though it's a bit poorly specified and largely
    depends on the underlying JSONPath engine.
    https://goessner.net/articles/JsonPath/
    https://www.tbray.org/ongoing/When/201x/2017/04/14/JsonPath-Needs-Work

    Note that the root path returns the input object itself, not a copy.
    """
    if path == "$":
        return input

    parse_path(path)  # Rejects syntax the jsonpath module would silently accept
    try:
        result = jsonpath(input, path)
    except Exception as e:
        raise PathMatchFailure(
            "Invalid path '{}' applied to input '{}': {}".format(path, input, e)
        )

    if result is False:
        raise PathMatchFailure(
            "Invalid path '{}' applied to input '{}'".format(path, input)
        )

    """
    The following is a little subtle. Unfortunately the JSONPath specification
    is vague on a few points and some implementations, such as Python jsonpath,
    return a list of matches, but for most scenarios if a single item matches
    it is more intuitive to have that item returned rather than a list that
    contains that item. An exception is where the path contains an array slice
    operator because then we intuitively expect to return an array/list even
    if only a single item is matched.
    """
    if len(result) == 1:
        path_has_slice = re.search(r"\[.*:.*\]", path)
        if not path_has_slice:
            return result[0]

    return result


def apply_resultpath(input, result, path="$"):
    """
    Performs the ResultPath logic described in the ASL spec.
    https://states-language.net/spec.html#filters

    The value of "ResultPath" MUST be a Reference Path, which specifies the raw
    input's combination with or replacement by the state's result.

    If the input has a field which matches the ResultPath value, then in the
    output, that field is discarded and overwritten by the state output.
    Otherwise, a new field is created in the state output, creating any missing
    intermediate objects along the way.

    If the value of ResultPath is null, that means that the state's own raw
    output is discarded and its raw input becomes its result.

    Only object member access is supported. Array indices and any other
    JSONPath operators fail with States.ResultPathMatchFailure, as does an
    intermediate field that exists but isn't an object. Note that the input
    object is modified in place and returned. A null input is treated as an
    empty object only when the result is merged into it.
    """
    if path is None:
        return input
    if path == "$":
        return result
    if input is None:
        input = {}

    try:
        segments = parse_path(path)
    except PathMatchFailure as e:
        raise ResultPathMatchFailure("Invalid ResultPath '{}': {}".format(path, e.cause))

    if not isinstance(input, dict):
        raise ResultPathMatchFailure(
            "Unable to apply ResultPath '{}' to a non-object input".format(path)
        )

    target = input
    keys = segments[1:]
    for index, segment in enumerate(keys):
        if not (segment.expression == "identifier" and
                segment.operation == "member" and
                segment.scope == "child"):
            raise ResultPathMatchFailure(
                "Invalid ResultPath '{}', it must be a Reference Path".format(path)
            )

        if index == len(keys) - 1:
            target[segment.value] = result
            break

        child = target.get(segment.value)
        if segment.value not in target:
            child = target[segment.value] = {}
        elif not isinstance(child, dict):
            raise ResultPathMatchFailure(
                "Unable to match ResultPath '{}', field '{}' is not an object".format(
                    path, segment.value
                )
            )
        target = child

    return input
