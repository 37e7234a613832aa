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
Behaviours layered around a primitive state action. Each layer has the same
async run(data) -> ExecutionResult interface as the action it wraps, and the
Factory composes them, outermost first, as:

    TaskTimeout(Catch(Filter(action)))

The order matters: Filter failures are offered to the Catch layer like any
action failure, whereas a Timeout fires outside Catch and so can't be caught.
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

import asyncio, copy

from asl_interpreter.asl_exceptions import ExecutionError, PathMatchFailure, Timeout
from asl_interpreter.state_engine_paths import apply_jsonpath, apply_resultpath
from asl_interpreter.states import ExecutionResult


class Filter(object):
    """
    https://states-language.net/spec.html#filters

    Applies InputPath to the raw state input to give the effective input for
    the wrapped action, then merges the action's result into the effective
    input as directed by ResultPath and finally applies OutputPath.
    """
    def __init__(self, action, definition):
        self.action = action
        self.input_path = definition.get("InputPath", "$")
        self.result_path = definition.get("ResultPath", "$")
        self.output_path = definition.get("OutputPath", "$")

    def filter_input(self, data):
        """
        If the value of InputPath is null, that means that the raw input is
        discarded, and the effective input for the state is an empty JSON
        object, {}.
        """
        if self.input_path is None:
            return {}
        return apply_jsonpath(data, self.input_path)

    def filter_result(self, input, result):
        """
        An absent ResultPath and the root path "$" both mean the result
        replaces the input, null means the result is discarded, otherwise the
        result is placed in the effective input at the given Reference Path.
        """
        return apply_resultpath(input, result, self.result_path)

    def filter_output(self, output):
        """
        If the value of OutputPath is null, that means the input and result
        are discarded, and the effective output from the state is an empty
        JSON object, {}.
        """
        if self.output_path is None:
            return {}
        return apply_jsonpath(output, self.output_path)

    async def run(self, data):
        input = self.filter_input(data)
        result = await self.action.run(input)
        output = result.output
        if self.result_path not in (None, "$"):
            # The result is merged into the input, so it mustn't share any
            # objects with it. Pass, or a Task echoing its input, would
            # otherwise produce an output that contains itself.
            output = copy.deepcopy(output)
        output = self.filter_result(input, output)
        result.output = self.filter_output(output)
        return result


class Catch(object):
    """
    https://states-language.net/spec.html#fallback-states

    When the wrapped action fails the interpreter scans through the Catchers
    in array order, and when the Error Name appears in the value of a
    Catcher's ErrorEquals field (or that holds States.ALL) transitions the
    machine to the state named in the value of the Next field, passing the
    Error Output as its input. If no Catcher matches the error is re-raised.
    """
    def __init__(self, node, runnable):
        self.node = node
        self.runnable = runnable
        # Filtering may modify the raw input in place before failing, so keep
        # a copy when a Catcher passes the raw input on to its Next state.
        self.copy_input = any(catcher.result_path != "$" for catcher in node.catchers)

    def recover(self, raw_input, error):
        """
        Return the ExecutionResult of the first Catcher matching error, or
        re-raise error if none match.
        """
        for catcher in self.node.catchers:
            if catcher.matches(error.error):
                self.node.logger.info(
                    "{} State: {} caught error {}, transitioning to {}".format(
                        self.node.type, self.node.name, error.error, catcher.next.name
                    )
                )
                return ExecutionResult(catcher.error_output(raw_input, error), catcher.next)
        raise error

    async def run(self, data):
        raw_input = copy.deepcopy(data) if self.copy_input else data
        try:
            return await self.runnable.run(data)
        except ExecutionError as e:
            return self.recover(raw_input, e)


def _discard_outcome(task):
    # Retrieve the losing branch's outcome so asyncio doesn't report it as
    # "exception was never retrieved".
    if not task.cancelled():
        task.exception()


async def race_deadline(coroutine, seconds):
    """
    Run coroutine, raising Timeout if it hasn't completed within seconds.
    On timeout the coroutine's Task is cancelled but not awaited, so the race
    is settled by whichever outcome happens first even if the losing branch
    ignores cancellation.
    """
    task = asyncio.ensure_future(coroutine)
    try:
        done, pending = await asyncio.wait({task}, timeout=seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    task.cancel()
    task.add_done_callback(_discard_outcome)
    raise Timeout()


class TaskTimeout(object):
    """
    Tasks can optionally specify timeouts. Timeouts (the TimeoutSeconds field)
    are specified in seconds and MUST be positive integers. The timeout may
    also be taken from the raw state input using TimeoutSecondsPath.

    If the state runs longer than the specified timeout the interpreter fails
    the state with a States.Timeout Error Name. This layer wraps Catch, so a
    timeout is never offered to the state's own Catchers, though a
    TimeoutSecondsPath that fails to resolve is.
    """
    def __init__(self, node, runnable, timeout_seconds=None, timeout_seconds_path=None):
        self.node = node
        self.runnable = runnable
        self.timeout_seconds = timeout_seconds
        self.timeout_seconds_path = timeout_seconds_path

    def get_timeout(self, data):
        if self.timeout_seconds_path is None:
            return self.timeout_seconds
        timeout = apply_jsonpath(data, self.timeout_seconds_path)
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
            raise PathMatchFailure(
                "TimeoutSecondsPath '{}' did not resolve to a positive integer".format(
                    self.timeout_seconds_path
                )
            )
        return timeout

    async def run(self, data):
        try:
            timeout = self.get_timeout(data)
        except PathMatchFailure as e:
            # Offered to the Catchers like any other path failure.
            if isinstance(self.runnable, Catch):
                return self.runnable.recover(data, e)
            raise
        try:
            return await race_deadline(self.runnable.run(data), timeout)
        except Timeout:
            self.node.logger.warning(
                "{} State: {} timed out after {} seconds".format(
                    self.node.type, self.node.name, timeout
                )
            )
            raise
