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
The executable units of a state machine graph.

A StateNode is produced by the Factory for each named state definition. Its
behaviour is a "runnable", an object with an async run(data) method returning
an ExecutionResult, built by wrapping one of the primitive state actions below
in the Filter, Catch and Timeout layers from state_layers.

https://states-language.net/spec.html#statetypes
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

import asyncio, copy, time
from datetime import datetime, timezone, timedelta

from asl_interpreter.asl_exceptions import ExecutionError, PathMatchFailure, STATES_ALL
from asl_interpreter.state_engine_paths import apply_jsonpath, apply_resultpath


def parse_rfc3339_datetime(rfc3339):
    """
    Parse an RFC3339 (https://www.ietf.org/rfc/rfc3339.txt) format string into
    a datetime object which is essentially the inverse operation to
    datetime.now(timezone.utc).astimezone().isoformat()
    We primarily need this in the Wait state so we can compute timeouts etc.
    """
    rfc3339 = rfc3339.strip()  # Remove any leading/trailing whitespace
    if rfc3339[-1] in "Zz":
        date = rfc3339[:-1]
        offset = "+00:00"
    else:
        date = rfc3339[:-6]
        offset = rfc3339[-6:]

    if "." not in date:
        date = date + ".0"
    raw_datetime = datetime.strptime(date, "%Y-%m-%dT%H:%M:%S.%f")
    delta = timedelta(hours=int(offset[-5:-3]), minutes=int(offset[-2:]))
    if offset[0] == "-":
        delta = -delta
    return raw_datetime.replace(tzinfo=timezone(delta))


class ExecutionResult(object):
    """
    The outcome of running one state: its output and the node to transition
    to, which is None when the execution has finished.
    """
    __slots__ = ("output", "next")

    def __init__(self, output, next=None):
        self.output = output
        self.next = next

    def __repr__(self):
        return "ExecutionResult(output={!r}, next={!r})".format(
            self.output, self.next.name if self.next else None
        )


class Catcher(object):
    """
    A single entry of a state's Catch field. next holds the name of the target
    state until the Factory links the graph, then the StateNode itself.
    """
    def __init__(self, error_equals, next, result_path="$"):
        self.error_equals = error_equals
        self.next = next
        self.result_path = result_path

    def matches(self, error):
        return error in self.error_equals or STATES_ALL in self.error_equals

    def error_output(self, data, error):
        """
        A Catcher MAY have a ResultPath field, which works exactly like a
        state's top-level ResultPath, and may be used to inject the Error
        Output into the state's original raw input to create the input for the
        Catcher's Next state. The default value is $, meaning that the output
        consists entirely of the Error Output.
        """
        return apply_resultpath(data, error.to_dict(), self.result_path)


class StateNode(object):
    def __init__(self, name, type, logger):
        self.name = name
        self.type = type
        self.next = None
        self.catchers = []
        self.runnable = None
        self.logger = logger

    def __repr__(self):
        return "StateNode(name={!r}, type={!r})".format(self.name, self.type)

    async def step(self, data):
        """
        Run this state alone, returning an ExecutionResult holding its output
        and the next StateNode to run.
        """
        self.logger.debug("Entering {} State: {}".format(self.type, self.name))
        return await self.runnable.run(data)

    async def run(self, data):
        """
        Run an execution starting at this state and following transitions until
        a terminal state is reached, returning the execution's output. Failures
        are raised as ExecutionError. The input is copied, so any number of
        executions may run concurrently over the same graph.
        """
        data = copy.deepcopy(data)
        node = self
        while node is not None:
            result = await node.step(data)
            data = result.output
            node = result.next
        return data


"""
The primitive state actions. Each is created for a StateNode, whose next field
is read when the action completes as it is only set once the graph is linked.
"""
class PassState(object):
    """
    https://states-language.net/spec.html#pass-state

    The Pass State simply passes its input to its output, performing no work.
    A Pass State MAY have a field named Result. If present, its value is
    treated as the output of a virtual task.
    """
    def __init__(self, node, definition, registry=None):
        self.node = node
        self.has_result = "Result" in definition
        self.result = definition.get("Result")

    async def run(self, data):
        output = copy.deepcopy(self.result) if self.has_result else data
        return ExecutionResult(output, self.node.next)


class WaitState(object):
    """
    https://states-language.net/spec.html#wait-state

    A Wait state causes the interpreter to delay the machine from continuing
    for a specified time. The time can be specified as a wait duration in
    seconds, or an absolute expiry time as an ISO-8601 extended offset
    date-time format string, either directly or as a Reference Path to the
    effective input such as "TimestampPath": "$.expirydate"
    """
    def __init__(self, node, definition, registry=None):
        self.node = node
        self.seconds = definition.get("Seconds")
        self.seconds_path = definition.get("SecondsPath")
        self.timestamp = definition.get("Timestamp")
        self.timestamp_path = definition.get("TimestampPath")

    def get_delay_from_rfc3339_datetime(self, rfc3339):
        try:
            target_timestamp = parse_rfc3339_datetime(rfc3339).timestamp()
            return target_timestamp - time.time()
        except (ValueError, IndexError, AttributeError):
            self.node.logger.warning(
                "timestamp {} failed to parse correctly, "
                "defaulting to zero delay".format(rfc3339)
            )
            return 0

    def get_delay(self, data):
        if self.seconds is not None:
            return self.seconds
        if self.seconds_path is not None:
            seconds = apply_jsonpath(data, self.seconds_path)
            if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
                raise PathMatchFailure(
                    "SecondsPath '{}' did not resolve to a number".format(
                        self.seconds_path
                    )
                )
            return seconds
        if self.timestamp is not None:
            return self.get_delay_from_rfc3339_datetime(self.timestamp)
        if self.timestamp_path is not None:
            timestamp = apply_jsonpath(data, self.timestamp_path)
            return self.get_delay_from_rfc3339_datetime(timestamp)
        return 0

    async def run(self, data):
        delay = self.get_delay(data)
        # Timestamps in the past give a negative delay, so don't wait at all.
        await asyncio.sleep(delay if delay > 0 else 0)
        return ExecutionResult(data, self.node.next)


class SucceedState(object):
    """
    https://states-language.net/spec.html#succeed-state

    The Succeed State terminates a state machine successfully. Because Succeed
    States are terminal states, they have no Next field.
    """
    def __init__(self, node, definition, registry=None):
        self.node = node

    async def run(self, data):
        return ExecutionResult(data, None)


class FailState(object):
    """
    https://states-language.net/spec.html#fail-state

    The Fail State terminates the machine and marks it as a failure, using its
    Error and Cause fields as the execution's error.
    """
    def __init__(self, node, definition, registry=None):
        self.node = node
        self.error = definition.get("Error")
        self.cause = definition.get("Cause")

    async def run(self, data):
        raise ExecutionError(self.error, self.cause)


class TaskState(object):
    """
    https://states-language.net/spec.html#task-state

    The Task State causes the interpreter to execute the work identified by
    the state's Resource field, looked up in the ResourceRegistry.
    """
    def __init__(self, node, definition, registry=None):
        self.node = node
        self.resource = definition.get("Resource")
        self.registry = registry

    async def run(self, data):
        result = await self.registry.invoke(self.resource, data)
        return ExecutionResult(result, self.node.next)


"""
The closed set of state types. Choice and Parallel are recognised but not yet
supported, the Factory rejects definitions using them.
"""
STATE_TYPES = {
    "Pass": PassState,
    "Wait": WaitState,
    "Succeed": SucceedState,
    "Fail": FailState,
    "Task": TaskState,
    "Choice": None,
    "Parallel": None,
}

TERMINAL_STATE_TYPES = ("Succeed", "Fail")
