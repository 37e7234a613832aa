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
# PYTHONPATH=.. python3 test_state_factory.py
#
"""
Tests building State Machine graphs with the Factory. These mirror the
structure checks that the graph's nodes and their Next and Catch Next
references are linked to the expected StateNode objects.
"""

import sys
assert sys.version_info >= (3, 0) # Bomb out if not running Python3

import asyncio
import unittest

from asl_interpreter.exceptions import DefinitionError
from asl_interpreter.state_factory import Factory
from asl_interpreter.task_dispatcher import ResourceRegistry


async def sleep_task(input):
    """
    The "test" resource, it sleeps for the number of seconds given by the
    first item of SleepSeconds, if present, and then returns its input.
    """
    seconds = input.get("SleepSeconds", [0])[0] if isinstance(input, dict) else 0
    await asyncio.sleep(seconds)
    return input


def create_registry():
    registry = ResourceRegistry()
    registry.register("test", sleep_task)
    return registry


class TestFactory(unittest.TestCase):

    def test_linear_graph(self):
        json = {
            "StartAt": "One",
            "States": {
                "One": {"Type": "Pass", "Next": "Two"},
                "Two": {"Type": "Wait", "Next": "Three"},
                "Three": {"Type": "Pass", "Next": "Four"},
                "Four": {"Type": "Succeed"},
            },
        }

        factory = Factory.create(json["States"])
        machine = factory.build(json["StartAt"])

        names = []
        state = machine
        while state is not None:
            names.append(state.name)
            state = state.next
        self.assertEqual(names, ["One", "Two", "Three", "Four"])
        self.assertEqual(machine.next.type, "Wait")

    def test_task_catch_and_next_share_node(self):
        json = {
            "StartAt": "One",
            "States": {
                "One": {
                    "Type": "Task",
                    "Resource": "test",
                    "Catch": [{
                        "ErrorEquals": ["States.ALL"],
                        "Next": "Two",
                    }],
                    "Next": "Two",
                },
                "Two": {"Type": "Succeed"},
            },
        }

        factory = Factory.create(json["States"], create_registry())
        machine = factory.build(json["StartAt"])

        self.assertEqual(machine.name, "One")
        self.assertEqual(machine.type, "Task")
        self.assertEqual(len(machine.catchers), 1)
        self.assertIs(machine.catchers[0].next, machine.next)
        self.assertEqual(machine.catchers[0].error_equals, ["States.ALL"])

        state = machine.next
        self.assertEqual(state.name, "Two")
        self.assertEqual(state.type, "Succeed")
        self.assertIsNone(state.next)
        self.assertEqual(state.catchers, [])

        result = asyncio.run(machine.run({}))
        self.assertEqual(result, {})

    def test_task_catch_and_next_distinct_nodes(self):
        json = {
            "StartAt": "One",
            "States": {
                "One": {
                    "Type": "Task",
                    "Resource": "test",
                    "TimeoutSeconds": 1,
                    "Catch": [{
                        "ErrorEquals": ["States.ALL"],
                        "Next": "Three",
                    }],
                    "Next": "Two",
                },
                "Two": {"Type": "Succeed"},
                "Three": {"Type": "Fail", "Error": "Broken"},
            },
        }

        machine = Factory.create(json["States"], create_registry()).build(json["StartAt"])
        self.assertEqual(machine.catchers[0].next.name, "Three")
        self.assertEqual(machine.catchers[0].next.type, "Fail")
        self.assertEqual(machine.next.name, "Two")
        self.assertIsNot(machine.catchers[0].next, machine.next)

    def test_forward_references_and_cycles(self):
        states = {
            "One": {"Type": "Pass", "Next": "Two"},
            "Two": {"Type": "Pass", "Next": "One"},
            "Self": {"Type": "Wait", "Seconds": 1, "Next": "Self"},
        }
        factory = Factory.create(states)
        one = factory.build("One")
        self.assertIs(one.next.next, one)

        self_loop = factory.build("Self")
        self.assertIs(self_loop.next, self_loop)

    def test_graph_is_built_once(self):
        states = {
            "One": {"Type": "Pass", "Next": "Two"},
            "Two": {"Type": "Succeed"},
        }
        factory = Factory.create(states)
        one = factory.build("One")
        self.assertIs(factory.build("One"), one)
        self.assertIs(factory.build("Two"), one.next)

    def test_end_and_implicit_end(self):
        states = {
            "One": {"Type": "Pass", "End": True},
            "Two": {"Type": "Pass"},
        }
        factory = Factory.create(states)
        self.assertIsNone(factory.build("One").next)
        self.assertIsNone(factory.build("Two").next)

    def test_default_registry(self):
        factory = Factory.create({"One": {"Type": "Succeed"}})
        self.assertIsInstance(factory.registry, ResourceRegistry)


class TestFactoryDefinitionErrors(unittest.TestCase):

    def assertDefinitionError(self, states, start="One"):
        with self.assertRaises(DefinitionError):
            Factory.create(states, create_registry()).build(start)

    def test_missing_start_state(self):
        self.assertDefinitionError({"Two": {"Type": "Succeed"}})

    def test_missing_next(self):
        self.assertDefinitionError({"One": {"Type": "Pass", "Next": "Two"}})

    def test_missing_next_in_unreachable_state(self):
        self.assertDefinitionError({
            "One": {"Type": "Succeed"},
            "Orphan": {"Type": "Pass", "Next": "Nowhere"},
        })

    def test_missing_catch_next(self):
        self.assertDefinitionError({
            "One": {
                "Type": "Task",
                "Resource": "test",
                "Catch": [{"ErrorEquals": ["States.ALL"], "Next": "Nowhere"}],
                "Next": "Two",
            },
            "Two": {"Type": "Succeed"},
        })

    def test_unknown_type(self):
        self.assertDefinitionError({"One": {"Type": "Sleep"}})
        self.assertDefinitionError({"One": {"Next": "One"}})
        self.assertDefinitionError({"One": "Pass"})

    def test_reserved_types(self):
        self.assertDefinitionError({
            "One": {"Type": "Choice", "Choices": [], "Default": "Two"},
            "Two": {"Type": "Succeed"},
        })
        self.assertDefinitionError({
            "One": {"Type": "Parallel", "Branches": [], "End": True},
        })

    def test_terminal_states_have_no_next(self):
        self.assertDefinitionError({
            "One": {"Type": "Succeed", "Next": "Two"},
            "Two": {"Type": "Succeed"},
        })
        self.assertDefinitionError({
            "One": {"Type": "Fail", "Error": "E", "Next": "Two"},
            "Two": {"Type": "Succeed"},
        })

    def test_next_and_end(self):
        self.assertDefinitionError({
            "One": {"Type": "Pass", "Next": "Two", "End": True},
            "Two": {"Type": "Succeed"},
        })

    def test_catch_and_timeout_only_on_task(self):
        self.assertDefinitionError({
            "One": {
                "Type": "Pass",
                "Catch": [{"ErrorEquals": ["States.ALL"], "Next": "Two"}],
                "Next": "Two",
            },
            "Two": {"Type": "Succeed"},
        })
        self.assertDefinitionError({"One": {"Type": "Wait", "TimeoutSeconds": 1}})

    def test_invalid_catchers(self):
        for catch in [
            [{"ErrorEquals": [], "Next": "Two"}],
            [{"ErrorEquals": "States.ALL", "Next": "Two"}],
            [{"ErrorEquals": ["States.ALL"]}],
            {"ErrorEquals": ["States.ALL"], "Next": "Two"},
        ]:
            self.assertDefinitionError({
                "One": {"Type": "Task", "Resource": "test", "Catch": catch, "Next": "Two"},
                "Two": {"Type": "Succeed"},
            })

    def test_invalid_timeout_seconds(self):
        for timeout in [0, -1, 1.5, "1", True]:
            self.assertDefinitionError({
                "One": {"Type": "Task", "Resource": "test", "TimeoutSeconds": timeout},
            })

    def test_task_without_resource(self):
        self.assertDefinitionError({"One": {"Type": "Task", "End": True}})

    def test_invalid_wait(self):
        self.assertDefinitionError({
            "One": {"Type": "Wait", "Seconds": 1, "Timestamp": "2019-08-08T10:55:25Z"},
        })
        self.assertDefinitionError({"One": {"Type": "Wait", "Seconds": -1}})
        self.assertDefinitionError({"One": {"Type": "Wait", "Seconds": "1"}})

    def test_states_must_be_an_object(self):
        with self.assertRaises(DefinitionError):
            Factory.create([{"Type": "Succeed"}])


if __name__ == "__main__":
    unittest.main()
