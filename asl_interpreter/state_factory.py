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
Builds an executable graph of StateNodes from the "States" field of an ASL
state machine, a mapping of state name to state definition.

The graph is built in two passes. The first creates a StateNode for every
definition, validating it and composing its behaviour, with Next and Catcher
Next fields still holding state names. The second replaces those names with
the StateNodes they refer to. This lets states refer to states defined later
in the document and allows the graph to contain cycles.

    factory = Factory.create(asl["States"], registry)
    machine = factory.build(asl["StartAt"])
    output = await machine.run({"a": "foo"})
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

from asl_interpreter.exceptions import DefinitionError
from asl_interpreter.logger import init_logging
from asl_interpreter.state_layers import Filter, Catch, TaskTimeout
from asl_interpreter.states import Catcher, StateNode, STATE_TYPES, TERMINAL_STATE_TYPES
from asl_interpreter.task_dispatcher import ResourceRegistry


def is_number(value):
    return not isinstance(value, bool) and isinstance(value, (int, float))


def is_positive_integer(value):
    return not isinstance(value, bool) and isinstance(value, int) and value > 0


class Factory(object):
    @classmethod
    def create(cls, definitions, registry=None):
        return cls(definitions, registry)

    def __init__(self, definitions, registry=None):
        self.logger = init_logging(log_name="asl_interpreter")
        if not isinstance(definitions, dict):
            raise DefinitionError("States must be an object keyed by state name")
        self.definitions = definitions
        self.registry = registry if registry is not None else ResourceRegistry()
        self.nodes = None

    def build(self, start_name):
        """
        Return the StateNode for start_name. The whole graph is built and
        linked on the first call and shared by subsequent calls.
        """
        if start_name not in self.definitions:
            raise DefinitionError("Start state {} does not exist".format(start_name))

        if self.nodes is None:
            nodes = {
                name: self.create_node(name, definition)
                for name, definition in self.definitions.items()
            }
            for node in nodes.values():
                self.link_node(node, nodes)
            self.nodes = nodes
            self.logger.info("Built state machine graph with {} states".format(len(nodes)))

        return self.nodes[start_name]

    def create_node(self, name, definition):
        if not isinstance(definition, dict):
            raise DefinitionError("State {} must be an object".format(name))

        state_type = definition.get("Type")
        if state_type not in STATE_TYPES:
            raise DefinitionError(
                "State {} has unsupported Type {}".format(name, state_type)
            )
        state_class = STATE_TYPES[state_type]
        if state_class is None:
            raise DefinitionError(
                "State {} has Type {}, which is not yet supported".format(name, state_type)
            )

        self.validate(name, state_type, definition)

        node = StateNode(name, state_type, self.logger)
        if state_type not in TERMINAL_STATE_TYPES and not definition.get("End"):
            node.next = definition.get("Next")

        node.catchers = [
            Catcher(
                catcher["ErrorEquals"],
                catcher["Next"],
                catcher.get("ResultPath", "$"),
            )
            for catcher in definition.get("Catch", [])
        ]

        runnable = Filter(state_class(node, definition, self.registry), definition)
        if state_type == "Task":
            if node.catchers:
                runnable = Catch(node, runnable)
            if "TimeoutSeconds" in definition or "TimeoutSecondsPath" in definition:
                runnable = TaskTimeout(
                    node,
                    runnable,
                    definition.get("TimeoutSeconds"),
                    definition.get("TimeoutSecondsPath"),
                )
        node.runnable = runnable
        return node

    def link_node(self, node, nodes):
        def resolve(name, field):
            if name not in nodes:
                raise DefinitionError(
                    "State {} has {} {}, which does not exist".format(
                        node.name, field, name
                    )
                )
            return nodes[name]

        if node.next is not None:
            node.next = resolve(node.next, "Next")
        for catcher in node.catchers:
            catcher.next = resolve(catcher.next, "Catch Next")

    def validate(self, name, state_type, definition):
        def invalid(message):
            raise DefinitionError("State {} {}".format(name, message))

        if state_type in TERMINAL_STATE_TYPES:
            if "Next" in definition:
                invalid("is a terminal {} state and cannot have Next".format(state_type))
        elif "Next" in definition and definition.get("End"):
            invalid("cannot have both Next and End")

        if state_type != "Task":
            for field in ("Catch", "TimeoutSeconds", "TimeoutSecondsPath"):
                if field in definition:
                    invalid("has {} which is only supported by Task states".format(field))
        else:
            if not isinstance(definition.get("Resource"), str):
                invalid("must have a Resource string")
            if "TimeoutSeconds" in definition:
                if "TimeoutSecondsPath" in definition:
                    invalid("cannot have both TimeoutSeconds and TimeoutSecondsPath")
                if not is_positive_integer(definition["TimeoutSeconds"]):
                    invalid("TimeoutSeconds must be a positive integer")

            catch = definition.get("Catch", [])
            if not isinstance(catch, list):
                invalid("Catch must be an array of Catchers")
            for catcher in catch:
                if not isinstance(catcher, dict):
                    invalid("Catch must be an array of Catchers")
                error_equals = catcher.get("ErrorEquals")
                if not isinstance(error_equals, list) or len(error_equals) == 0:
                    invalid("has a Catcher with an empty ErrorEquals")
                if "Next" not in catcher:
                    invalid("has a Catcher without Next")

        if state_type == "Wait":
            fields = [
                field for field in ("Seconds", "SecondsPath", "Timestamp", "TimestampPath")
                if field in definition
            ]
            if len(fields) > 1:
                invalid("must contain only one of {}".format(", ".join(fields)))
            seconds = definition.get("Seconds")
            if "Seconds" in definition and (not is_number(seconds) or seconds < 0):
                invalid("Seconds must be a non-negative number")
