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
A StateMachine is a built ASL state machine, ready to run executions.
https://states-language.net/spec.html#toplevelfields

    state_machine = StateMachine(asl, registry, name="simple_state_machine")
    output = await state_machine.execute({"lambda": "Success"})

Each call to execute is an independent execution over the same read only
graph, so executions may run concurrently. A failed execution raises the
ExecutionError that terminated it.
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

import time, uuid

from asl_interpreter.asl_exceptions import ExecutionError
from asl_interpreter.exceptions import DefinitionError
from asl_interpreter.logger import (
    init_logging,
    bind_execution_context,
    unbind_execution_context,
)
from asl_interpreter.state_factory import Factory, is_positive_integer
from asl_interpreter.state_layers import race_deadline

try:  # Attempt to use ujson if available https://pypi.org/project/ujson/
    import ujson as json
except ImportError:  # Fall back to standard library json
    import json

"""
The default State Machine execution timeout is 1 year 60*60*24*365 = 31536000
https://docs.aws.amazon.com/step-functions/latest/dg/limits.html
"""
DEFAULT_EXECUTION_TIMEOUT = 31536000


class StateMachine(object):
    def __init__(self, definition, registry=None, name=None, config=None, metrics=None):
        """
        :param definition: The ASL State Machine as a dict or a JSON string
        :param registry: ResourceRegistry used to look up Task Resources
        :param name: Name used in logs and metric labels
        :param config: The "state_engine" section of the engine config
        :param metrics: dict of metrics as returned by init_metrics
        :raises DefinitionError: If the definition can't be built
        """
        self.logger = init_logging(log_name="asl_interpreter")

        if isinstance(definition, (str, bytes)):
            try:
                definition = json.loads(definition)
            except ValueError as e:
                raise DefinitionError("State Machine is not valid JSON: {}".format(e))
        if not isinstance(definition, dict):
            raise DefinitionError("State Machine must be a JSON object")

        """
        A State Machine MUST have an object field named "States", whose fields
        represent the states, and MUST have a string field named "StartAt",
        whose value MUST exactly match one of the names of the "States" fields.
        """
        if "States" not in definition or "StartAt" not in definition:
            raise DefinitionError("State Machine must have StartAt and States fields")

        config = config or {}
        self.name = name or "StateMachine"
        self.definition = definition
        self.metrics = metrics or {}

        """
        A State Machine MAY have an integer field named "TimeoutSeconds". If
        provided, it provides the maximum number of seconds the machine is
        allowed to run. If the machine runs longer than the specified time,
        then the interpreter fails the machine with a States.Timeout Error Name.
        """
        self.timeout = definition.get(
            "TimeoutSeconds",
            config.get("execution_timeout", DEFAULT_EXECUTION_TIMEOUT),
        )
        if not is_positive_integer(self.timeout):
            raise DefinitionError("TimeoutSeconds must be a positive integer")

        self.factory = Factory.create(definition["States"], registry)
        self.start_state = self.factory.build(definition["StartAt"])
        self.logger.info("Created State Machine {}".format(self.name))

    async def execute(self, data=None, execution_name=None):
        """
        Run an execution of the State Machine with the supplied input. If no
        input is provided, the default is an empty JSON object, {}.
        Returns the execution's output or raises ExecutionError.
        """
        data = {} if data is None else data
        execution_name = execution_name or str(uuid.uuid4())
        labels = {"StateMachine": self.name}

        bind_execution_context(state_machine=self.name, execution=execution_name)
        self.logger.info("Execution {} of {} started".format(execution_name, self.name))
        if self.metrics:
            self.metrics["ExecutionsStarted"].inc(labels)
        start_time = time.time()
        try:
            output = await race_deadline(self.start_state.run(data), self.timeout)
        except ExecutionError as e:
            self.logger.warning(
                "Execution {} of {} failed: {}".format(execution_name, self.name, e)
            )
            if self.metrics:
                if e.error == "States.Timeout":
                    self.metrics["ExecutionsTimedOut"].inc(labels)
                self.metrics["ExecutionsFailed"].inc(labels)
            raise
        else:
            self.logger.info(
                "Execution {} of {} succeeded".format(execution_name, self.name)
            )
            if self.metrics:
                self.metrics["ExecutionsSucceeded"].inc(labels)
            return output
        finally:
            if self.metrics:
                duration = (time.time() - start_time) * 1000
                self.metrics["ExecutionTime"].observe(labels, duration)
            unbind_execution_context("state_machine", "execution")
