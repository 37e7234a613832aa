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
This is the main application entry point to the ASL interpreter. The
WorkflowEngine reads the (optional) JSON configuration file, applies any
environment variable overrides, initialises logging and metrics and then
holds the State Machines created on it along with the ResourceRegistry their
Task states use.

    engine = WorkflowEngine("config.json")

    @engine.registry.register("arn:aws:rpcmessage:local::function:echo")
    async def echo(input):
        return input

    engine.create_state_machine("simple_state_machine", asl)
    output = await engine.start_execution("simple_state_machine", {"a": "foo"})
"""

import sys
assert sys.version_info >= (3, 6)  # Bomb out if not running Python3.6

import os

from asl_interpreter.logger import init_logging
from asl_interpreter.metrics import init_metrics
from asl_interpreter.state_machine import StateMachine, DEFAULT_EXECUTION_TIMEOUT
from asl_interpreter.task_dispatcher import ResourceRegistry

try:  # Attempt to use ujson if available https://pypi.org/project/ujson/
    import ujson as json
except ImportError:  # Fall back to standard library json
    import json


def load_config(configuration_file=None, config=None, logger=None):
    """
    :param configuration_file: Path to the configuration file, optional
    :type configuration_file: str
    :param config: Configuration dict used instead of reading a file
    :type config: dict
    :raises IOError: If configuration file does not exist, or is not readable
    :raises ValueError: If configuration file does not contain valid JSON
    """
    logger = logger or init_logging(log_name="asl_interpreter")

    if configuration_file:
        try:
            with open(configuration_file, "r") as fp:
                config = json.load(fp)
        except IOError:
            logger.error(
                "Unable to read configuration file: {}".format(configuration_file)
            )
            raise
        except ValueError:
            logger.error("Configuration file does not contain valid JSON")
            raise
    config = dict(config or {})

    # Provide defaults for any unset config key
    config["state_engine"] = dict(config.get("state_engine") or {})
    config["metrics"] = dict(config.get("metrics") or {})

    """
    Override config values if a field is set as an environment variable.
    There is also a USE_STRUCTURED_LOGGING environment variable used by
    the logger to select between automation friendly structured logging
    or more human readable "traditional" logs.
    """
    se = config["state_engine"]
    se["execution_timeout"] = int(os.environ.get(
        "STATE_ENGINE_EXECUTION_TIMEOUT",
        se.get("execution_timeout", DEFAULT_EXECUTION_TIMEOUT)
    ))

    me = config["metrics"]
    me["implementation"] = os.environ.get(
        "METRICS_IMPLEMENTATION", me.get("implementation", "None")
    )
    me["namespace"] = os.environ.get("METRICS_NAMESPACE", me.get("namespace", ""))

    return config


class WorkflowEngine(object):
    def __init__(self, configuration_file=None, config=None, registry=None):
        # Initialise logger
        self.logger = init_logging(log_name="asl_interpreter")
        self.config = load_config(configuration_file, config, self.logger)
        self.logger.info("Creating WorkflowEngine, using {} JSON parser".format(json.__name__))

        self.registry = registry if registry is not None else ResourceRegistry()
        self.metrics = init_metrics("asl_interpreter", self.config["metrics"])

        # State Machines keyed by name.
        self.state_machines = {}

    def create_state_machine(self, name, definition):
        """
        Build and store a State Machine, replacing any existing State Machine
        of the same name. Raises DefinitionError if it can't be built.
        """
        state_machine = StateMachine(
            definition,
            self.registry,
            name=name,
            config=self.config["state_engine"],
            metrics=self.metrics,
        )
        self.state_machines[name] = state_machine
        return state_machine

    def describe_state_machine(self, name):
        state_machine = self.state_machines.get(name)
        if state_machine is None:
            raise KeyError("State Machine {} does not exist".format(name))
        return {"name": name, "definition": state_machine.definition}

    def delete_state_machine(self, name):
        self.state_machines.pop(name, None)

    async def start_execution(self, name, data=None, execution_name=None):
        state_machine = self.state_machines.get(name)
        if state_machine is None:
            raise KeyError("State Machine {} does not exist".format(name))
        return await state_machine.execute(data, execution_name)
