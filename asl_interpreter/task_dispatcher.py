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
Use the value of the "Resource" field of a Task state to determine the work to
execute. The ResourceRegistry maps Resource identifiers (any string, though ARNs
such as arn:aws:lambda:local::function:function-name are the usual convention)
to operations, which may be coroutine functions or plain callables taking the
Task's effective input and returning its result.

A registry is passed explicitly to the Factory that builds a state machine, so
there is no process wide registry and each state machine may be given its own.
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

import inspect, os

from asl_interpreter.asl_exceptions import ExecutionError, InvalidResource
from asl_interpreter.logger import init_logging


class ResourceRegistry(object):
    def __init__(self, resources=None):
        self.logger = init_logging(log_name="asl_interpreter")
        self.resources = {}
        for resource, operation in (resources or {}).items():
            self.register(resource, operation)

    def register(self, resource, operation=None):
        """
        Register operation as the implementation of resource. If operation is
        omitted this returns a decorator, so the following are equivalent:

            registry.register("arn:aws:rpcmessage:local::function:echo", echo)

            @registry.register("arn:aws:rpcmessage:local::function:echo")
            async def echo(input):
                return input
        """
        if operation is None:
            def decorator(fn):
                self.register(resource, fn)
                return fn
            return decorator

        if not callable(operation):
            raise TypeError("Operation for resource {} is not callable".format(resource))
        self.logger.debug("Registering resource {}".format(resource))
        self.resources[resource] = operation
        return operation

    def unregister(self, resource):
        self.resources.pop(resource, None)

    def __contains__(self, resource):
        return resource in self.resources

    def resolve(self, resource):
        """
        If resource starts with $ then attempt to look up its value from the
        environment, and if that fails use its original value. Raises
        InvalidResource if no operation is registered for the resource.
        """
        if isinstance(resource, str) and resource.startswith("$"):
            resource = os.environ.get(resource[1:], resource)
        operation = self.resources.get(resource)
        if operation is None:
            raise InvalidResource(
                "Specified Task Resource {} is not registered".format(resource)
            )
        return operation

    async def invoke(self, resource, input):
        """
        Invoke the operation registered for resource with the supplied input.
        Errors raised by the operation that are not already ExecutionErrors are
        reported using the pattern adopted by AWS Lambda, where the Error Name
        is the exception's class name and the Cause is its message.
        https://docs.aws.amazon.com/lambda/latest/dg/python-exceptions.html
        """
        operation = self.resolve(resource)
        try:
            result = operation(input)
            if inspect.isawaitable(result):
                result = await result
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(type(e).__name__, str(e))
        return result
