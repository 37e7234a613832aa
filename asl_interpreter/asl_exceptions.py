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
Defines the errors relating to ASL itself as defined in
https://states-language.net/spec.html#errors

Every failure a running execution can surface is an ExecutionError, which
carries an Error Name (the classification matched by Catchers) and an optional
human-readable Cause.
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3


STATES_ALL = "States.ALL"


class ExecutionError(Exception):
    def __init__(self, error, cause=None):
        super().__init__(error, cause)
        self.error = error
        self.cause = cause

    def __str__(self):
        if self.cause is None:
            return str(self.error)
        return "{}: {}".format(self.error, self.cause)

    def to_dict(self):
        """
        The Error Output, as passed to the state named by a Catcher's Next.
        It MUST have a string-valued field named Error, containing the Error
        Name. It SHOULD have a string valued field named Cause.
        """
        output = {"Error": self.error}
        if self.cause is not None:
            output["Cause"] = self.cause
        return output


class Timeout(ExecutionError):
    error_name = "States.Timeout"

    def __init__(self, cause="Request timeout."):
        super().__init__(self.error_name, cause)


class ResultPathMatchFailure(ExecutionError):
    error_name = "States.ResultPathMatchFailure"

    def __init__(self, cause=None):
        super().__init__(self.error_name, cause)


class Runtime(ExecutionError):
    error_name = "States.Runtime"

    def __init__(self, cause=None):
        super().__init__(self.error_name, cause)


# Not defined in the ASL spec, raised when InputPath, OutputPath or one of the
# *Path fields can't be applied to the state's data.
class PathMatchFailure(Runtime):
    pass


class InvalidResource(ExecutionError):
    error_name = "InvalidResource"

    def __init__(self, cause=None):
        super().__init__(self.error_name, cause)
