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

from setuptools import setup, find_namespace_packages

setup(
    name="asl_interpreter",
    version="1.0.0",
    description="An interpreter for workflows written in the Amazon States Language (ASL).",
    long_description="An interpreter for workflows written in the Amazon States Language (ASL). It builds an executable graph from an ASL State Machine and runs executions of it using asyncio, supporting Pass, Wait, Succeed, Fail and Task states with InputPath, ResultPath, OutputPath, Catch and TimeoutSeconds.",
    packages=find_namespace_packages(include=["asl_interpreter", "asl_interpreter.*"]),
    python_requires=">=3.8",
    install_requires=["structlog>=21.5",
                      "ujson",
                      "jsonpath",
                      "aioprometheus>=22.3"],
    extras_require={"test": ["pytest"]},
)
