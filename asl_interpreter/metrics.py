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
Prometheus metrics intended to emulate Stepfunction CloudWatch metrics.
https://docs.aws.amazon.com/step-functions/latest/dg/procedure-cw-metrics.html

Metrics are only created if enabled in the config, e.g.
"metrics": {"implementation": "Prometheus", "namespace": "asl"}
Each call to init_metrics creates its own aioprometheus Registry so that more
than one engine may exist in a process without the metric names clashing.
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

from aioprometheus import Counter, Histogram, Registry

from asl_interpreter.logger import init_logging


def init_metrics(service_name, config):
    """
    Return a dict of execution metrics keyed by CloudWatch metric name, or an
    empty dict if metrics aren't enabled.
    """
    init_metrics.logger = init_logging(service_name)
    config = config or {}
    if config.get("implementation") != "Prometheus":
        return {}

    ns = config.get("namespace", "")
    if ns:
        init_metrics.logger.info("Enabling Prometheus Metrics in namespace: " + ns)
        ns += "_"
    else:
        init_metrics.logger.info("Enabling Prometheus Metrics")

    registry = Registry()
    return {
        "registry": registry,
        "ExecutionTime": Histogram(
            ns + "ExecutionTime",
            "The interval, in milliseconds, between the time the " +
            "execution starts and the time it closes.",
            registry=registry,
        ),
        "ExecutionsFailed": Counter(
            ns + "ExecutionsFailed",
            "The number of failed executions.",
            registry=registry,
        ),
        "ExecutionsStarted": Counter(
            ns + "ExecutionsStarted",
            "The number of started executions.",
            registry=registry,
        ),
        "ExecutionsSucceeded": Counter(
            ns + "ExecutionsSucceeded",
            "The number of successfully completed executions.",
            registry=registry,
        ),
        "ExecutionsTimedOut": Counter(
            ns + "ExecutionsTimedOut",
            "The number of executions that time out for any reason.",
            registry=registry,
        ),
    }
