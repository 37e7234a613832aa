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
Logging for the ASL interpreter. Records go to stderr using the standard
library logging module, either as plain text lines or, when the environment
variable USE_STRUCTURED_LOGGING is "true", as JSON objects rendered by
structlog so that they can be ingested by log aggregation tooling.

Every record logged while an execution is running carries the name of the
State Machine and of the execution. StateMachine.execute binds these with
bind_execution_context, and because they are held in structlog.contextvars
they follow the asyncio Task running the execution, including the Tasks
spawned for TimeoutSeconds deadlines, without leaking into other executions.

    logger = init_logging(log_name="asl_interpreter")
    bind_execution_context(state_machine="simple_state_machine", execution="1")
    logger.info("Execution started")
"""

import sys
assert sys.version_info >= (3, 0)  # Bomb out if not running Python3

import os, logging, logging.config
import structlog

try:  # Attempt to use ujson if available https://pypi.org/project/ujson/
    import ujson as json
except ImportError:  # Fall back to standard library json
    import json

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARN,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

TEXT_FORMAT = "[%(asctime)s] %(levelname)-8s - %(name)-15s : %(message)s"


def add_execution_context(logger, method_name, event_dict):
    # stdlib records don't pass through structlog.contextvars.merge_contextvars
    for key, value in structlog.contextvars.get_contextvars().items():
        event_dict.setdefault(key, value)
    return event_dict


# Processors shared by structlog loggers and stdlib records ("foreign" records)
shared_processors = [
    add_execution_context,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", key="@timestamp"),
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def configure_structlog():
    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_formatter(structured):
    if structured:
        return structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(json.dumps),
            foreign_pre_chain=shared_processors,
        )
    return logging.Formatter(TEXT_FORMAT)


def bind_execution_context(**kwargs):
    """
    Bind key/values to the current asyncio context, they are added to every
    structured log record until unbind_execution_context is called.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_execution_context(*keys):
    structlog.contextvars.unbind_contextvars(*keys)


def init_logging(log_name, log_level=logging.INFO):
    """
    Create, or return the already initialised, logger named log_name.

    :param log_name: Name of log, the interpreter modules all use "asl_interpreter"
    :type log_name: str
    :param log_level: Level used unless overridden by LOG_LEVEL
    :return: Logger to use

    Environment variables:
    LOG_LEVEL              DEBUG, INFO, WARN(ING), ERROR or CRITICAL
    USE_STRUCTURED_LOGGING "true" selects JSON records rendered by structlog
    LOG_CONFIG_FILE        An INI format logging configuration file, see
    https://docs.python.org/3/library/logging.config.html#logging.config.fileConfig
    """
    logger = logging.getLogger(log_name)
    if logger.hasHandlers():
        return logger

    log_level = LOG_LEVELS.get(os.environ.get("LOG_LEVEL", "").upper(), log_level)
    structured = os.environ.get("USE_STRUCTURED_LOGGING", "false").lower() == "true"
    if structured:
        configure_structlog()

    log_config_file = os.environ.get("LOG_CONFIG_FILE", "")
    if os.path.isfile(log_config_file):
        logging.config.fileConfig(log_config_file, disable_existing_loggers=False)
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(create_formatter(structured))
        logger.addHandler(handler)
        logger.setLevel(log_level)

    logger.debug("DEBUG enabled")
    return logger
