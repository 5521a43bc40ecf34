"""
tuberunner

Asyncio worker framework for beanstalkd tubes.
Typed handlers, per-job verdicts, all-or-nothing fleet start.
"""

from .config import RunnerConfig, normalize_configuration
from .errors import ConfigurationInvalid, StartFailure
from .lib.handler import Action, Handler
from .lib.logger import Logger, LogLevel
from .lib.registry import HandlerRegistry
from .lib.runner import Runner
from .lib.worker import Worker

__all__ = [
    "Action",
    "ConfigurationInvalid",
    "Handler",
    "HandlerRegistry",
    "LogLevel",
    "Logger",
    "Runner",
    "RunnerConfig",
    "StartFailure",
    "Worker",
    "normalize_configuration",
]
__version__ = "0.1.0"
