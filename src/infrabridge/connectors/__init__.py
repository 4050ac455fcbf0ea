from .base import Connector
from .http import HttpConnector
from .process import CommandResult, CommandRunner

__all__ = ["CommandResult", "CommandRunner", "Connector", "HttpConnector"]
