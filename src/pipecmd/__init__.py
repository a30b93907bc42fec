"""pipecmd: shell-free process pipelines built from commands, files and text."""

import logging

from .builder import CommandFactory, cmd
from .config import get_settings
from .errors import CmdError
from .execution import execute
from .models import CommandSpec, Output
from .nodes import FileSource, NodeKind, ProcessNode, StdinSource, TextSource
from .streams import Ambient, OutputPolicy, StdinPolicy, StreamKind, StreamRequest

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Ambient",
    "CmdError",
    "CommandFactory",
    "CommandSpec",
    "FileSource",
    "NodeKind",
    "Output",
    "OutputPolicy",
    "ProcessNode",
    "StdinPolicy",
    "StdinSource",
    "StreamKind",
    "StreamRequest",
    "TextSource",
    "__version__",
    "cmd",
    "execute",
    "get_settings",
]

__version__ = "0.0.1"
