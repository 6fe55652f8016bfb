"""Reply generators for the chat responder."""

from .base import ResponseGenerator
from .echo import EchoResponseGenerator

__all__ = ["ResponseGenerator", "EchoResponseGenerator"]
