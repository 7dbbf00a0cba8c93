# utils package
from .logger import fields, get_logger, set_level
from .formatting import split_message

__all__ = ["fields", "get_logger", "set_level", "split_message"]
