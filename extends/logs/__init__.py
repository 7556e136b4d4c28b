"""Log extends package - summarizes the recent tail of log files"""

from .base import LogExtend, read_backwards
from .http_access_log import HttpAccessLogExtend
from .privoxy import PrivoxyExtend

__all__ = [
    'LogExtend',
    'read_backwards',
    'HttpAccessLogExtend',
    'PrivoxyExtend',
]
