"""Collectors package - extends polling databases, APIs, CLI tools and /proc"""

from .base import Extend
from .mdadm import MdadmExtend
from .nextcloud import NextcloudExtend
from .opensearch import OpensearchExtend
from .pihole import PiholeExtend
from .postgres import PostgresExtend
from .samba import SambaExtend
from .softnet import SoftnetExtend
from .text_blob import TextBlobExtend
from .zfs import ZfsExtend

__all__ = [
    # Base class
    'Extend',

    # Extends
    'MdadmExtend',
    'NextcloudExtend',
    'OpensearchExtend',
    'PiholeExtend',
    'PostgresExtend',
    'SambaExtend',
    'SoftnetExtend',
    'TextBlobExtend',
    'ZfsExtend',
]
