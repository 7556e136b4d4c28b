"""Extend registry - maps extend names to their classes"""
import logging
from typing import Dict, List, Type

from .collectors.base import Extend
from .collectors.mdadm import MdadmExtend
from .collectors.nextcloud import NextcloudExtend
from .collectors.opensearch import OpensearchExtend
from .collectors.pihole import PiholeExtend
from .collectors.postgres import PostgresExtend
from .collectors.samba import SambaExtend
from .collectors.softnet import SoftnetExtend
from .collectors.text_blob import TextBlobExtend
from .collectors.zfs import ZfsExtend
from .logs.http_access_log import HttpAccessLogExtend
from .logs.privoxy import PrivoxyExtend

logger = logging.getLogger("extends.manager")


class ExtendManager:
    """Looks up extends by name and reports which ones this host can run"""

    # Registry mapping extend names (as used in snmpd.conf) to extend classes
    EXTEND_REGISTRY: Dict[str, Type[Extend]] = {
        "postgres": PostgresExtend,
        "privoxy": PrivoxyExtend,
        "pihole": PiholeExtend,
        "nextcloud": NextcloudExtend,
        "opensearch": OpensearchExtend,
        "zfs": ZfsExtend,
        "samba": SambaExtend,
        "mdadm": MdadmExtend,
        "linux_softnet_stat": SoftnetExtend,
        "text_blob": TextBlobExtend,
        "http_access_log_combined": HttpAccessLogExtend,
    }

    @classmethod
    def names(cls) -> List[str]:
        return list(cls.EXTEND_REGISTRY)

    @classmethod
    def get(cls, name: str) -> Type[Extend]:
        """Raises KeyError for unknown names"""
        return cls.EXTEND_REGISTRY[name]

    @classmethod
    def availability(cls) -> Dict[str, bool]:
        """Check each extend's source with default config"""
        result = {}
        for name, extend_class in cls.EXTEND_REGISTRY.items():
            try:
                result[name] = extend_class().is_available()
            except Exception as e:
                logger.warning(f"Failed to check extend {name}: {e}")
                result[name] = False
        return result
