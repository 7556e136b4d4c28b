import argparse
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Type

from ..config import ExtendConfig
from ..envelope import Envelope
from ..errors import ExtendError, SourceError


class Extend(ABC):
    """Base class for all extends"""

    name: str = "extend"
    version: int = 1
    description: str = ""
    config_model: Type[ExtendConfig] = ExtendConfig
    default_config: Optional[str] = None
    default_cache: Optional[str] = None
    compress_by_default: bool = False

    def __init__(self, config: Optional[ExtendConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config if config is not None else self.config_model()
        self.logger = logger or logging.getLogger(f"extends.{self.name}")

    @classmethod
    def add_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add extend specific flags. Override in subclasses."""

    def apply_args(self, args: argparse.Namespace) -> None:
        """Override config values with command line flags if provided. Override in subclasses."""

    def is_available(self) -> bool:
        """Check if this extend's source exists on this host. Override in subclasses for specific checks."""
        return True  # Default: always available

    def cache_prefix(self) -> Path:
        """Prefix for <prefix>.json / <prefix>.snmp cache files"""
        return Path(self.default_cache or f"/var/cache/librenms/{self.name}")

    @abstractmethod
    def collect(self) -> Dict[str, Any]:
        """Collect stats and return the envelope's data dict"""

    def run(self) -> Envelope:
        """Collect with error handling, always returning an envelope"""
        try:
            start_time = time.time()
            data = self.collect()
            collection_time = time.time() - start_time
            self.logger.debug(f"{self.name}: collected {len(data)} fields in {collection_time:.2f}s")
            return Envelope(data=data, version=self.version)

        except ExtendError as e:
            self.logger.error(f"{self.name} collection failed: {e}")
            return Envelope(data=e.data, version=self.version, error=e.code, errorString=str(e))

        except Exception as e:
            self.logger.exception(f"{self.name} collection failed unexpectedly: {e}")
            return Envelope(version=self.version, error=SourceError.code, errorString=f"{type(e).__name__}: {e}")
