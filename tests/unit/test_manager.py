"""Unit tests for the extend registry"""
import pytest

from extends.collectors.base import Extend
from extends.manager import ExtendManager


class TestExtendManager:
    """Test looking up extends by name"""

    def test_names(self):
        assert ExtendManager.names() == [
            "postgres", "privoxy", "pihole", "nextcloud", "opensearch", "zfs",
            "samba", "mdadm", "linux_softnet_stat", "text_blob", "http_access_log_combined",
        ]

    def test_registry_names_match_classes(self):
        for name, extend_class in ExtendManager.EXTEND_REGISTRY.items():
            assert issubclass(extend_class, Extend)
            assert extend_class.name == name

    def test_get_unknown(self):
        with pytest.raises(KeyError):
            ExtendManager.get("unknown")

    def test_availability_survives_broken_checks(self, monkeypatch):
        cls = ExtendManager.get("zfs")

        def broken(self):
            raise PermissionError("denied")

        monkeypatch.setattr(cls, "is_available", broken)
        availability = ExtendManager.availability()

        assert availability["zfs"] is False
        assert set(availability) == set(ExtendManager.names())
