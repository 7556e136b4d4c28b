"""Pytest configuration and shared fixtures"""
import os
import subprocess
import sys
import time
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


@pytest.fixture
def now():
    """Fixed 'current time' used as the log window end"""
    return float(int(time.time()))


@pytest.fixture
def write_file(tmp_path):
    """Write text to a file under tmp_path and return its path"""
    def _write(name, content):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path
    return _write


@pytest.fixture
def clf_time():
    """Format epoch seconds the way access logs do: 14/Jan/2023:19:16:51 +0100"""
    def _format(ts):
        return datetime.fromtimestamp(ts).astimezone().strftime("%d/%b/%Y:%H:%M:%S %z")
    return _format


@pytest.fixture
def completed():
    """Build a CompletedProcess like subprocess.run(text=True) returns"""
    def _completed(stdout="", returncode=0, stderr="", args=None):
        return subprocess.CompletedProcess(args=args or [], returncode=returncode, stdout=stdout, stderr=stderr)
    return _completed
