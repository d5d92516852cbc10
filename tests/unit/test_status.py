#!/usr/bin/env python3
"""
单元5: 运行状态测试 (collect_status)
"""
import sys
import pytest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from faultbox.status import collect_status, format_uptime, get_memory_stats


class TestFormatUptime:
    """运行时长格式化测试"""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (12.25, "12.25s"),
        (240, "4m0s"),
        (3723.5, "1h2m3.5s"),
    ])
    def test_format(self, seconds, expected):
        assert format_uptime(seconds) == expected


class TestCollectStatus:
    """状态快照测试"""

    def test_groups(self):
        status = collect_status(["/", "/status/"])
        assert set(status) == {"server", "memory", "runtime", "endpoints"}
        assert status["endpoints"] == ["/", "/status/"]

    def test_endpoints_copied(self):
        endpoints = ["/"]
        status = collect_status(endpoints)
        endpoints.append("/later/")
        assert status["endpoints"] == ["/"]

    def test_uptime_non_decreasing(self):
        with patch('faultbox.status.get_uptime_seconds', side_effect=[1.0, 2.5]):
            first = collect_status([])["server"]["uptime"]
            second = collect_status([])["server"]["uptime"]
        assert (first, second) == ("1s", "2.5s")

    def test_peak_not_below_current(self):
        stats = get_memory_stats()
        assert stats["totalAllocMB"] >= stats["allocatedMB"]
        assert stats["numGC"] >= 0
