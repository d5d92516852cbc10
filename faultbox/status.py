"""
运行状态模块 - 进程运行时长、内存与运行时计数
"""
import gc
import os
import platform
import resource
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Any, List

import psutil

MB = 1024 * 1024

# 进程启动时间（模块导入即视为启动）
START_TIME = datetime.now(timezone.utc)
_start_monotonic = time.monotonic()


def format_uptime(seconds: float) -> str:
    """格式化运行时长，如 1h2m3.5s / 4m0s / 12.25s"""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    text = f"{secs:.3f}".rstrip('0').rstrip('.') + "s"
    if hours >= 1:
        return f"{int(hours)}h{int(minutes)}m{text}"
    if minutes >= 1:
        return f"{int(minutes)}m{text}"
    return text


def get_uptime_seconds() -> float:
    return time.monotonic() - _start_monotonic


def _peak_rss_bytes() -> int:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS 返回字节，Linux 返回 KB
    if sys.platform == "darwin":
        return peak
    return peak * 1024


def get_memory_stats() -> Dict[str, int]:
    """当前内存计数（MB）"""
    mem_info = psutil.Process(os.getpid()).memory_info()
    return {
        "allocatedMB": mem_info.rss // MB,
        "totalAllocMB": max(_peak_rss_bytes(), mem_info.rss) // MB,
        "sysMB": mem_info.vms // MB,
        "numGC": sum(stat["collections"] for stat in gc.get_stats()),
    }


def get_runtime_stats() -> Dict[str, Any]:
    return {
        "numThreads": threading.active_count(),
        "pythonVersion": platform.python_version(),
        "numCPU": os.cpu_count() or 1,
    }


def collect_status(endpoints: List[str]) -> Dict[str, Any]:
    """生成状态快照，每次调用实时计算，不做缓存"""
    return {
        "server": {
            "status": "running",
            "uptime": format_uptime(get_uptime_seconds()),
            "startTime": START_TIME.isoformat(timespec="seconds"),
        },
        "memory": get_memory_stats(),
        "runtime": get_runtime_stats(),
        "endpoints": list(endpoints),
    }
