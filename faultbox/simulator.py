"""
故障模拟模块

- terminate_process: 响应发送完成后以非零状态码退出进程
- MemoryGrowthSimulator: 后台线程无限申请内存，直到被 OOM killer 或外部终止
两者都是单向操作，触发后无法取消。
"""
import os
import sys
import time
import logging
from threading import Thread
from typing import List

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# 退出前等待传输层把确认响应发出
EXIT_GRACE_SECONDS = 0.1


def terminate_process(exit_code: int = 1, grace_seconds: float = EXIT_GRACE_SECONDS):
    """刷新输出后立即退出进程（不执行清理）"""
    if exit_code == 0:
        raise ValueError("exit_code 必须为非零值")

    logger.warning(f"模拟崩溃: 进程即将以状态码 {exit_code} 退出")
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()

    if grace_seconds > 0:
        time.sleep(grace_seconds)
    os._exit(exit_code)


class MemoryGrowthSimulator:
    """
    内存增长模拟器

    每轮申请一个固定大小的块并写满非零字节（避免惰性分配/写时复制），
    所有块一直保留，没有退出条件。
    """

    def __init__(self, chunk_size_bytes: int = 500 * MB, interval_seconds: float = 0):
        if chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes 必须大于 0")
        self.chunk_size_bytes = chunk_size_bytes
        self.interval_seconds = interval_seconds
        # 仅由后台线程访问
        self._blocks: List[bytearray] = []

    @property
    def allocated_bytes(self) -> int:
        return len(self._blocks) * self.chunk_size_bytes

    def allocate_chunk(self) -> int:
        """申请一个块，返回累计申请的字节数"""
        block = bytearray(b"\x01") * self.chunk_size_bytes
        self._blocks.append(block)
        total = self.allocated_bytes
        logger.info(f"已申请内存块 #{len(self._blocks)}，累计 {total / MB:.1f} MB")
        return total

    def run(self):
        """无限循环申请内存"""
        logger.warning(f"开始内存增长模拟: 块大小 {self.chunk_size_bytes / MB:.1f} MB")
        while True:
            self.allocate_chunk()
            if self.interval_seconds > 0:
                time.sleep(self.interval_seconds)

    def start(self) -> Thread:
        """在 daemon 线程中启动，调用方不 join 也不取消"""
        thread = Thread(target=self.run, name="memory-growth", daemon=True)
        thread.start()
        return thread
