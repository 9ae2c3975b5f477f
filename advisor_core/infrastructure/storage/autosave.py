"""定时自动保存。

后台线程按固定间隔把仓库快照写入存储，防止两个回合之间崩溃丢数据。
集合为空时跳过；保存失败只记录日志，不会中断线程。
"""

import logging
import threading
from typing import Optional

from advisor_core.config.settings import settings
from advisor_core.infrastructure.logging.logger import log_event, logger
from advisor_core.infrastructure.storage.repository import ConversationRepository


class AutoSaver:
    def __init__(self, repository: ConversationRepository, interval_seconds: Optional[float] = None):
        interval = interval_seconds if interval_seconds is not None else settings.auto_save_interval
        if interval <= 0:
            raise ValueError("Auto-save interval must be positive")
        self.repository = repository
        self.interval_seconds = float(interval)
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """启动后台线程；已在运行时忽略。"""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning("Auto-saver is already running")
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                name="advisor-autosave",
                daemon=True,
            )
            self._thread.start()
        log_event(logging.INFO, "Auto-saver started", interval_seconds=self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
            logger.info("Auto-saver stopped")

    def tick(self) -> bool:
        """执行一次自动保存，返回是否实际写入成功。"""
        if self.repository.is_empty():
            return False
        return self.repository.save() is None

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception:  # noqa: BLE001 - 定时线程不能因单次失败退出
                logger.exception("Auto-save tick failed")
