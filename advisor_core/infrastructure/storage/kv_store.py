"""持久化键值存储适配器。

对上层只暴露 get/set/remove 三个操作，值均为字符串：

- JsonFileStore: 每个 key 一个 UTF-8 文件，写入走临时文件 + os.replace，
  保证单个 key 的写入原子性。
- MemoryStore: 纯内存实现，用于降级运行与测试。

任何底层 I/O 失败都统一转换为 StoreError(kind="unavailable")。
"""

import os
import re
from pathlib import Path
from threading import Lock
from typing import Dict, Optional
from uuid import uuid4

from advisor_core.config.settings import settings
from advisor_core.domain.exceptions import StoreError

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_key(key: str) -> None:
    if not key or not _KEY_RE.match(key) or key.startswith("."):
        raise StoreError(code="STORE_INVALID_KEY", message=f"invalid store key: {key!r}", key=key)


class JsonFileStore:
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._kv_root = self._root / "kv"
        try:
            self._kv_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(code="STORE_UNAVAILABLE", message=str(e))

    @property
    def root(self) -> Path:
        return self._kv_root

    def get(self, key: str) -> Optional[str]:
        _check_key(key)
        path = self._kv_root / f"{key}.json"
        try:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), key=key)

    def set(self, key: str, value: str) -> None:
        _check_key(key)
        path = self._kv_root / f"{key}.json"
        tmp_path = self._kv_root / f"{key}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def remove(self, key: str) -> None:
        _check_key(key)
        path = self._kv_root / f"{key}.json"
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(code="STORE_DELETE_ERROR", message=str(e), key=key)


class MemoryStore:
    """进程内存储，进程退出即丢失。"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return sorted(self._data)
