"""会话导入 / 导出。

导出文档是会话记录组成的 JSON 数组（createdAt 为 ISO-8601 UTC）。
导入是“全有或全无”：任何一条记录格式错误都会拒绝整个文档，
已有集合保持不变。
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from advisor_core.domain.exceptions import FormatError
from advisor_core.infrastructure.logging.logger import log_event
from advisor_core.infrastructure.storage.repository import (
    ConversationRepository,
    decode_conversations,
    encode_conversations,
)

EXPORT_PREFIX = "business-advisor-export"


def export_filename(now: Optional[datetime] = None) -> str:
    """导出文件名，例如 business-advisor-export-2024-05-01.json。"""

    now = now or datetime.now(timezone.utc)
    return f"{EXPORT_PREFIX}-{now.date().isoformat()}.json"


class ConversationTransfer:
    def __init__(self, repository: ConversationRepository):
        self._repository = repository

    def export_document(self) -> str:
        return encode_conversations(self._repository.conversations, indent=2)

    def import_document(self, document: str) -> int:
        """解析并导入文档，返回导入条数。格式错误抛出 FormatError。"""

        if not isinstance(document, str):
            raise FormatError(code="IMPORT_FORMAT_ERROR", message="import document must be text")
        try:
            conversations = decode_conversations(document, synthesize_ids=True)
        except ValueError as e:
            log_event(logging.WARNING, "Rejected import document", error=str(e))
            raise FormatError(code="IMPORT_FORMAT_ERROR", message=str(e)) from e
        ids = self._repository.add_imported(conversations)
        return len(ids)

    def export_to_file(self, target: str | Path) -> Path:
        """写出导出文件；target 为目录时使用默认文件名。"""

        path = Path(target)
        if path.is_dir():
            path = path / export_filename()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.export_document(), encoding="utf-8")
        log_event(logging.INFO, "Exported conversations", path=str(path))
        return path

    def import_from_file(self, path: str | Path) -> int:
        try:
            document = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FormatError(code="IMPORT_READ_ERROR", message=str(e)) from e
        return self.import_document(document)
