"""
Translation error log.

Failed strict-mode translations are appended as JSON lines to
``translate-error-<dialect>.log`` so statements that could not be carried
over to SQLite can be collected and reviewed after a migration run.
"""

import json
import threading
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

logger = structlog.get_logger()


class TranslationErrorLog:
    """Append-only JSON-lines log of translation failures, one file per dialect"""

    def __init__(self, directory: Union[str, Path] = "."):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def path_for(self, dialect: str) -> Path:
        return self.directory / f"translate-error-{dialect}.log"

    def record(
        self,
        dialect: str,
        original_sql: str,
        rewritten_sql: Optional[str],
        error: BaseException,
        params: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        """
        Append one failure record.

        Returns the record that was written. A log file that cannot be
        written is reported through structlog and does not replace the
        translation error being recorded.
        """
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": dialect,
            "errorType": type(error).__name__,
            "errorMessage": str(error),
            "originalSQL": original_sql,
            "rewrittenSQL": rewritten_sql,
            "params": list(params) if params else [],
            "stackTrace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        }
        path = self.path_for(dialect)
        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as handle:
                    handle.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.error("Failed to write translation error log", path=str(path), error=str(e))
        return entry

    def read(self, dialect: str) -> List[Dict[str, Any]]:
        """All records logged for ``dialect`` (empty when nothing was logged)"""
        path = self.path_for(dialect)
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]
