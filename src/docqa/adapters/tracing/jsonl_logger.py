from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping

from docqa.domain.models import QueryTrace


def json_sanitize(x: Any) -> Any:
    """
    Convert common non-JSON types into JSON-safe types.
    - datetime/date -> ISO string
    - tuple -> list
    - mappings/sequences -> recursively sanitized
    """
    if x is None or isinstance(x, (str, int, float, bool)):
        return x

    if isinstance(x, (datetime, date)):
        return x.isoformat()

    if isinstance(x, (tuple, list)):
        return [json_sanitize(v) for v in x]

    if isinstance(x, Mapping):
        return {str(k): json_sanitize(v) for k, v in x.items()}

    return str(x)


@dataclass(slots=True)
class JsonlQueryLogger:
    """
    Appends one JSON object per search to <out_dir>/queries.jsonl.
    """
    out_dir: Path
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def data_file(self) -> Path:
        return self.out_dir / "queries.jsonl"

    def log(self, trace: QueryTrace) -> None:
        line = json.dumps(json_sanitize(asdict(trace)), ensure_ascii=False)
        self.out_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with self.data_file.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")
