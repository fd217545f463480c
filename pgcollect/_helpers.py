from datetime import datetime, timezone
import json
from typing import Any


class JSONResultsEncoder(json.JSONEncoder):
    # Encodes facts and results through their as_dict() method.
    def default(self, obj: object) -> Any:
        if hasattr(obj, "as_dict"):
            return obj.as_dict()
        return super().default(obj)


class Timer:
    def __enter__(self) -> "Timer":
        self.start = datetime.now(timezone.utc)
        return self

    def __exit__(self, *a: Any) -> None:
        self.delta = datetime.now(timezone.utc) - self.start
