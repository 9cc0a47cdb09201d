from typing import Dict, Optional, Tuple

# (api_version, model, diagram_type, normalized_code, error_message)
MemoKey = Tuple[str, str, str, str, str]


class FixMemo:
    """Content-addressed memo of accepted corrections.

    Lives as long as its owner; entries are never invalidated because the key
    is the full input. Not synchronized: the repair path is sequential.
    """

    def __init__(self):
        self._entries: Dict[MemoKey, str] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(
        api_version: str,
        model: str,
        diagram_type: Optional[str],
        normalized_code: str,
        error_message: Optional[str],
    ) -> MemoKey:
        return (api_version, model, diagram_type or "unknown", normalized_code, error_message or "")

    def get(self, key: MemoKey) -> Optional[str]:
        value = self._entries.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def put(self, key: MemoKey, value: str) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: MemoKey) -> bool:
        return key in self._entries
