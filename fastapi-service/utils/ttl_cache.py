import threading
import time
from typing import Any, Callable, Dict, Hashable, Iterable, Set, Tuple


class TTLCache:
    """
    程序內的查詢結果快取

    - 每筆資料有各自的存活秒數
    - 以 tag 分組，寫入資料後依 tag 失效
    - 執行緒安全；載入期間若 tag 已失效，載入結果不寫入快取
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # key -> (expires_at, value)
        self._items: Dict[Hashable, Tuple[float, Any]] = {}
        self._tags: Dict[str, Set[Hashable]] = {}
        # tag -> 失效次數
        self._generations: Dict[str, int] = {}

    def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Any],
        ttl_seconds: float,
        tags: Iterable[str] = (),
    ) -> Any:
        tags = list(tags)
        with self._lock:
            item = self._items.get(key)
            if item is not None:
                expires_at, value = item
                if expires_at > time.monotonic():
                    return value
                del self._items[key]
            generations = [self._generations.get(tag, 0) for tag in tags]

        value = loader()

        with self._lock:
            current = [self._generations.get(tag, 0) for tag in tags]
            if current != generations:
                return value
            self._items[key] = (time.monotonic() + ttl_seconds, value)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)
        return value

    def invalidate_tag(self, tag: str) -> None:
        with self._lock:
            self._generations[tag] = self._generations.get(tag, 0) + 1
            for key in self._tags.pop(tag, set()):
                self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._tags.clear()
            for tag in self._generations:
                self._generations[tag] += 1


# 全局快取實例
TABLE_CACHE = TTLCache()
