# wsdl_soap/cache.py
import hashlib
import logging
from typing import Any, Callable, Dict, Optional, Union

from .loader import is_inline_xml

logger = logging.getLogger(__name__)


def cache_key(source: Union[str, bytes]) -> str:
    """Locations are cached by name, inline documents by their sha256."""
    if is_inline_xml(source):
        content = source if isinstance(source, bytes) else source.encode("utf-8")
        return "sha256:" + hashlib.sha256(content).hexdigest()
    return str(source)


class DocumentCache:
    """Holds parsed documents for as long as its owner keeps it.

    A client creates its own cache unless one is passed in, so sharing
    parsed WSDLs between clients is always an explicit choice.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}

    def get(self, source: Union[str, bytes], factory: Callable[[], Any]) -> Any:
        key = cache_key(source)
        if key not in self._entries:
            logger.debug(f"Document cache miss: {key}")
            self._entries[key] = factory()
        return self._entries[key]

    def invalidate(self, source: Optional[Union[str, bytes]] = None) -> None:
        if source is None:
            self._entries.clear()
        else:
            self._entries.pop(cache_key(source), None)

    def __contains__(self, source) -> bool:
        return cache_key(source) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
