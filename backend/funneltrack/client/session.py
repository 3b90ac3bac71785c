"""Session-scoped search context for the storefront event recorder.

WHAT:
    Holds the search session id and the last search (query, primary and
    tier-2 results) behind a small key/value storage interface.

WHY:
    Every emitted event must carry the search that preceded it. Keeping that
    state in an explicit context object (instead of module globals) lets one
    process track several independent sessions and makes tests trivial.

REFERENCES:
    - funneltrack/client/recorder.py (consumer)
"""

import json
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

# Storage keys shared with the storefront theme script
SESSION_ID_KEY = "search_session_id"
LAST_SEARCH_QUERY_KEY = "last_search_query"
SEARCH_RESULTS_KEY = "search_results"
TIER2_RESULTS_KEY = "tier2_results"

_BASE36 = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """Mint a session id: `sess_<epoch-ms>_<9 base36 chars>`."""
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"sess_{int(time.time() * 1000)}_{suffix}"


class SessionStorage:
    """Key/value storage interface (modelled on the browser's sessionStorage)."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemorySessionStorage(SessionStorage):
    """Storage that lives as long as the object does."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


@dataclass
class SearchContext:
    """The most recent search of a session."""
    query: str = ""
    search_results: List[Any] = field(default_factory=list)
    tier2_results: List[Any] = field(default_factory=list)


def _load_list(raw: Optional[str]) -> List[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return value if isinstance(value, list) else []


class SessionContext:
    """Session id and last search for one browsing session.

    WHAT:
        Reads and writes the session's state through a SessionStorage.

    WHY:
        The session id is the join key between clicks and orders, so it is
        minted once and reused for the storage's lifetime.
    """

    def __init__(self, storage: Optional[SessionStorage] = None):
        self.storage = storage if storage is not None else InMemorySessionStorage()

    @property
    def session_id(self) -> str:
        """Return the session id, minting and persisting one on first read."""
        session_id = self.storage.get_item(SESSION_ID_KEY)
        if not session_id:
            session_id = generate_session_id()
            self.storage.set_item(SESSION_ID_KEY, session_id)
        return session_id

    def store_search(
        self,
        query: str,
        search_results: Sequence[Any],
        tier2_results: Sequence[Any] = (),
    ) -> None:
        """Overwrite the stored search.

        Tier-2 results are always written, so a search without them clears
        the previous search's tier-2 results.
        """
        self.storage.set_item(LAST_SEARCH_QUERY_KEY, query or "")
        self.storage.set_item(SEARCH_RESULTS_KEY, json.dumps(list(search_results)))
        self.storage.set_item(TIER2_RESULTS_KEY, json.dumps(list(tier2_results)))

    def search_context(self) -> SearchContext:
        return SearchContext(
            query=self.storage.get_item(LAST_SEARCH_QUERY_KEY) or "",
            search_results=_load_list(self.storage.get_item(SEARCH_RESULTS_KEY)),
            tier2_results=_load_list(self.storage.get_item(TIER2_RESULTS_KEY)),
        )
