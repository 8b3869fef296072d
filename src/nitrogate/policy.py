"""Static allow-list of upstream JSON-RPC methods."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from nitrogate.constants import DEFAULT_ALLOWED_METHODS


class MethodAllowList:
    """Which upstream method names may be forwarded at all.

    Policy data only; it knows nothing about credit.
    """

    def __init__(self, methods: Iterable[str] = DEFAULT_ALLOWED_METHODS) -> None:
        self._methods = frozenset(methods)

    @classmethod
    def from_csv(cls, text: str) -> MethodAllowList:
        """Parse a comma-separated list; blank entries are skipped."""
        return cls(m.strip() for m in text.split(",") if m.strip())

    @property
    def methods(self) -> frozenset[str]:
        return self._methods

    def is_allowed(self, method: str) -> bool:
        return method in self._methods

    def all_allowed(self, methods: Iterable[str]) -> bool:
        return all(self.is_allowed(m) for m in methods)

    def __contains__(self, method: object) -> bool:
        return method in self._methods

    def __len__(self) -> int:
        return len(self._methods)


def extract_methods(payload: Any) -> list[str]:
    """Return the method names of a JSON-RPC request or batch.

    Raises ValueError unless ``payload`` is a request object (``jsonrpc``
    and a string ``method``) or a non-empty list of them.
    """
    requests = payload if isinstance(payload, list) else [payload]
    if not requests:
        raise ValueError("Empty JSON-RPC batch.")

    methods: list[str] = []
    for req in requests:
        if not isinstance(req, dict) or not req.get("jsonrpc"):
            raise ValueError("Not a JSON-RPC request object.")
        method = req.get("method")
        if not isinstance(method, str) or not method:
            raise ValueError("JSON-RPC request has no method.")
        methods.append(method)
    return methods
