"""
Variable resolver - expand ${dot.path} references in configuration trees.

Rules:
- A string that is exactly one reference ("${app.replicas}") is replaced by
  the referenced value with its original type (int, bool, dict, list...).
  Containers are deep-copied, so callers never share plan data.
  If the path cannot be resolved, resolution fails with ResolutionError.
- References embedded in other text ("port=${app.port}") are replaced by the
  string form of the value. An embedded reference that cannot be resolved
  is left untouched and does not fail resolution.
- Mappings and sequences are resolved element-wise; the first error wins.
- Non-string scalars pass through unchanged.

Paths are dot-separated and navigate nested mappings only.
"""

import copy
import json
import re
from typing import Any

from grpcli.errors import ResolutionError


# Reference pattern: ${path.to.value}
REF_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_path(path: str, context: dict[str, Any]) -> Any:
    """
    Resolve a dot-separated path against a context mapping.

    Args:
        path: Path like "variables.app.port"
        context: Mapping to navigate

    Returns:
        The value at that path

    Raises:
        ResolutionError: If a key is missing or an intermediate is not a mapping
    """
    value: Any = context
    for part in path.split("."):
        if not isinstance(value, dict):
            raise ResolutionError(
                f"invalid reference path: {path} "
                f"(cannot navigate into {type(value).__name__} at '{part}')",
                path=path,
            )
        if part not in value:
            raise ResolutionError(
                f"reference path not found: {path} (missing '{part}')",
                path=path,
            )
        value = value[part]
    return value


def _stringify(value: Any) -> str:
    """String form used for embedded substitution."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


class VariableResolver:
    """
    Resolves ${...} references against a nested context.

    Usage:
        resolver = VariableResolver()
        config = resolver.resolve_values(
            {"replicas": "${variables.app.replicas}", "url": "http://${variables.host}"},
            {"variables": {"app": {"replicas": 3}, "host": "svc"}},
        )
        # {"replicas": 3, "url": "http://svc"}
    """

    def __init__(self, pattern: re.Pattern = REF_PATTERN):
        self._pattern = pattern

    def resolve_values(self, tree: dict[str, Any], context: dict[str, Any]) -> dict[str, Any]:
        """
        Resolve every reference in a mapping.

        Args:
            tree: Configuration mapping, left unmodified
            context: Mapping references are resolved against

        Returns:
            A new mapping with references substituted

        Raises:
            ResolutionError: If a whole-value reference cannot be resolved
        """
        result: dict[str, Any] = {}
        for key, value in tree.items():
            try:
                result[key] = self.resolve_value(value, context)
            except ResolutionError as e:
                raise ResolutionError(
                    f"error resolving value for key {key}: {e}", path=e.path
                ) from e
        return result

    def resolve_value(self, value: Any, context: dict[str, Any]) -> Any:
        """Resolve a single node (string, mapping, sequence or scalar)."""
        if isinstance(value, str):
            return self._resolve_string(value, context)
        elif isinstance(value, dict):
            return self.resolve_values(value, context)
        elif isinstance(value, (list, tuple)):
            return self._resolve_sequence(value, context)
        else:
            # Primitives pass through unchanged
            return value

    def _resolve_string(self, value: str, context: dict[str, Any]) -> Any:
        whole = self._pattern.fullmatch(value)
        if whole:
            # Containers are copied so jobs cannot mutate shared plan data
            return copy.deepcopy(resolve_path(whole.group(1).strip(), context))

        def _substitute(match: re.Match) -> str:
            try:
                return _stringify(resolve_path(match.group(1).strip(), context))
            except ResolutionError:
                return match.group(0)

        return self._pattern.sub(_substitute, value)

    def _resolve_sequence(self, items: Any, context: dict[str, Any]) -> list[Any]:
        result = []
        for i, item in enumerate(items):
            try:
                result.append(self.resolve_value(item, context))
            except ResolutionError as e:
                raise ResolutionError(
                    f"error resolving array item {i}: {e}", path=e.path
                ) from e
        return result

    def contains_references(self, value: Any) -> bool:
        """Check if a value contains any ${...} reference."""
        if isinstance(value, str):
            return bool(self._pattern.search(value))
        elif isinstance(value, dict):
            return any(self.contains_references(v) for v in value.values())
        elif isinstance(value, (list, tuple)):
            return any(self.contains_references(v) for v in value)
        return False
