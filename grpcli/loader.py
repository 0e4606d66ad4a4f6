"""
Plan loader - read a release plan YAML file into a Plan.

Loading steps:
1. Read and parse the YAML document
2. Check the top-level shape (apiVersion, kind, metadata)
3. Load includes relative to the plan file; each include is stored under
   its `kind` (or its file name when it has none)
4. Build the immutable Plan

${...} references are left as-is. They are resolved per job at dispatch,
when the execution id and active stage are known.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from grpcli.errors import PlanLoadError
from grpcli.schemas import Plan

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("apiVersion", "kind", "metadata")


class PlanLoader:
    """
    Loads plans from disk.

    Usage:
        plan = PlanLoader().load_plan("release.yaml")
    """

    def load_plan(self, path: Union[str, Path]) -> Plan:
        """
        Load a plan file.

        Args:
            path: Path to the plan YAML file

        Returns:
            Plan with include documents attached

        Raises:
            PlanLoadError: If the file cannot be read or is not a valid plan document
        """
        if not path:
            raise PlanLoadError("file path cannot be empty")

        plan_path = Path(path)
        if not plan_path.exists():
            raise PlanLoadError(f"plan file does not exist: {plan_path}")
        if not plan_path.is_file():
            raise PlanLoadError(f"plan path is not a file: {plan_path}")

        data = _read_yaml(plan_path, "plan")
        logger.debug(f"Loaded plan document {plan_path}")
        return self.load_plan_from_dict(data, base_dir=plan_path.parent)

    def load_plan_from_dict(
        self,
        data: Any,
        base_dir: Optional[Union[str, Path]] = None,
    ) -> Plan:
        """
        Build a Plan from an already-parsed document.

        Args:
            data: Parsed plan document
            base_dir: Directory includes are resolved against (default: cwd)

        Raises:
            PlanLoadError: If the document shape is invalid or an include fails
        """
        if not isinstance(data, dict):
            raise PlanLoadError("invalid plan structure: document must be a mapping")

        for field_name in REQUIRED_FIELDS:
            if field_name not in data:
                raise PlanLoadError(f"invalid plan structure: missing required field: {field_name}")

        if not isinstance(data["metadata"], dict):
            raise PlanLoadError("invalid plan structure: metadata must be a mapping")

        base = Path(base_dir) if base_dir is not None else Path.cwd()
        include_data = self._load_includes(data.get("includes") or [], base)

        try:
            return Plan.from_dict(data, include_data=include_data)
        except (TypeError, ValueError, AttributeError) as e:
            raise PlanLoadError(f"failed to parse plan structure: {e}") from e

    def _load_includes(self, includes: Any, base_dir: Path) -> dict[str, Any]:
        if not isinstance(includes, list):
            raise PlanLoadError("invalid plan structure: includes must be a list")

        loaded: dict[str, Any] = {}
        for include in includes:
            if not isinstance(include, dict) or not isinstance(include.get("path"), str):
                continue

            include_path = base_dir / include["path"]
            try:
                document = _read_yaml(include_path, "include")
            except PlanLoadError as e:
                raise PlanLoadError(f"failed to load include {include['path']}: {e}") from e

            key = document.get("kind")
            if not isinstance(key, str) or not key:
                key = include_path.name
            loaded[key] = document
            logger.debug(f"Loaded include {include_path} as {key}")

        return loaded


def _read_yaml(path: Path, what: str) -> dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise PlanLoadError(f"{what} file does not exist: {path}") from e
    except OSError as e:
        raise PlanLoadError(f"failed to read {what} file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise PlanLoadError(f"failed to parse YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise PlanLoadError(f"{what} file {path} must contain a YAML mapping")
    return data


def load_plan(path: Union[str, Path]) -> Plan:
    """Load a plan file with a default PlanLoader."""
    return PlanLoader().load_plan(path)
