"""User-authored overrides, merged on top of all built-in patches.

``overrides/`` may hold ``schemas``, ``parameters`` and ``patches`` documents
as JSON or YAML. Files are read in file-name order; when two files define
the same key for a section, the later file wins.
"""

from pathlib import Path

from pydantic import BaseModel

from ..common import InputFileError, iter_operations, log, read_document

OVERRIDE_SECTIONS = ("schemas", "parameters", "patches")
OVERRIDE_SUFFIXES = (".json", ".yaml", ".yml")


class Overrides(BaseModel):
    schemas: dict = {}
    parameters: dict = {}
    # operationId -> partial operation, merged recursively into the operation
    patches: dict = {}

    def is_empty(self) -> bool:
        return not (self.schemas or self.parameters or self.patches)


def load_overrides(directory: Path) -> Overrides:
    """Load every override document under ``directory``.

    A missing directory means no overrides. A file that does not parse, or
    whose top level is not a mapping, is a fatal input error.
    """
    overrides = Overrides()
    if not directory.is_dir():
        return overrides

    files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in OVERRIDE_SUFFIXES)
    for path in files:
        section = path.stem
        if section not in OVERRIDE_SECTIONS:
            log("warn", f"Ignoring override file with unknown section: {path.name}")
            continue

        content = read_document(path)
        if content is None:
            content = {}
        if not isinstance(content, dict):
            raise InputFileError(f"Override file {path} must contain a mapping at the top level")

        target: dict = getattr(overrides, section)
        for key in content:
            if key in target:
                log("warn", f"Override {section}.{key} from {path.name} replaces an earlier override file")
        target.update(content)
        log("info", f"Loaded override: {path.name}")

    return overrides


def deep_merge(base: dict, patch: dict) -> dict:
    """Merge ``patch`` into ``base`` in place: dicts merge, other values replace."""
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def merge_overrides(spec: dict, overrides: Overrides) -> dict:
    """Layer overrides onto ``spec``; override entries always win."""
    components = spec.setdefault("components", {})

    if overrides.schemas:
        components["schemas"] = {**(components.get("schemas") or {}), **overrides.schemas}
        log("info", f"Merged {len(overrides.schemas)} schema overrides")

    if overrides.parameters:
        components["parameters"] = {**(components.get("parameters") or {}), **overrides.parameters}
        log("info", f"Merged {len(overrides.parameters)} parameter overrides")

    if overrides.patches:
        remaining = dict(overrides.patches)
        for _, _, operation in iter_operations(spec):
            partial = remaining.pop(operation.get("operationId"), None)
            if isinstance(partial, dict):
                deep_merge(operation, partial)
        for operation_id in remaining:
            log("warn", f"Operation patch for unknown operation: {operation_id}")
        log("info", f"Applied {len(overrides.patches) - len(remaining)} operation patches")

    return spec
