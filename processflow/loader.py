"""Loading processors from the modules of a directory."""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Optional, Sequence, Union

from .branch import Parallel, Step, parallel
from .protocol import ConfigurationIssue, ProcessorDefinition, create_processor

logger = logging.getLogger(__name__)

_MODULE_PREFIX = "processflow_processors"


def module_name(path: Union[str, Path]) -> str:
    """File name without its extension, used as the processor name."""
    return Path(path).stem


def _module_file(directory: Path, entry: str) -> Path:
    candidate = directory / f"{entry}.py"
    if candidate.exists():
        return candidate
    package = directory / entry / "__init__.py"
    if package.exists():
        return package
    return candidate


def load_module(path: Union[str, Path]) -> ModuleType:
    """Import the module at *path* under a private, path-derived name.

    Raises:
        ImportError: If the file cannot be found or fails to import.
    """
    path = Path(path)
    if path.is_dir():
        path = path / "__init__.py"
    if not path.exists():
        raise ImportError(f"No processor module at {path}")

    stem = path.parent.name if path.name == "__init__.py" else path.stem
    digest = hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:12]
    qualified = f"{_MODULE_PREFIX}_{digest}_{stem}"
    spec = importlib.util.spec_from_file_location(qualified, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load processor module from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[qualified] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(qualified, None)
        raise
    return module


def discover(directory: Union[str, Path]) -> list[str]:
    """Names of every processor module in *directory*, sorted."""
    directory = Path(directory)
    names = []
    for path in sorted(directory.iterdir()):
        if path.is_file() and path.suffix == ".py" and path.stem != "__init__":
            names.append(path.stem)
        elif path.is_dir() and (path / "__init__.py").exists():
            names.append(path.name)
    return names


class ProcessorLoader:
    """Resolves module names to processor definitions.

    Failures never raise; each one becomes a :class:`ConfigurationIssue` so
    the composed process is marked invalid instead.
    """

    def __init__(self, process_name: str, directory: Union[str, Path]) -> None:
        self.process_name = process_name
        self.directory = Path(directory)
        self.issues: list[ConfigurationIssue] = []

    def load(self, pipeline: Optional[Sequence[Any]] = None) -> list[Step]:
        if not self.directory.is_dir():
            logger.error("Given processors_path does not exist. Was: %s", self.directory)
            self.issues.append(
                ConfigurationIssue(processor_name=None, reason="Invalid processors path.")
            )
            return []

        logger.debug("Registering processors in: '%s'", self.directory)
        # Without an explicit pipeline every module runs, all in one parallel step
        entries = pipeline if pipeline is not None else [parallel(*discover(self.directory))]

        steps: list[Step] = []
        for entry in entries:
            if isinstance(entry, (Parallel, list, tuple)):
                members = [p for p in (self._load_one(name) for name in entry) if p]
                if members:
                    steps.append(Parallel(tuple(members)))
                continue
            processor = self._load_one(entry)
            if processor is not None:
                steps.append(processor)
        return steps

    def _load_one(self, entry: Any) -> Optional[ProcessorDefinition]:
        name = str(entry)
        try:
            module = load_module(_module_file(self.directory, name))
        except Exception as exc:
            logger.error(
                "Processor '%s' for '%s' import exception: %s",
                name,
                self.process_name,
                exc,
                exc_info=exc,
            )
            self.issues.append(
                ConfigurationIssue(processor_name=name, reason="Module import failure.")
            )
            return None

        try:
            return create_processor(name, module)
        except (TypeError, ValueError) as exc:
            logger.error(
                "Processor '%s' for '%s' creation exception: %s",
                name,
                self.process_name,
                exc,
            )
            self.issues.append(ConfigurationIssue(processor_name=name, reason=str(exc)))
            return None
