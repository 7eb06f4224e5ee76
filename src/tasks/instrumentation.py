"""Redirects a source set's compiled output to its instrumented variant."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from registry.ide import IdeDependency

logger = logging.getLogger(__name__)


class SourceSetKind(Enum):
    """Primary sources versus test sources."""
    MAIN = "main"
    TEST = "test"


@dataclass
class SourceSetOutput:
    """Directories downstream consumers read compiled classes from."""
    name: str
    classes_dirs: List[Path] = field(default_factory=list)


@dataclass
class CompileStep:
    """A compilation step and its input class path."""
    name: str
    classpath: List[Path] = field(default_factory=list)


def instrumented_output_dir(classes_dir: Union[str, Path], source_set: str) -> Path:
    """``<classes_dir parent>/<source_set>-instrumented``."""
    return Path(classes_dir).parent / f"{source_set}-instrumented"


def javac2_jar(ide: IdeDependency) -> Optional[Path]:
    """The IDE's form/annotation instrumenter, if the distribution ships it."""
    jar = ide.lib_dir / "javac2.jar"
    return jar if jar.is_file() else None


class InstrumentationRedirector:
    """Points compiled output at instrumented classes.

    For the main source set the original directories are also prepended to
    the test compile class path: Kotlin resolves ``internal`` visibility by
    the identity of the main output directory, which instrumentation moves.
    """

    def __init__(self, find_test_compile: Callable[[], Optional[CompileStep]] = lambda: None):
        self.find_test_compile = find_test_compile

    def redirect(self, output: SourceSetOutput, instrumented_dir: Union[str, Path],
                 kind: SourceSetKind) -> List[Path]:
        """Swap ``output`` to ``instrumented_dir``; returns the previous directories."""
        instrumented_dir = Path(instrumented_dir)
        original = list(output.classes_dirs)
        output.classes_dirs = [instrumented_dir]
        logger.info("Source set '%s' now uses instrumented classes in '%s'", output.name, instrumented_dir)

        if kind is SourceSetKind.MAIN:
            test_compile = self.find_test_compile()
            if test_compile is not None:
                remaining = [p for p in test_compile.classpath if p not in original]
                test_compile.classpath = original + remaining
                logger.debug("Prepended %s to '%s' class path", original, test_compile.name)
        return original
