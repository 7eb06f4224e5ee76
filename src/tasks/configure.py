"""Declares the sandbox, instrumentation and run tasks of a plugin project."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from constants import TaskNames
from errors import SandboxStagingError
from registry.ide import IdeDependency
from registry.plugins import PluginSpecKind
from resolution.context import BuildContext
from sandbox.stager import SandboxStager
from versioning.parser import compiler_version
from .graph import TaskGraph
from .instrumentation import (
    CompileStep,
    InstrumentationRedirector,
    SourceSetKind,
    SourceSetOutput,
    instrumented_output_dir,
    javac2_jar,
)
from .runtime import ide_jvm_args, ide_system_properties, ide_test_classpath, required_plugin_ids

logger = logging.getLogger(__name__)

# Called as instrumenter(ide, classes_dir, output_dir, compiler_version).
Instrumenter = Callable[[IdeDependency, Path, Path, str], Any]


@dataclass
class ProjectTasks:
    """What ``configure_tasks`` declared for one project."""
    context: BuildContext
    prefix: str
    source_sets: Dict[str, SourceSetOutput] = field(default_factory=dict)
    compile_steps: Dict[str, CompileStep] = field(default_factory=dict)
    modules: Dict[str, "ProjectTasks"] = field(default_factory=dict)

    def task(self, name: str) -> str:
        return f"{self.prefix}{name}"


def _instrument_task_name(source_set: str) -> str:
    if source_set == SourceSetKind.MAIN.value:
        return "instrumentCode"
    return f"instrument{source_set.capitalize()}Code"


def _post_task_name(task_name: str) -> str:
    return "post" + task_name[0].upper() + task_name[1:]


def _configure_sandbox_task(graph: TaskGraph, project: ProjectTasks, stager: SandboxStager, for_test: bool) -> None:
    context = project.context
    settings = context.settings

    def prepare():
        if settings.plugin_jar is None:
            raise SandboxStagingError(f"No plugin_jar configured for '{settings.plugin_name}'")
        return stager.stage(
            context.sandbox_layout(for_test),
            context.ide_dependency,
            context.plugin_dependencies,
            settings.plugin_name,
            settings.plugin_jar,
            settings.runtime_libraries,
        )

    name = TaskNames.PREPARE_TESTING_SANDBOX if for_test else TaskNames.PREPARE_SANDBOX
    graph.register_task(
        project.task(name),
        prepare,
        group=TaskNames.GROUP,
        description="Prepare sandbox directory with installed plugin and its dependencies.",
    )


def _configure_instrumentation(graph: TaskGraph, project: ProjectTasks,
                               instrumenter: Optional[Instrumenter]) -> None:
    context = project.context
    settings = context.settings
    redirector = InstrumentationRedirector(
        lambda: project.compile_steps.get(TaskNames.COMPILE_TEST_KOTLIN)
    )

    def enabled() -> bool:
        return settings.instrument_code and instrumenter is not None

    for source_set, classes_dir in settings.classes_dirs.items():
        kind = SourceSetKind.MAIN if source_set == SourceSetKind.MAIN.value else SourceSetKind.TEST
        output = SourceSetOutput(source_set, [classes_dir])
        project.source_sets[source_set] = output
        target_dir = instrumented_output_dir(classes_dir, source_set)

        def instrument(classes_dir=classes_dir, target_dir=target_dir):
            ide = context.ide_dependency
            if javac2_jar(ide) is None:
                logger.warning("IDE %s ships no javac2.jar; classes in '%s' are not instrumented",
                               ide.build_number, classes_dir)
                return None
            return instrumenter(ide, classes_dir, target_dir, compiler_version(ide.build_number))

        def redirect(output=output, target_dir=target_dir, kind=kind):
            return redirector.redirect(output, target_dir, kind)

        instrument_name = project.task(_instrument_task_name(source_set))
        post_name = project.task(_post_task_name(_instrument_task_name(source_set)))
        graph.register_task(instrument_name, instrument, group=TaskNames.GROUP, enabled=enabled)
        graph.register_task(post_name, redirect, group=TaskNames.GROUP,
                            enabled=lambda target_dir=target_dir: enabled() and target_dir.is_dir())
        graph.declare_dependency(post_name, instrument_name)


def _configure_run_tasks(graph: TaskGraph, project: ProjectTasks) -> None:
    context = project.context
    settings = context.settings

    def run_ide() -> Dict[str, Any]:
        ide = context.ide_dependency
        return {
            "ide_directory": str(ide.classes_root),
            "system_properties": ide_system_properties(context.sandbox_layout(False), required_plugin_ids(settings)),
            "jvm_args": ide_jvm_args(ide, settings.jvm_args),
        }

    def test() -> Dict[str, Any]:
        ide = context.ide_dependency
        return {
            "system_properties": ide_system_properties(context.sandbox_layout(True), required_plugin_ids(settings)),
            "jvm_args": ide_jvm_args(ide, settings.jvm_args),
            "classpath": [str(p) for p in ide_test_classpath(ide)],
            "enable_assertions": True,
        }

    graph.register_task(project.task(TaskNames.RUN_IDE), run_ide, group=TaskNames.GROUP,
                        description="Runs the IDE with installed plugin.")
    graph.declare_dependency(project.task(TaskNames.RUN_IDE), project.task(TaskNames.PREPARE_SANDBOX))
    graph.register_task(project.task(TaskNames.TEST), test, description="Runs plugin tests in the test sandbox.")
    graph.declare_dependency(project.task(TaskNames.TEST), project.task(TaskNames.PREPARE_TESTING_SANDBOX))


def configure_tasks(graph: TaskGraph, context: BuildContext, *, prefix: str = "",
                    instrumenter: Optional[Instrumenter] = None,
                    compile_steps: Optional[Dict[str, CompileStep]] = None,
                    _configured: Optional[Dict[str, ProjectTasks]] = None) -> ProjectTasks:
    """Declare every task of the project and of the sibling modules it depends on.

    Sibling tasks are prefixed with ``<module>:`` and configured once even
    when several projects depend on the same module.
    """
    configured = _configured if _configured is not None else {}
    project = ProjectTasks(context=context, prefix=prefix, compile_steps=dict(compile_steps or {}))
    configured[prefix] = project
    stager = SandboxStager()
    logger.info("Configuring tasks for '%s'", context.settings.plugin_name)

    _configure_sandbox_task(graph, project, stager, for_test=False)
    _configure_sandbox_task(graph, project, stager, for_test=True)
    _configure_instrumentation(graph, project, instrumenter)
    _configure_run_tasks(graph, project)

    for spec in context.settings.plugins:
        if spec.kind is not PluginSpecKind.COMPOSITE:
            continue
        module_prefix = f"{spec.module.name}:"
        sibling = configured.get(module_prefix)
        if sibling is None:
            sibling_settings = context.settings.modules[spec.module.name]
            sibling = configure_tasks(
                graph,
                BuildContext(sibling_settings, fetcher=context.fetcher),
                prefix=module_prefix,
                instrumenter=instrumenter,
                _configured=configured,
            )
        project.modules[spec.module.name] = sibling
        sibling_sandbox = sibling.task(TaskNames.PREPARE_SANDBOX)
        graph.declare_dependency(project.task(TaskNames.PREPARE_SANDBOX), sibling_sandbox)
        graph.declare_dependency(project.task(TaskNames.PREPARE_TESTING_SANDBOX), sibling_sandbox)
    return project
