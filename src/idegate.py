"""idegate - IDE and plugin dependency resolution for IDE plugin projects

    Returns:
        int: Exit code
"""
import json
import logging
import sys

from args import parse_args
from common.logging_utils import Timer, configure_logging, extra_context, is_debug_enabled
from constants import Commands, ExitCodes, TaskNames
from errors import (
    ArtifactFetchError,
    ArtifactNotFoundError,
    ConfigurationError,
    DescriptorNotFound,
    IdeGateError,
    InvalidLocalInstallation,
    SandboxStagingError,
)
from resolution.context import BuildContext
from settings import load_settings
from tasks.configure import configure_tasks
from tasks.graph import TaskGraph
from versioning.parser import since_until_build

logger = logging.getLogger(__name__)

_FILE_ERRORS = (ConfigurationError, InvalidLocalInstallation, DescriptorNotFound, SandboxStagingError)


def exit_code_for(error):
    """Maps an idegate error to the exit code reported by the CLI.

    Args:
        error (IdeGateError): The failure raised while running a command.

    Returns:
        ExitCodes: Exit code for the failure.
    """
    if isinstance(error, _FILE_ERRORS):
        return ExitCodes.FILE_ERROR
    if isinstance(error, ArtifactFetchError) and not isinstance(error, ArtifactNotFoundError):
        return ExitCodes.CONNECTION_ERROR
    return ExitCodes.RESOLUTION_ERROR


def export_json(payload, path=None):
    """Writes the command result as JSON to a file or standard output.

    Args:
        payload (dict): Result of the command.
        path (str, optional): Output file; standard output when None.
    """
    text = json.dumps(payload, indent=2, default=str)
    if not path:
        sys.stdout.write(text + "\n")
        return
    try:
        with open(path, "w", encoding="utf-8") as file:
            file.write(text + "\n")
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def resolve_summary(context):
    """Resolves all dependencies and summarizes them."""
    context.configure()
    ide = context.ide_dependency
    settings = context.settings
    summary = {
        "ide": {
            "build_number": ide.build_number,
            "product_type": ide.version.product_type.value,
            "version": ide.version.raw_version,
            "classes_root": str(ide.classes_root),
            "jars": [str(j) for j in ide.jar_files],
            "sources": str(ide.sources_jar) if ide.sources_jar else None,
            "extra_dependencies": {
                name: sorted(str(j) for j in jars) for name, jars in ide.extra_dependencies.items()
            },
        },
        "plugins": [
            {
                "id": p.id,
                "version": p.version,
                "channel": p.channel,
                "builtin": p.builtin,
                "composite": p.is_composite,
                "since_build": p.since_build,
                "until_build": p.until_build,
                "jars": [str(j) for j in p.jar_files],
            }
            for p in context.plugin_dependencies
        ],
        "compile_classpath": [str(j) for j in context.compile_classpath()],
    }
    if settings.update_since_until_build and ide.ide_version is not None:
        since, until = since_until_build(ide.build_number, settings.same_since_until_build)
        summary["since_build"] = since
        summary["until_build"] = until
    return summary


def describe_tasks(graph):
    """Lists the declared tasks and their ordering edges."""
    return {
        "tasks": [
            {
                "name": task.name,
                "group": task.group,
                "description": task.description,
                "depends_on": list(task.depends_on),
            }
            for task in graph.tasks.values()
        ]
    }


def run_command(command, context):
    """Runs one CLI command against a configured project.

    Args:
        command (Commands): The command to run.
        context (BuildContext): Build context of the project.

    Returns:
        dict: JSON-serializable result.
    """
    graph = TaskGraph()
    project = configure_tasks(graph, context)
    if command is Commands.RESOLVE:
        return resolve_summary(context)
    if command is Commands.TASKS:
        return describe_tasks(graph)
    if command in (Commands.PREPARE_SANDBOX, Commands.PREPARE_TESTING_SANDBOX):
        target = TaskNames.PREPARE_SANDBOX if command is Commands.PREPARE_SANDBOX \
            else TaskNames.PREPARE_TESTING_SANDBOX
        results = graph.run(project.task(target))
        return {name: str(path) for name, path in results.items()}
    # run-properties: configuration of runIde and test without staging the sandboxes
    return {
        TaskNames.RUN_IDE: graph.tasks[project.task(TaskNames.RUN_IDE)].action(),
        TaskNames.TEST: graph.tasks[project.task(TaskNames.TEST)].action(),
    }


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main", command=args.command)
        )

    command = Commands(args.command)
    try:
        with Timer() as timer:
            settings = load_settings(args.PROJECT_DIR, args.CONFIG)
            payload = run_command(command, BuildContext(settings))
    except IdeGateError as e:
        code = exit_code_for(e)
        logging.error("%s", e)
        if is_debug_enabled(logger):
            logger.debug(
                "CLI failed",
                extra=extra_context(event="function_exit", component="cli", action="main",
                                    outcome=code.name.lower())
            )
        sys.exit(code.value)

    logging.info("Command '%s' finished in %d ms", command.value, timer.duration_ms())
    export_json(payload, args.OUTPUT)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
