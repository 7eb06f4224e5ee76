"""Argument parsing functionality for idegate."""

import argparse
from constants import Commands


def build_parser():
    """Builds the argument parser of the program."""
    parser = argparse.ArgumentParser(
        prog="idegate",
        description=(
            "idegate - Resolve IDE and plugin dependencies and stage IDE sandboxes for plugin projects"
        ),
        add_help=True,
    )

    parser.add_argument("command",
                        help="Command to run",
                        action="store", type=str,
                        choices=[c.value for c in Commands])

    parser.add_argument("-C", "--project-dir",
                        dest="PROJECT_DIR",
                        help="Plugin project directory (default: current directory)",
                        action="store",
                        type=str,
                        default=".")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to the project configuration file (default: idegate.yml in the project directory)",
                        action="store",
                        type=str)
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to JSON output file (default: standard output)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
