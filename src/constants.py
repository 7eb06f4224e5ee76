"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 4


class Commands(Enum):
    """Commands supported by the CLI.

    Args:
        Enum (string): Commands supported by the CLI.
    """

    RESOLVE = "resolve"
    PREPARE_SANDBOX = "prepare-sandbox"
    PREPARE_TESTING_SANDBOX = "prepare-testing-sandbox"
    RUN_PROPERTIES = "run-properties"
    TASKS = "tasks"


class TaskNames:  # pylint: disable=too-few-public-methods
    """Names of the tasks declared for an IDE plugin project."""

    GROUP = "intellij"
    PREPARE_SANDBOX = "prepareSandbox"
    PREPARE_TESTING_SANDBOX = "prepareTestingSandbox"
    RUN_IDE = "runIde"
    TEST = "test"
    COMPILE_TEST_KOTLIN = "compileTestKotlin"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_IDEA_VERSION = "LATEST-EAP-SNAPSHOT"
    DEFAULT_PRODUCT_TYPE = "IC"
    DEFAULT_SANDBOX = "idea-sandbox"
    DEFAULT_PLUGIN_CHANNEL = "none"
    DEFAULT_INTELLIJ_REPO = "https://cache-redirector.jetbrains.com/www.jetbrains.com/intellij-repository"
    DEFAULT_INTELLIJ_PLUGINS_REPO = "https://cache-redirector.jetbrains.com/plugins.jetbrains.com/maven"
    DEFAULT_PLUGIN_XML = "src/main/resources/META-INF/plugin.xml"
    CONFIG_FILE = "idegate.yml"
    BUILD_DIR = "build"

    IDEA_GROUP = "com.jetbrains.intellij.idea"
    PLUGINS_GROUP = "com.jetbrains.plugins"
    BUILD_TXT = "build.txt"
    PLUGIN_XML_ENTRY = "META-INF/plugin.xml"
    UNPACKED_MARKER = ".idegate-unpacked"
    # Jars shipped in the IDE lib directory that must not leak onto a plugin classpath.
    IDE_JARS_TO_EXCLUDE = ("junit.jar", "junit-4.12.jar", "hamcrest-core-1.3.jar")

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    DOWNLOAD_CHUNK_SIZE = 1024 * 1024
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300

    ENV_LOG_LEVEL = "IDEGATE_LOG_LEVEL"
    ENV_CACHE_DIR = "IDEGATE_CACHE_DIR"
    ENV_CI = "CI"
    DEFAULT_CACHE_DIR = "~/.idegate/caches"
