"""Tests for task declarations and the minimal task runner."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from resolution.context import BuildContext
from settings import load_settings
from tasks.configure import configure_tasks
from tasks.graph import TaskGraph
from tasks.instrumentation import CompileStep

from conftest import plugin_xml, write_jar


class TestTaskGraph:
    """Registration, ordering and execution."""

    def test_duplicate_registration(self):
        graph = TaskGraph()
        graph.register_task("a")
        with pytest.raises(ValueError):
            graph.register_task("a")

    def test_dependency_on_unknown_task(self):
        with pytest.raises(KeyError):
            TaskGraph().declare_dependency("missing", "other")

    def test_execution_order(self):
        graph = TaskGraph()
        for name in ("a", "b", "c"):
            graph.register_task(name)
        graph.declare_dependency("c", "b")
        graph.declare_dependency("b", "a")
        graph.declare_dependency("c", "a")
        assert graph.execution_order("c") == ["a", "b", "c"]
        assert graph.dependencies_of("c") == ["b", "a"]

    def test_cycle_detection(self):
        graph = TaskGraph()
        graph.register_task("a")
        graph.register_task("b")
        graph.declare_dependency("a", "b")
        graph.declare_dependency("b", "a")
        with pytest.raises(ValueError, match="cycle"):
            graph.execution_order("a")

    def test_run_skips_disabled_tasks(self):
        graph = TaskGraph()
        first = MagicMock(return_value=1)
        second = MagicMock(return_value=2)
        graph.register_task("first", first, enabled=lambda: False)
        graph.register_task("second", second)
        graph.declare_dependency("second", "first")

        assert graph.run("second") == {"second": 2}
        first.assert_not_called()


def _write_project(directory, config):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "idegate.yml").write_text(yaml.safe_dump(config), encoding="utf-8")
    return directory


@pytest.fixture
def ide_dir(make_ide):
    return make_ide(jars=("a.jar", "javac2.jar"))


@pytest.fixture
def project(tmp_path, ide_dir):
    project_dir = _write_project(tmp_path / "app", {
        "local_path": str(ide_dir),
        "cache_directory": str(tmp_path / "cache"),
        "plugin_name": "app-plugin",
        "plugin_jar": "build/libs/app.jar",
    })
    write_jar(project_dir / "build" / "libs" / "app.jar")
    xml = project_dir / "src" / "main" / "resources" / "META-INF" / "plugin.xml"
    xml.parent.mkdir(parents=True)
    xml.write_text(plugin_xml("org.app"), encoding="utf-8")
    return project_dir


@pytest.fixture
def context(project, fake_fetcher):
    return BuildContext(load_settings(project), fetcher=fake_fetcher)


class TestConfigureTasks:
    """Tasks declared for one project."""

    def test_declared_tasks_and_edges(self, context):
        graph = TaskGraph()
        configure_tasks(graph, context)

        assert set(graph.tasks) == {
            "prepareSandbox", "prepareTestingSandbox",
            "instrumentCode", "postInstrumentCode", "instrumentTestCode", "postInstrumentTestCode",
            "runIde", "test",
        }
        assert graph.dependencies_of("runIde") == ["prepareSandbox"]
        assert graph.dependencies_of("test") == ["prepareTestingSandbox"]
        assert graph.dependencies_of("postInstrumentCode") == ["instrumentCode"]
        assert graph.tasks["prepareSandbox"].group == "intellij"

    def test_configuration_does_not_resolve(self, context):
        configure_tasks(TaskGraph(), context)
        assert context.cache.is_resolved("ide") is False

    def test_prepare_sandbox(self, context, project):
        graph = TaskGraph()
        configure_tasks(graph, context)

        results = graph.run("prepareSandbox")

        staged = project.resolve() / "build" / "idea-sandbox" / "plugins" / "app-plugin"
        assert results == {"prepareSandbox": staged}
        assert (staged / "lib" / "app.jar").is_file()

    def test_instrumentation_disabled_without_instrumenter(self, context):
        graph = TaskGraph()
        configure_tasks(graph, context)
        assert graph.run("postInstrumentCode") == {}

    def test_instrumentation_redirects_main_output(self, context, project):
        def instrumenter(ide, classes_dir, target_dir, version):
            target_dir.mkdir(parents=True)
            return version

        original = project.resolve() / "build" / "classes" / "java" / "main"
        kotlin = CompileStep("compileTestKotlin", [Path("/deps/kotlin.jar")])
        graph = TaskGraph()
        tasks = configure_tasks(graph, context, instrumenter=instrumenter,
                                compile_steps={"compileTestKotlin": kotlin})

        results = graph.run("postInstrumentCode")

        assert results["instrumentCode"] == "222.4345"
        assert results["postInstrumentCode"] == [original]
        instrumented = project.resolve() / "build" / "classes" / "java" / "main-instrumented"
        assert tasks.source_sets["main"].classes_dirs == [instrumented]
        assert tasks.compile_steps["compileTestKotlin"].classpath == [original, Path("/deps/kotlin.jar")]

    def test_instrument_code_setting(self, context):
        context.settings.instrument_code = False
        instrumenter = MagicMock()
        graph = TaskGraph()
        configure_tasks(graph, context, instrumenter=instrumenter)
        graph.run("postInstrumentTestCode")
        instrumenter.assert_not_called()

    def test_run_ide_properties(self, context, project, ide_dir):
        graph = TaskGraph()
        configure_tasks(graph, context)

        run = graph.tasks["runIde"].action()

        sandbox = project.resolve() / "build" / "idea-sandbox"
        assert run["ide_directory"] == str(ide_dir.resolve())
        assert run["system_properties"] == {
            "idea.config.path": str(sandbox / "config"),
            "idea.system.path": str(sandbox / "system"),
            "idea.plugins.path": str(sandbox / "plugins"),
            "idea.required.plugins.id": "org.app",
        }
        assert "-Xmx512m" in run["jvm_args"]

    def test_test_properties(self, context, project):
        graph = TaskGraph()
        configure_tasks(graph, context)

        test = graph.tasks["test"].action()

        assert test["system_properties"]["idea.plugins.path"].endswith("plugins-test")
        assert [Path(p).name for p in test["classpath"]] == ["resources.jar", "idea.jar"]
        assert test["enable_assertions"] is True


class TestCompositeModules:
    """Sibling modules referenced as plugin dependencies."""

    @pytest.fixture
    def modules(self, tmp_path, ide_dir):
        common = {"local_path": str(ide_dir), "cache_directory": str(tmp_path / "cache")}
        for name in ("shared", "other", "app"):
            directory = tmp_path / name
            write_jar(directory / "build" / "libs" / f"{name}.jar")
            xml = directory / "src" / "main" / "resources" / "META-INF" / "plugin.xml"
            xml.parent.mkdir(parents=True)
            xml.write_text(plugin_xml(f"org.{name}"), encoding="utf-8")
        _write_project(tmp_path / "shared", dict(common, plugin_jar="build/libs/shared.jar"))
        _write_project(tmp_path / "other", dict(common, plugin_jar="build/libs/other.jar",
                                                plugins=[{"module": "../shared"}]))
        _write_project(tmp_path / "app", dict(common, plugin_jar="build/libs/app.jar",
                                              plugins=[{"module": "../shared"}, {"module": "../other"}]))
        return tmp_path

    def test_sibling_tasks_are_declared_once(self, modules, fake_fetcher):
        graph = TaskGraph()
        project = configure_tasks(graph, BuildContext(load_settings(modules / "app"), fetcher=fake_fetcher))

        assert "shared:prepareSandbox" in graph.tasks
        assert "other:prepareSandbox" in graph.tasks
        assert graph.dependencies_of("prepareSandbox") == ["shared:prepareSandbox", "other:prepareSandbox"]
        assert graph.dependencies_of("prepareTestingSandbox") == ["shared:prepareSandbox", "other:prepareSandbox"]
        assert graph.dependencies_of("other:prepareSandbox") == ["shared:prepareSandbox"]
        assert project.modules["other"].modules["shared"] is project.modules["shared"]

    def test_sibling_plugins_are_staged(self, modules, fake_fetcher):
        graph = TaskGraph()
        configure_tasks(graph, BuildContext(load_settings(modules / "app"), fetcher=fake_fetcher))

        results = graph.run("prepareTestingSandbox")

        assert list(results) == ["shared:prepareSandbox", "other:prepareSandbox", "prepareTestingSandbox"]
        plugins = modules.resolve() / "app" / "build" / "idea-sandbox" / "plugins-test"
        assert (plugins / "app" / "lib" / "app.jar").is_file()
        assert (plugins / "shared" / "lib" / "shared.jar").is_file()
        assert (plugins / "other" / "lib" / "other.jar").is_file()
