"""Tests for redirecting compiled output to instrumented classes."""

from pathlib import Path

from registry.ide import IdeDependency
from tasks.instrumentation import (
    CompileStep,
    InstrumentationRedirector,
    SourceSetKind,
    SourceSetOutput,
    instrumented_output_dir,
    javac2_jar,
)
from versioning.parser import parse_version

from conftest import write_jar


class TestInstrumentationRedirector:
    """Output swapping and the Kotlin test class path fix-up."""

    def test_main_output_is_redirected(self):
        original = Path("/build/classes/java/main")
        output = SourceSetOutput("main", [original])
        test_compile = CompileStep("compileTestKotlin", [Path("/deps/x.jar")])
        redirector = InstrumentationRedirector(lambda: test_compile)

        previous = redirector.redirect(output, "/build/classes/java/main-instrumented", SourceSetKind.MAIN)

        assert previous == [original]
        assert output.classes_dirs == [Path("/build/classes/java/main-instrumented")]
        assert test_compile.classpath == [original, Path("/deps/x.jar")]

    def test_original_dirs_are_not_duplicated(self):
        original = Path("/build/classes/java/main")
        test_compile = CompileStep("compileTestKotlin", [Path("/deps/x.jar"), original])
        redirector = InstrumentationRedirector(lambda: test_compile)

        redirector.redirect(SourceSetOutput("main", [original]), "/out", SourceSetKind.MAIN)

        assert test_compile.classpath == [original, Path("/deps/x.jar")]

    def test_without_kotlin_test_compile(self):
        output = SourceSetOutput("main", [Path("/classes")])
        InstrumentationRedirector().redirect(output, "/out", SourceSetKind.MAIN)
        assert output.classes_dirs == [Path("/out")]

    def test_test_source_set_leaves_class_path_alone(self):
        test_compile = CompileStep("compileTestKotlin", [Path("/deps/x.jar")])
        output = SourceSetOutput("test", [Path("/classes/test")])

        InstrumentationRedirector(lambda: test_compile).redirect(output, "/out-test", SourceSetKind.TEST)

        assert output.classes_dirs == [Path("/out-test")]
        assert test_compile.classpath == [Path("/deps/x.jar")]


class TestInstrumentationHelpers:
    """Paths used by instrumentation tasks."""

    def test_instrumented_output_dir(self):
        assert instrumented_output_dir("/build/classes/java/main", "main") == Path("/build/classes/java/main-instrumented")

    def test_javac2_jar(self, tmp_path):
        ide = IdeDependency("222.1", parse_version("222.1"), tmp_path, ())
        assert javac2_jar(ide) is None
        jar = write_jar(tmp_path / "lib" / "javac2.jar")
        assert javac2_jar(ide) == jar
