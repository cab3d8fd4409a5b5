"""Tests for the query engine."""

from __future__ import annotations

from pathlib import Path

import pytest

from fastcheck.core.checker import FastChecker, is_user_source, to_records
from fastcheck.core.errors import OutOfProjectScope, SourceNotFoundError
from fastcheck.core.models import ChangedSet, Severity, SingleFile, WholeProject
from fastcheck.core.toolchain import DiagnosticCategory, RawDiagnostic


class StaticResolver:
    def __init__(self, paths: list[str]):
        self.paths = paths

    def changed_files(self) -> list[str]:
        return list(self.paths)


def make_checker(root: Path, toolchain, **kwargs) -> FastChecker:
    kwargs.setdefault("resolver", StaticResolver([]))
    return FastChecker(root, toolchain=toolchain, **kwargs)


class TestToRecords:
    """to_records normalizes compiler diagnostics."""

    def test_positions_become_one_based(self, tmp_path: Path) -> None:
        diag = RawDiagnostic(str(tmp_path / "a.py"), 0, 4, "assignment", ("Bad",))

        [record] = to_records([diag], tmp_path)

        assert record.file == "a.py"
        assert record.line == 1
        assert record.column == 5
        assert record.code == "assignment"
        assert record.severity == Severity.ERROR

    def test_nested_path_is_posix_relative(self, tmp_path: Path) -> None:
        diag = RawDiagnostic(str(tmp_path / "pkg" / "mod.py"), 2, 0, "name-defined", ("x",))

        [record] = to_records([diag], tmp_path)

        assert record.file == "pkg/mod.py"

    def test_message_chain_is_flattened(self, tmp_path: Path) -> None:
        diag = RawDiagnostic(str(tmp_path / "a.py"), 0, 0, "arg-type", ("Head", "Detail"))

        [record] = to_records([diag], tmp_path)

        assert record.message == "Head\nDetail"

    def test_global_and_informational_diagnostics_are_dropped(self, tmp_path: Path) -> None:
        diags = [
            RawDiagnostic(None, 0, 0, "misc", ("global",)),
            RawDiagnostic(str(tmp_path / "a.py"), 0, 0, "misc", ("note",), DiagnosticCategory.MESSAGE),
            RawDiagnostic(str(tmp_path / "a.py"), 1, 0, "misc", ("kept",), DiagnosticCategory.WARNING),
        ]

        records = to_records(diags, tmp_path)

        assert [r.message for r in records] == ["kept"]
        assert records[0].severity == Severity.WARNING

    def test_grouped_by_file_in_first_seen_order(self, tmp_path: Path) -> None:
        a, b = str(tmp_path / "a.py"), str(tmp_path / "b.py")
        diags = [
            RawDiagnostic(b, 5, 0, "x", ("b1",)),
            RawDiagnostic(a, 9, 0, "x", ("a1",)),
            RawDiagnostic(b, 1, 0, "x", ("b2",)),
        ]

        records = to_records(diags, tmp_path)

        assert [r.message for r in records] == ["b1", "b2", "a1"]


class TestIsUserSource:
    def test_project_file(self, tmp_path: Path) -> None:
        assert is_user_source(str(tmp_path / "a.py"), tmp_path)

    def test_library_and_stub_files(self, tmp_path: Path) -> None:
        assert not is_user_source("/usr/lib/python3/site-packages/six.py", tmp_path)
        assert not is_user_source("/opt/mypy/typeshed/stdlib/builtins.pyi", tmp_path)
        assert not is_user_source(str(tmp_path / "stubs" / "mod.pyi"), tmp_path)

    def test_sibling_directory_is_not_project(self, tmp_path: Path) -> None:
        assert not is_user_source(str(tmp_path) + "-other/a.py", tmp_path)


class TestCheckFile:
    def test_reports_errors_of_one_file(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {
                "a.py": "x = 1  # error: assignment Bad assignment\n",
                "b.py": "y = 2  # error: name-defined Not mine\n",
            }
        )
        checker = make_checker(root, fake_toolchain)

        result = checker.check_file("a.py")

        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.file == "a.py"
        assert error.line == 1
        assert error.column == 8
        assert error.message == "Bad assignment"
        assert result.metrics is not None
        assert result.metrics.files_checked == 1
        assert result.metrics.total_errors == 1

    def test_syntactic_before_semantic(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {"a.py": "x = 1  # error: assignment Bad\ndef f(:  # syntax\n"}
        )
        checker = make_checker(root, fake_toolchain)

        result = checker.check_file("a.py")

        assert [e.code for e in result.errors] == ["syntax", "assignment"]

    def test_clean_file(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "x = 1\n"})
        checker = make_checker(root, fake_toolchain)

        result = checker.check_file("a.py")

        assert result.errors == []
        assert not result.has_errors

    def test_missing_file_raises(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "x = 1\n"})
        checker = make_checker(root, fake_toolchain)

        with pytest.raises(SourceNotFoundError, match="File not found"):
            checker.check_file("missing.py")

    def test_file_outside_program_raises(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "", "build/gen.py": ""})
        checker = make_checker(root, fake_toolchain)

        with pytest.raises(OutOfProjectScope):
            checker.check_file("build/gen.py")

    def test_reads_latest_disk_content(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "x = 1\n"})
        checker = make_checker(root, fake_toolchain)
        assert checker.check_file("a.py").errors == []

        (root / "a.py").write_text("x = 1  # error: assignment Now broken\n")

        assert [e.code for e in checker.check_file("a.py").errors] == ["assignment"]

    def test_repeated_check_is_idempotent(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "x = 1  # error: assignment Bad\n"})
        checker = make_checker(root, fake_toolchain)

        first = checker.check_file("a.py")
        second = checker.check_file("a.py")

        assert first.errors == second.errors
        assert fake_toolchain.builds == 1

    def test_root_file_membership(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "", "build/gen.py": ""})
        checker = make_checker(root, fake_toolchain)

        assert checker.is_root_file("a.py")
        assert not checker.is_root_file("build/gen.py")

    def test_metrics_can_be_disabled(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "x = 1\n"})
        checker = make_checker(root, fake_toolchain, collect_metrics=False)

        assert checker.check_file("a.py").metrics is None


class TestCheckPaths:
    def test_counts_only_checked_files(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {
                "a.py": "x = 1  # error: assignment Bad\n",
                "b.py": "y = 2\n",
                "build/gen.py": "z = 3  # error: misc Ignored\n",
            }
        )
        checker = make_checker(root, fake_toolchain)

        result = checker.check_paths(
            [str(root / "a.py"), "b.py", "a.py", "missing.py", "build/gen.py"]
        )

        assert [e.file for e in result.errors] == ["a.py"]
        assert result.metrics is not None
        assert result.metrics.files_checked == 2

    def test_whole_set_is_refreshed_before_one_build(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {
                "lib.py": "def greet(name: int) -> int: ...\n",
                "app.py": "greet(42)\n",
            }
        )
        checker = make_checker(root, fake_toolchain)
        checker.check_all()

        (root / "lib.py").write_text("def greet(name: str) -> str: ...\n")
        (root / "app.py").write_text('greet("x")\n')
        result = checker.check_paths(["app.py", "lib.py"])

        assert fake_toolchain.builds == 2
        assert fake_toolchain.last_contents == {
            str(root / "app.py"): 'greet("x")\n',
            str(root / "lib.py"): "def greet(name: str) -> str: ...\n",
        }
        assert result.metrics is not None
        assert result.metrics.files_checked == 2

    def test_empty_set(self, make_project, fake_toolchain) -> None:
        root = make_project({"a.py": "x = 1  # error: assignment Bad\n"})
        checker = make_checker(root, fake_toolchain)

        result = checker.check_paths([])

        assert result.errors == []
        assert result.metrics is not None
        assert result.metrics.files_checked == 0

    def test_changed_files_come_from_resolver(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {
                "a.py": "x = 1  # error: assignment Bad\n",
                "b.py": "y = 2  # error: name-defined Unchanged\n",
            }
        )
        checker = make_checker(root, fake_toolchain, resolver=StaticResolver([str(root / "a.py")]))

        result = checker.check_changed_files()

        assert [e.file for e in result.errors] == ["a.py"]


class TestCheckAll:
    def test_every_program_diagnostic(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {
                "a.py": "x = 1  # error: assignment Bad\n",
                "b.py": "y = 2  # warning: unused-ignore Needless\n",
            }
        )
        checker = make_checker(root, fake_toolchain)

        result = checker.check_all()

        assert [(e.file, e.severity) for e in result.errors] == [
            ("a.py", Severity.ERROR),
            ("b.py", Severity.WARNING),
        ]

    def test_library_files_are_not_counted(self, make_project, toolchain_factory) -> None:
        toolchain = toolchain_factory(
            extra_files=[
                "/usr/lib/python3/site-packages/six.py",
                "/opt/mypy/typeshed/stdlib/builtins.pyi",
            ]
        )
        root = make_project({"a.py": "", "b.py": ""})
        checker = make_checker(root, toolchain)

        result = checker.check_all()

        assert result.metrics is not None
        assert result.metrics.files_checked == 2

    def test_global_diagnostics_are_dropped(self, make_project, toolchain_factory) -> None:
        toolchain = toolchain_factory(
            extra_diagnostics=[RawDiagnostic(None, 0, 0, "misc", ("Global problem",))]
        )
        root = make_project({"a.py": ""})
        checker = make_checker(root, toolchain)

        assert checker.check_all().errors == []


class TestRun:
    def test_dispatches_requests(self, make_project, fake_toolchain) -> None:
        root = make_project(
            {
                "a.py": "x = 1  # error: assignment Bad\n",
                "b.py": "y = 2  # error: name-defined Other\n",
            }
        )
        checker = make_checker(root, fake_toolchain)

        single = checker.run(SingleFile(str(root / "a.py")))
        changed = checker.run(ChangedSet((str(root / "b.py"),)))
        everything = checker.run(WholeProject())

        assert [e.file for e in single.errors] == ["a.py"]
        assert [e.file for e in changed.errors] == ["b.py"]
        assert [e.file for e in everything.errors] == ["a.py", "b.py"]

    def test_unknown_request(self, make_project, fake_toolchain) -> None:
        root = make_project({})
        checker = make_checker(root, fake_toolchain)

        with pytest.raises(TypeError):
            checker.run("a.py")  # type: ignore[arg-type]
