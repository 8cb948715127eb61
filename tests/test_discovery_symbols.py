"""Tests for benchmark declaration lookup in Go test files."""

from conftest import GO_TEST_FILE

from go_allocations.discovery import find_benchmark_declarations
from go_allocations.models import normalize_path


class TestFindBenchmarkDeclarations:
    def test_top_level_declarations(self, tmp_path):
        (tmp_path / "a_test.go").write_text(GO_TEST_FILE.format(package="a"))
        locations = find_benchmark_declarations(tmp_path)

        assert set(locations) == {"BenchmarkAlpha", "BenchmarkBeta"}
        assert locations["BenchmarkAlpha"].file == normalize_path(tmp_path / "a_test.go")
        assert locations["BenchmarkAlpha"].line == 7

    def test_non_test_files_ignored(self, tmp_path):
        (tmp_path / "a.go").write_text(GO_TEST_FILE.format(package="a"))
        assert find_benchmark_declarations(tmp_path) == {}

    def test_first_file_wins(self, tmp_path):
        (tmp_path / "b_test.go").write_text("package a\n\nfunc BenchmarkAlpha(b *testing.B) {}\n")
        (tmp_path / "a_test.go").write_text(GO_TEST_FILE.format(package="a"))
        locations = find_benchmark_declarations(tmp_path)
        assert locations["BenchmarkAlpha"].file.endswith("a_test.go")

    def test_methods_and_other_signatures_skipped(self, tmp_path):
        (tmp_path / "a_test.go").write_text(
            "package a\n"
            "func (s *S) BenchmarkMethod(b *testing.B) {}\n"
            "func BenchmarkWrongArg(t *testing.T) {}\n"
            "func TestSomething(t *testing.T) {}\n"
            "  func BenchmarkIndented(bb *testing.B) {}\n"
        )
        assert list(find_benchmark_declarations(tmp_path)) == ["BenchmarkIndented"]

    def test_missing_directory(self, tmp_path):
        assert find_benchmark_declarations(tmp_path / "missing") == {}
