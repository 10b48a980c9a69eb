"""
Unit tests for test file discovery and test-case listing.
"""

from runreport.execution.discovery import discover_test_files, extract_test_cases


class TestDiscoverTestFiles:
    def test_finds_nested_files(self, project_dir):
        files = discover_test_files(project_dir)

        assert files == ["tests/api/users.test.js", "tests/login.test.js"]

    def test_skips_node_modules_and_store(self, project_dir, config):
        (project_dir / "node_modules" / "pkg").mkdir(parents=True)
        (project_dir / "node_modules" / "pkg" / "dep.test.js").write_text("it('x', () => {})")
        config.store_root.mkdir(parents=True, exist_ok=True)
        (config.store_root / "copy.test.js").write_text("it('x', () => {})")

        files = discover_test_files(project_dir, exclude=[config.store_root])

        assert "node_modules/pkg/dep.test.js" not in files
        assert all(not f.startswith("test-report/") for f in files)

    def test_custom_pattern(self, project_dir):
        (project_dir / "tests" / "extra.spec.js").write_text("")

        assert discover_test_files(project_dir, "**/*.spec.js") == ["tests/extra.spec.js"]


class TestExtractTestCases:
    def test_titles_in_source_order(self, project_dir):
        titles = extract_test_cases(project_dir / "tests" / "login.test.js")

        assert titles == ["login works", "rejects (bad) password"]

    def test_supports_test_and_backticks(self, project_dir):
        titles = extract_test_cases(project_dir / "tests" / "api" / "users.test.js")

        assert titles == ["lists users", "creates user"]

    def test_ignores_describe_blocks(self, tmp_path):
        source = tmp_path / "suite.test.js"
        source.write_text("describe('outer', () => {\n  it('inner', () => {});\n});\n")

        assert extract_test_cases(source) == ["inner"]

    def test_missing_file(self, tmp_path):
        assert extract_test_cases(tmp_path / "missing.test.js") == []
