"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

import pytest

from legacylens import __version__, cli
from legacylens.cli import app
from legacylens.compiler import BuildStrategy, CompilationOrchestrator
from legacylens.engine import AnalysisEngine
from legacylens.models import StrategyResult


runner = CliRunner()

SAMPLE_CLASSES = [
    "com/example/users/controller/UserController",
    "com/example/users/service/UserServiceImpl",
    "com/example/users/repository/UserRepository",
]


class PrebuiltStrategy(BuildStrategy):
    """Pretends to build by dropping class files into target/classes."""

    name = "prebuilt"

    def __init__(self, write_class):
        self.write_class = write_class

    def applicable(self, module_root: Path) -> bool:
        return True

    def run(self, module_root: Path, timeout: int) -> StrategyResult:
        for name in SAMPLE_CLASSES:
            self.write_class(module_root / "target" / "classes", name)
        return StrategyResult(self.name, True)


@pytest.fixture
def prebuilt_engine(monkeypatch, write_class):
    """Route the analyze command through a compiler that never shells out."""

    def factory(engine_config):
        orchestrator = CompilationOrchestrator(engine_config, [PrebuiltStrategy(write_class)])
        return AnalysisEngine(engine_config, orchestrator=orchestrator)

    monkeypatch.setattr(cli, "AnalysisEngine", factory)


class TestVersion:
    """Tests for '--version'."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"LegacyLens v{__version__}" in result.output


class TestAnalyzeCommand:
    """Tests for 'legacylens analyze'."""

    def test_analyze_writes_json(self, sample_project_copy: Path, temp_dir: Path, isolated_config, prebuilt_engine):
        output = temp_dir / "report" / "analysis.json"

        result = runner.invoke(app, ["analyze", str(sample_project_copy), "--output", str(output)])

        assert result.exit_code == 0, result.output
        assert "Wrote analysis to" in result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["status"] == "success"
        [module] = data["modules"]
        assert module["compiled_with"] == "prebuilt"
        assert module["roles"]["entry_point"] == ["UserController"]
        [sequence] = module["sequences"]["UserController"]
        assert sequence["operation"] == "createUser"
        assert [c["method"] for c in sequence["calls"]] == ["register", "save"]

    def test_analyze_missing_project(self, temp_dir: Path, isolated_config, prebuilt_engine):
        result = runner.invoke(app, ["analyze", str(temp_dir / "nowhere")])

        assert result.exit_code == 1

    def test_analyze_rejects_invalid_override(self, sample_project_copy: Path, isolated_config, prebuilt_engine):
        result = runner.invoke(app, ["analyze", str(sample_project_copy), "--max-classes", "0"])

        assert result.exit_code == 2

    def test_analyze_rejects_malformed_config(self, sample_project_copy: Path, temp_dir: Path, prebuilt_engine):
        bad = temp_dir / "bad.toml"
        bad.write_text("[scan\n", encoding="utf-8")

        result = runner.invoke(app, ["analyze", str(sample_project_copy), "--config", str(bad)])

        assert result.exit_code == 2


class TestStackCommand:
    """Tests for 'legacylens stack'."""

    def test_stack_of_sample(self, sample_project_path: Path):
        result = runner.invoke(app, ["stack", str(sample_project_path)])

        assert result.exit_code == 0
        assert "MAVEN" in result.output

    def test_stack_missing_path(self, temp_dir: Path):
        result = runner.invoke(app, ["stack", str(temp_dir / "nowhere")])

        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output


class TestModulesCommand:
    """Tests for 'legacylens modules'."""

    def test_lists_modules(self, temp_dir: Path, write_tree):
        write_tree(temp_dir, {
            "api/pom.xml": "<project/>",
            "core/pom.xml": "<project/>",
        })

        result = runner.invoke(app, ["modules", str(temp_dir)])

        assert result.exit_code == 0
        listed = {Path(line).name for line in result.output.splitlines() if line.strip()}
        assert listed == {"api", "core"}

    def test_single_module_flag(self, temp_dir: Path, write_tree):
        write_tree(temp_dir, {
            "api/pom.xml": "<project/>",
            "core/pom.xml": "<project/>",
        })

        result = runner.invoke(app, ["modules", str(temp_dir), "--no-multi-module"])

        assert result.exit_code == 0
        assert result.output.strip() == str(temp_dir)

    def test_missing_root(self, temp_dir: Path):
        result = runner.invoke(app, ["modules", str(temp_dir / "nowhere")])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestConfigCommands:
    """Tests for 'legacylens init-config' and 'show-config'."""

    def test_init_config_writes_defaults(self, isolated_config: Path):
        result = runner.invoke(app, ["init-config"])

        assert result.exit_code == 0
        assert isolated_config.exists()
        assert "[scan]" in isolated_config.read_text(encoding="utf-8")

    def test_init_config_refuses_overwrite(self, isolated_config: Path):
        runner.invoke(app, ["init-config"])

        assert runner.invoke(app, ["init-config"]).exit_code == 1
        assert runner.invoke(app, ["init-config", "--force"]).exit_code == 0

    def test_show_config(self, temp_dir: Path):
        path = temp_dir / "config.toml"
        path.write_text("[scan]\nmax_classes = 42\n", encoding="utf-8")

        result = runner.invoke(app, ["show-config", "--path", str(path)])

        assert result.exit_code == 0
        assert "max_classes" in result.output
        assert "42" in result.output
