"""
Tests for the criticality CLI.
"""

import json

import pytest

from criticality.cli import main
from criticality.config import CriticalityConfig


DIAMOND = """\
# unit importer imported
Root X
Root Y
X Shared
Y Shared
Shared Core
"""


@pytest.fixture
def edge_file(tmp_path):
    path = tmp_path / "deps.txt"
    path.write_text(DIAMOND)
    return str(path)


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")


class TestAnalyze:

    def test_ranking_and_export(self, edge_file, tmp_path, capsys):
        output = tmp_path / "out.json"
        code = main(["analyze", "--edges", edge_file, "--root", "Root", "--output", str(output)])
        assert code == 0

        data = json.loads(output.read_text())
        assert data["root"] == "Root"
        assert data["stats"] == {"node_count": 5, "edge_count": 5, "invalid_edges": 0}
        assert data["scores"][0]["label"] == "Core"
        assert "Core" in capsys.readouterr().out

    def test_consumer_metric(self, edge_file, tmp_path):
        output = tmp_path / "out.json"
        code = main([
            "analyze", "--edges", edge_file, "--metric", "consumers_pagerank",
            "--output", str(output),
        ])
        assert code == 0
        assert json.loads(output.read_text())["scores"][0]["label"] == "Root"

    def test_concurrent_run(self, edge_file, tmp_path):
        output = tmp_path / "out.json"
        code = main(["analyze", "--edges", edge_file, "--concurrency", "3", "--output", str(output)])
        assert code == 0
        assert json.loads(output.read_text())["stats"]["edge_count"] == 5

    def test_betweenness_metric(self, edge_file, tmp_path):
        output = tmp_path / "out.json"
        code = main([
            "analyze", "--edges", edge_file, "--metric", "betweenness",
            "--output", str(output),
        ])
        assert code == 0
        data = json.loads(output.read_text())
        assert data["metric"] == "betweenness"
        assert data["scores"][0]["label"] == "Shared"

    def test_unknown_metric(self, edge_file):
        assert main(["analyze", "--edges", edge_file, "--metric", "closeness"]) == 1

    def test_convergence_exported(self, edge_file, tmp_path):
        output = tmp_path / "out.json"
        assert main(["analyze", "--edges", edge_file, "--output", str(output)]) == 0
        convergence = json.loads(output.read_text())["convergence"]
        assert set(convergence) == {"pagerank", "consumers_pagerank"}
        assert convergence["pagerank"]["converged"] is True

    def test_iteration_limit_still_ranks(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("MAX_ITERATIONS", "2")
        path = tmp_path / "deps.txt"
        path.write_text("a b\nb c\nc d\nd e\na e\n")
        output = tmp_path / "out.json"

        assert main(["analyze", "--edges", str(path), "--output", str(output)]) == 0
        data = json.loads(output.read_text())
        pagerank = data["convergence"]["pagerank"]
        assert pagerank["converged"] is False
        assert pagerank["iterations"] == 2
        assert pagerank["diff_l1"] > 0
        assert len(data["scores"]) == 5
        assert "Traceback" not in capsys.readouterr().err

    def test_unknown_root(self, edge_file, capsys):
        assert main(["analyze", "--edges", edge_file, "--root", "Nope"]) == 1
        assert "Root" not in capsys.readouterr().out

    def test_cycle(self, tmp_path):
        path = tmp_path / "cycle.txt"
        path.write_text("a b\nb a\n")
        assert main(["analyze", "--edges", str(path)]) == 1


class TestGraphAndStats:

    def test_graph_edges(self, edge_file, capsys):
        assert main(["graph", "--edges", edge_file, "--root", "Root"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert sorted(lines) == sorted([
            "Root X",
            "Root Y",
            "X Shared",
            "Y Shared",
            "Shared Core",
        ])

    def test_graph_weights(self, edge_file, capsys):
        assert main(["graph", "--edges", edge_file, "--weights"]) == 0
        assert "Shared:Shared->Core: 1" in capsys.readouterr().out

    def test_stats(self, edge_file, capsys):
        assert main(["stats", "--edges", edge_file]) == 0
        out = capsys.readouterr().out
        assert "Nodes: 5" in out
        assert "Edges: 5" in out

    def test_no_command(self):
        assert main([]) == 1


class TestConfig:

    def test_defaults(self):
        config = CriticalityConfig(root_unit="", log_level="INFO")
        assert config.damping == 0.85
        assert config.tolerance == 0.0001

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert CriticalityConfig().log_level == "DEBUG"
