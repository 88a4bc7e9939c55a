"""Tests for workflow configuration parsing, validation and loading."""

import pytest

from echos.core.config import (
    DEFAULT_MAX_LOOPS,
    RuntimeSettings,
    WorkflowConfig,
    default_workflow,
    load_workflow,
    load_workflow_or_default,
    parse_workflow,
)
from echos.errors import ConfigError


def _agents(*workers):
    return [{"name": "orchestrator", "type": "orchestrator"}] + [{"name": w} for w in workers]


class TestParsing:
    def test_camel_case_keys(self):
        wf = parse_workflow({
            "agents": [
                {"name": "orchestrator", "type": "orchestrator", "maxLoops": 5},
                {
                    "name": "db",
                    "policy": {
                        "retries": {"count": 3, "backoffMs": 250},
                        "memoryPolicy": {"readFrom": ["shared"], "writeTo": "db"},
                        "guardrails": {"maxCostPerInvocation": 0.1, "allowedTables": ["orders"]},
                    },
                },
            ],
            "routes": {"orchestrator": {"canCall": ["db"]}},
            "limits": {"defaultMaxLoops": 2, "maxDurationMs": 1000, "maxCost": 1.5},
        })

        db = wf.get_agent("db")
        assert db.policy.retries.count == 3
        assert db.policy.retries.backoff_ms == 250
        assert db.policy.memory_policy.read_from == ["shared"]
        assert db.policy.memory_policy.write_to == "db"
        assert db.policy.guardrails.max_cost_per_invocation == 0.1
        assert db.policy.guardrails.params == {"allowedTables": ["orders"]}
        assert wf.allowed_targets("orchestrator") == ["db"]
        assert wf.limits.max_duration_ms == 1000
        assert wf.limits.max_cost == 1.5

    def test_snake_case_keys(self):
        wf = parse_workflow({
            "agents": _agents("w"),
            "routes": {"orchestrator": {"can_call": ["w"]}},
            "limits": {"max_cost": 2.0},
        })
        assert wf.allowed_targets("orchestrator") == ["w"]
        assert wf.limits.max_cost == 2.0

    def test_worker_is_default_type(self):
        wf = parse_workflow({"agents": _agents("w")})
        assert wf.get_agent("w").type == "worker"

    def test_env_var_expansion(self, monkeypatch):
        monkeypatch.setenv("WF_NAME", "from-env")
        wf = parse_workflow({"name": "${WF_NAME}", "agents": _agents()})
        assert wf.name == "from-env"

    def test_unset_env_var_kept_literally(self, monkeypatch):
        monkeypatch.delenv("WF_MISSING", raising=False)
        wf = parse_workflow({"name": "${WF_MISSING}", "agents": _agents()})
        assert wf.name == "${WF_MISSING}"

    def test_snapshot_uses_camel_case(self):
        wf = parse_workflow({
            "agents": _agents("w"),
            "routes": {"orchestrator": {"canCall": ["w"]}},
            "limits": {"maxCost": 1.0},
        })
        snap = wf.snapshot()
        assert snap["routes"]["orchestrator"]["canCall"] == ["w"]
        assert snap["limits"]["maxCost"] == 1.0
        assert parse_workflow(snap) == wf


class TestValidation:
    def test_missing_orchestrator(self):
        with pytest.raises(ConfigError, match="orchestrator"):
            parse_workflow({"agents": [{"name": "w"}]})

    def test_second_orchestrator_type(self):
        agents = _agents() + [{"name": "boss", "type": "orchestrator"}]
        with pytest.raises(ConfigError, match="exactly one"):
            parse_workflow({"agents": agents})

    def test_duplicate_names(self):
        with pytest.raises(ConfigError, match="duplicate agent names: w"):
            parse_workflow({"agents": _agents("w", "w")})

    def test_unknown_route_target(self):
        with pytest.raises(ConfigError, match="route references unknown agent: ghost"):
            parse_workflow({"agents": _agents("w"), "routes": {"orchestrator": {"canCall": ["ghost"]}}})

    def test_unknown_route_source(self):
        with pytest.raises(ConfigError, match="route references unknown agent: ghost"):
            parse_workflow({"agents": _agents("w"), "routes": {"ghost": {"canCall": ["w"]}}})

    def test_unknown_fallback(self):
        agents = _agents() + [{"name": "w", "policy": {"fallback": "ghost"}}]
        with pytest.raises(ConfigError, match="fallback references unknown agent: w -> ghost"):
            parse_workflow({"agents": agents})

    def test_direct_construction_raises_config_error(self):
        with pytest.raises(ConfigError):
            WorkflowConfig(agents=[{"name": "w"}])

    @pytest.mark.parametrize("retries", [{"count": 0}, {"backoffMs": -1}])
    def test_bad_retry_policy(self, retries):
        agents = _agents() + [{"name": "w", "policy": {"retries": retries}}]
        with pytest.raises(ConfigError, match="retries"):
            parse_workflow({"agents": agents})

    def test_negative_max_cost(self):
        with pytest.raises(ConfigError, match="maxCost"):
            parse_workflow({"agents": _agents(), "limits": {"maxCost": -1}})

    def test_non_mapping(self):
        with pytest.raises(ConfigError, match="mapping"):
            parse_workflow(["orchestrator"])


class TestDerivedValues:
    def test_max_loops_precedence(self):
        wf = parse_workflow({
            "agents": [
                {"name": "orchestrator", "type": "orchestrator", "maxLoops": 7},
                {"name": "w"},
            ],
            "limits": {"defaultMaxLoops": 2},
        })
        assert wf.max_loops_for("orchestrator") == 7
        assert wf.max_loops_for("w") == 2

    def test_max_loops_builtin_default(self):
        wf = parse_workflow({"agents": _agents("w")})
        assert wf.max_loops_for("w") == DEFAULT_MAX_LOOPS == 3

    def test_agent_without_route_has_no_targets(self):
        wf = parse_workflow({"agents": _agents("w")})
        assert wf.allowed_targets("w") == []

    def test_seed_memory_is_a_copy(self):
        wf = parse_workflow({"agents": _agents(), "memory": {"shared": {"k": [1]}}})
        seeded = wf.seed_memory()
        seeded["shared"]["k"].append(2)
        assert wf.memory["shared"]["k"] == [1]

    def test_default_workflow(self):
        wf = default_workflow("adhoc")
        assert wf.name == "adhoc"
        assert [a.name for a in wf.agents] == ["orchestrator"]
        assert wf.allowed_targets("orchestrator") == []


class TestLoading:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "workflow.yaml"
        path.write_text(
            "name: demo\n"
            "agents:\n"
            "  - name: orchestrator\n"
            "    type: orchestrator\n"
            "  - name: w\n"
            "routes:\n"
            "  orchestrator:\n"
            "    canCall: [w]\n"
        )
        wf = load_workflow(path)
        assert wf.name == "demo"
        assert wf.allowed_targets("orchestrator") == ["w"]

    def test_load_is_cached_until_file_changes(self, tmp_path):
        path = tmp_path / "workflow.yaml"
        path.write_text("agents:\n  - name: orchestrator\n    type: orchestrator\n")
        assert load_workflow(path) is load_workflow(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_workflow(tmp_path / "nope.yaml")

    def test_missing_file_falls_back_to_default(self, tmp_path):
        wf = load_workflow_or_default(tmp_path / "nope.yaml", "fallback-name")
        assert wf.name == "fallback-name"

    def test_invalid_file_still_raises(self, tmp_path):
        path = tmp_path / "workflow.yaml"
        path.write_text("agents:\n  - name: w\n")
        with pytest.raises(ConfigError):
            load_workflow_or_default(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "workflow.yaml"
        path.write_text("agents: [unclosed\n")
        with pytest.raises(ConfigError, match="yaml"):
            load_workflow(path)


class TestRuntimeSettings:
    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ECHOS_LOGS", "0")
        monkeypatch.setenv("ECHOS_TRACE_DIR", str(tmp_path))
        monkeypatch.setenv("ECHOS_API_URL", "https://traces.example.com")
        s = RuntimeSettings()
        assert s.logs is False
        assert s.trace_dir == tmp_path
        assert s.api_url == "https://traces.example.com"

    def test_rejects_bad_api_url(self):
        with pytest.raises(ValueError):
            RuntimeSettings(api_url="ftp://nope")
