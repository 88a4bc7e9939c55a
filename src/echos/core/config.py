"""Workflow configuration loading and validation."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigError

logger = logging.getLogger(__name__)

ORCHESTRATOR = "orchestrator"

# Per-agent loop ceiling when neither the agent nor the workflow sets one
DEFAULT_MAX_LOOPS = 3


class _WorkflowModel(BaseModel):
    """Accepts both the camelCase keys used in workflow YAML and snake_case."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RetryPolicy(_WorkflowModel):
    count: int = 1
    backoff_ms: int = Field(default=0, alias="backoffMs")

    @field_validator('count')
    @classmethod
    def validate_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"retries.count must be >= 1, got {v}")
        return v

    @field_validator('backoff_ms')
    @classmethod
    def validate_backoff(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"retries.backoffMs must be >= 0, got {v}")
        return v


class MemoryPolicy(_WorkflowModel):
    read_from: List[str] = Field(default_factory=list, alias="readFrom")
    write_to: Optional[str] = Field(default=None, alias="writeTo")


class AgentGuardrails(_WorkflowModel):
    """Per-agent safety rules.

    Only ``max_cost_per_invocation`` is interpreted by the engine. Anything
    else (table or domain whitelists, execution toggles) is carried through
    untouched for the concrete agent to enforce.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    max_cost_per_invocation: Optional[float] = Field(default=None, alias="maxCostPerInvocation")

    @property
    def params(self) -> Dict[str, Any]:
        """Domain-specific guardrail fields the engine does not interpret."""
        return dict(self.model_extra or {})


class AgentPolicy(_WorkflowModel):
    retries: RetryPolicy = Field(default_factory=RetryPolicy)
    fallback: Optional[str] = None
    memory_policy: MemoryPolicy = Field(default_factory=MemoryPolicy, alias="memoryPolicy")
    guardrails: AgentGuardrails = Field(default_factory=AgentGuardrails)


class AgentDeclaration(_WorkflowModel):
    name: str
    type: Literal["orchestrator", "worker"] = "worker"
    max_loops: Optional[int] = Field(default=None, alias="maxLoops")
    policy: AgentPolicy = Field(default_factory=AgentPolicy)

    @field_validator('max_loops')
    @classmethod
    def validate_max_loops(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"maxLoops cannot be negative, got {v}")
        return v


class RouteDefinition(_WorkflowModel):
    can_call: List[str] = Field(default_factory=list, alias="canCall")


class WorkflowLimits(_WorkflowModel):
    default_max_loops: Optional[int] = Field(default=None, alias="defaultMaxLoops")
    max_duration_ms: Optional[int] = Field(default=None, alias="maxDurationMs")
    max_cost: Optional[float] = Field(default=None, alias="maxCost")

    @model_validator(mode='after')
    def validate_limits(self) -> 'WorkflowLimits':
        if self.default_max_loops is not None and self.default_max_loops < 1:
            raise ValueError(f"defaultMaxLoops must be >= 1, got {self.default_max_loops}")
        if self.max_duration_ms is not None and self.max_duration_ms < 0:
            raise ValueError(f"maxDurationMs cannot be negative, got {self.max_duration_ms}")
        if self.max_cost is not None and self.max_cost < 0:
            raise ValueError(f"maxCost cannot be negative, got {self.max_cost}")
        return self


class WorkflowConfig(_WorkflowModel):
    """Static description of one workflow graph. Never mutated during a run."""
    name: Optional[str] = None
    agents: List[AgentDeclaration]
    routes: Dict[str, RouteDefinition] = Field(default_factory=dict)
    limits: WorkflowLimits = Field(default_factory=WorkflowLimits)
    memory: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_references(self) -> 'WorkflowConfig':
        names = [a.name for a in self.agents]
        known = set(names)

        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigError(f"duplicate agent names: {', '.join(duplicates)}")

        orchestrators = [a for a in self.agents if a.type == ORCHESTRATOR]
        if ORCHESTRATOR not in known:
            raise ConfigError("workflow must declare an agent named 'orchestrator'")
        if len(orchestrators) != 1 or orchestrators[0].name != ORCHESTRATOR:
            raise ConfigError(
                "exactly one agent may have type 'orchestrator' and it must be named 'orchestrator'"
            )

        for source, route in self.routes.items():
            if source not in known:
                raise ConfigError(f"route references unknown agent: {source}")
            for target in route.can_call:
                if target not in known:
                    raise ConfigError(f"route references unknown agent: {target}")

        for agent in self.agents:
            fallback = agent.policy.fallback
            if fallback is not None and fallback not in known:
                raise ConfigError(
                    f"fallback references unknown agent: {agent.name} -> {fallback}"
                )
        return self

    def get_agent(self, name: str) -> Optional[AgentDeclaration]:
        for agent in self.agents:
            if agent.name == name:
                return agent
        return None

    def policy_for(self, name: str) -> AgentPolicy:
        decl = self.get_agent(name)
        return decl.policy if decl else AgentPolicy()

    def max_loops_for(self, name: str) -> int:
        decl = self.get_agent(name)
        if decl is not None and decl.max_loops is not None:
            return decl.max_loops
        if self.limits.default_max_loops is not None:
            return self.limits.default_max_loops
        return DEFAULT_MAX_LOOPS

    def allowed_targets(self, name: str) -> List[str]:
        route = self.routes.get(name)
        return list(route.can_call) if route else []

    def seed_memory(self) -> Dict[str, Dict[str, Any]]:
        """Deep copy of the pre-seeded namespaces, safe to mutate per run."""
        return copy.deepcopy(self.memory)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready dump in the workflow file's own key style."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RuntimeSettings(BaseSettings):
    """Process-level runtime settings (``ECHOS_*`` environment variables)."""
    model_config = SettingsConfigDict(env_prefix="ECHOS_", env_file=".env", extra="ignore")

    logs: bool = True  # ECHOS_LOGS=0 silences per-run agent logs
    log_level: str = "INFO"
    trace_dir: Path = Path("traces")
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    workflow_name: Optional[str] = None

    @field_validator('api_url')
    @classmethod
    def validate_api_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"api_url must start with http:// or https://, got '{v}'")
        return v


def parse_workflow(data: Dict[str, Any]) -> WorkflowConfig:
    """Validate raw workflow data, converting any failure into ConfigError."""
    if not isinstance(data, dict):
        raise ConfigError(f"workflow must be a mapping, got {type(data).__name__}")
    try:
        return WorkflowConfig.model_validate(_expand_env_vars(data))
    except ValidationError as e:
        raise ConfigError(f"invalid workflow: {e}") from e


def default_workflow(name: Optional[str] = None) -> WorkflowConfig:
    """Lone orchestrator with nowhere to route."""
    return WorkflowConfig(
        name=name or "default-workflow",
        agents=[AgentDeclaration(name=ORCHESTRATOR, type=ORCHESTRATOR)],
        routes={ORCHESTRATOR: RouteDefinition(can_call=[])},
    )


# Module-level mtime-based cache: path -> (parsed_config, file_mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def clear_config_cache() -> None:
    """Clear the module-level config cache. Useful for tests."""
    _config_cache.clear()


def _load_workflow_from_file(workflow_path: Path) -> WorkflowConfig:
    try:
        with open(workflow_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse yaml in {workflow_path}: {e}") from e
    return parse_workflow(data)


def load_workflow(workflow_path: Path = Path("workflow.yaml")) -> WorkflowConfig:
    """Load and validate a workflow YAML file.

    Uses mtime-based caching: returns the cached config while the file is unchanged.
    """
    workflow_path = Path(workflow_path)
    if not workflow_path.exists():
        raise FileNotFoundError(f"workflow file not found at {workflow_path.resolve()}")

    result = _get_cached_or_load(workflow_path.resolve(), _load_workflow_from_file)
    if result is None:
        raise FileNotFoundError(f"workflow file not found at {workflow_path.resolve()}")
    return result


def load_workflow_or_default(
    workflow_path: Path = Path("workflow.yaml"),
    name: Optional[str] = None,
) -> WorkflowConfig:
    """Like load_workflow, but a missing file yields the default workflow.

    An existing but invalid file still raises ConfigError.
    """
    try:
        return load_workflow(workflow_path)
    except FileNotFoundError:
        logger.warning(
            f"Workflow file not found: {workflow_path}. Using default single-orchestrator workflow."
        )
        return default_workflow(name)


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ``${VAR}`` string values from the environment."""
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used."
            )
            return data
        return value
    return data
