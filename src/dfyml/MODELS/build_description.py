"""
Models for declarative, multi-stage build descriptions.
"""
from typing import Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _to_str(value: Any) -> str:
    """
    Coerces a scalar given from Python code to its string form.

    Documents loaded by DockerfileYmlParser already hold strings.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    raise ValueError(f"expected a scalar, got {type(value).__name__}")


class Stage(BaseModel):
    """
    One layer of the build: a FROM line and everything that follows it.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    from_: str = Field(default="", alias="from")
    label: Dict[str, str] = {}
    workdir: str = ""

    env: Dict[str, str] = {}
    add: Dict[str, str] = {}
    # source -> destination; a source may read "<stage>:<path>"
    copy_: Dict[str, str] = Field(default={}, alias="copy")
    run: List[str] = []

    expose: List[str] = []
    volume: List[str] = []

    entrypoint: List[str] = []
    cmd: List[str] = []

    @field_validator("from_", "workdir", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> str:
        return _to_str(value)

    @field_validator("label", "env", "add", "copy_", mode="before")
    @classmethod
    def _mapping(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {_to_str(k): _to_str(v) for k, v in value.items()}
        return value

    @field_validator("run", "expose", "volume", "entrypoint", "cmd", mode="before")
    @classmethod
    def _sequence(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, int, float)):
            return [_to_str(value)]
        if isinstance(value, (list, tuple)):
            return [_to_str(v) for v in value]
        return value


class BuildDescription(BaseModel):
    """
    A complete build: named intermediate stages plus the final, unnamed stage.

    When validated from a plain mapping (a parsed dockerfile.yml), every key
    other than ``image`` and ``stages`` belongs to the final stage.
    """
    model_config = ConfigDict(extra="forbid")

    image: str = ""
    stages: Dict[str, Stage] = {}
    stage: Stage = Field(default_factory=Stage)

    @model_validator(mode="before")
    @classmethod
    def _inline_final_stage(cls, data: Any) -> Any:
        if isinstance(data, dict) and "stage" not in data:
            data = dict(data)
            data["stage"] = {
                key: data.pop(key) for key in list(data) if key not in ("image", "stages")
            }
        return data

    @field_validator("image", mode="before")
    @classmethod
    def _image(cls, value: Any) -> str:
        return _to_str(value)

    @field_validator("stages", mode="before")
    @classmethod
    def _stages(cls, value: Any) -> Any:
        if value is None:
            return {}
        # the empty name identifies the final stage
        if isinstance(value, dict) and any(not name for name in value):
            raise ValueError("stage names must not be empty")
        return value


def scripts(*lines: str) -> List[str]:
    """Shell commands for ``Stage.run``, chained with ``&&`` on output."""
    return list(lines)


def args(*tokens: str) -> List[str]:
    """Exec-form tokens for ``Stage.entrypoint`` and ``Stage.cmd``."""
    return list(tokens)


def container_env_var(name: str) -> str:
    """
    References a variable of the running container inside exec-form arguments.
    """
    return "$" + name
