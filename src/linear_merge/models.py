from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

APPROVED = "APPROVED"


class CiState(str, Enum):
    SUCCESS = "success"
    INCOMPLETE = "incomplete"
    FAIL = "fail"


class MergeStep(str, Enum):
    APPROVAL_GATE = "approval-gate"
    CI_GATE = "ci-gate"
    DRY_RUN = "dry-run"
    FETCH_HEAD = "fetch-head"
    CHECKOUT_HEAD = "checkout-head"
    SYNC_CHECK = "sync-check"
    FETCH_BASE = "fetch-base"
    REBASE = "rebase"
    PUSH_REBASED = "push-rebased"
    FAST_FORWARD = "fast-forward"
    PUSH_BASE = "push-base"
    CLEANUP = "cleanup"


class MergeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    remote: str = "origin"
    ignore_ci: bool = False
    wait_for_ci: bool = False
    dry_run: bool = False
    retain_branch: bool = False
    autosquash: bool = True


class TimingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    ci_poll_interval: float = Field(default=5.0, ge=0.0)
    ci_wait_timeout: float | None = Field(default=None, ge=0.0)
    push_retry_interval: float = Field(default=2.5, ge=0.0)
    wait_after_rebase: float = Field(default=4.0, ge=0.0)


class ToolsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    git_binary: str = "git"
    gh_binary: str = "gh"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    merge: MergeConfig = Field(default_factory=MergeConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)


class CheckRun(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    typename: Literal["CheckRun"] = Field(default="CheckRun", alias="__typename")
    name: str = ""
    workflow_name: str = Field(default="", alias="workflowName")
    status: str = ""
    conclusion: str = ""

    @field_validator("name", "workflow_name", "status", "conclusion", mode="before")
    @classmethod
    def none_as_empty(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def label(self) -> str:
        if self.workflow_name:
            return f"{self.workflow_name} / {self.name}"
        return self.name


class StatusContext(BaseModel):
    """Legacy commit status entry; present in the rollup but never evaluated."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    typename: Literal["StatusContext"] = Field(default="StatusContext", alias="__typename")


CheckResult = Annotated[Union[CheckRun, StatusContext], Field(discriminator="typename")]


class PrStatus(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    base_ref_name: str = Field(alias="baseRefName", min_length=1)
    review_decision: str | None = Field(default=None, alias="reviewDecision")
    checks: tuple[CheckResult, ...] = Field(default=(), alias="statusCheckRollup")

    @field_validator("checks", mode="before")
    @classmethod
    def none_as_no_checks(cls, value: object) -> object:
        return () if value is None else value

    @property
    def is_approved(self) -> bool:
        return self.review_decision == APPROVED

    @property
    def check_runs(self) -> list[CheckRun]:
        return [check for check in self.checks if isinstance(check, CheckRun)]


@dataclass(frozen=True, slots=True)
class RepoInfo:
    owner: str
    name: str
    default_branch: str


@dataclass(frozen=True, slots=True)
class PullRequestReference:
    branch: str
    fork_owner: str | None = None

    @property
    def qualified_branch(self) -> str:
        if self.fork_owner:
            return f"{self.fork_owner}:{self.branch}"
        return self.branch


@dataclass(frozen=True, slots=True)
class RemoteBinding:
    name: str
    url: str


@dataclass(frozen=True, slots=True)
class Resolution:
    reference: PullRequestReference
    binding: RemoteBinding | None = None


@dataclass(slots=True)
class MergeOutcome:
    branch: str
    base: str = ""
    dry_run: bool = False
    merged: bool = False
    force_pushed: bool = False
    completed: list[MergeStep] = field(default_factory=list)
