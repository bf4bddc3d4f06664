"""Pytest configuration and shared fixtures."""

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from pydantic import SecretStr

from prp_orchestrator.config.settings import BotCredentials, DefaultsConfig, GlobalConfig, ProjectEntry
from prp_orchestrator.models.domain import AgentResult, ProjectContext
from prp_orchestrator.models.plan import MasterPlan, MasterPRP
from prp_orchestrator.providers.base import CodingAgent, ReviewFeedback, ReviewHost, VersionControl
from prp_orchestrator.rendering import PRPRenderer


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty project working tree."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def project_ctx(project_dir: Path) -> ProjectContext:
    """Project context rooted in a temporary directory."""
    return ProjectEntry(name="demo", path=str(project_dir)).to_context()


@pytest.fixture
def sample_plan() -> MasterPlan:
    """Plan with PRP-001 and PRP-002, where PRP-002 depends on PRP-001."""
    return MasterPlan(
        name="Invoices",
        context="FastAPI service with SQLAlchemy models.",
        constraints=["Keep the public API stable"],
        prps=[
            MasterPRP(
                id="PRP-001",
                title="Invoice model",
                scope="Add an Invoice table and repository.",
                acceptance_criteria=["Invoices can be stored and loaded"],
                tests_required=["Repository round trip"],
            ),
            MasterPRP(
                id="PRP-002",
                title="Invoice API",
                scope="Expose invoices over REST.",
                depends_on=["PRP-001"],
            ),
        ],
    )


@pytest.fixture
def write_plan(project_ctx: ProjectContext, sample_plan: MasterPlan):
    """Write the sample plan to the project's master plan location."""

    def _write(plan: MasterPlan | None = None) -> Path:
        plan = plan or sample_plan
        project_ctx.master_file.parent.mkdir(parents=True, exist_ok=True)
        project_ctx.master_file.write_text(yaml.safe_dump(plan.model_dump(mode="json")), encoding="utf-8")
        return project_ctx.master_file

    return _write


@pytest.fixture
def git_repo(project_dir: Path, tmp_path: Path) -> Path:
    """project_dir as a real repository whose main branch is pushed to a bare origin."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    origin = tmp_path / "origin.git"

    def git(*args: str, cwd: Path = project_dir) -> None:
        subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)

    git("init", "--bare", "-b", "main", str(origin), cwd=tmp_path)
    git("init", "-b", "main")
    for key, value in (
        ("user.name", "Test"),
        ("user.email", "test@example.com"),
        ("commit.gpgsign", "false"),
        ("pull.rebase", "false"),
    ):
        git("config", key, value)
    (project_dir / "app.py").write_text("print('hello')\n")
    git("add", "app.py")
    git("commit", "-m", "initial")
    git("remote", "add", "origin", str(origin))
    git("push", "-u", "origin", "main")
    git("remote", "set-head", "origin", "main")
    return project_dir


@pytest.fixture
def mock_vcs(project_dir: Path) -> MagicMock:
    """VersionControl with async methods mocked."""
    vcs = MagicMock(spec=VersionControl)
    vcs.repo_path = project_dir
    vcs.default_branch.return_value = "main"
    vcs.list_remote_branches.return_value = []
    vcs.remote_branch_exists.return_value = False
    vcs.status_porcelain.return_value = []
    vcs.remote_url.return_value = "https://github.com/owner/repo.git"
    vcs.is_repository.return_value = True
    return vcs


@pytest.fixture
def mock_host() -> MagicMock:
    """ReviewHost with async methods mocked."""
    host = MagicMock(spec=ReviewHost)
    host.auth_status.return_value = True
    host.find_by_branch.return_value = None
    host.find_merged_by_prefix.return_value = None
    host.get_feedback.return_value = ReviewFeedback()
    host.create_pull_request.return_value = "https://github.com/owner/repo/pull/7"
    return host


@pytest.fixture
def mock_agent() -> MagicMock:
    """CodingAgent that succeeds by default."""
    agent = MagicMock(spec=CodingAgent)
    agent.run.return_value = AgentResult(success=True, output="done")
    return agent


@pytest.fixture
def defaults() -> DefaultsConfig:
    return DefaultsConfig()


@pytest.fixture
def bot() -> BotCredentials:
    return BotCredentials(username="prp-bot", token=SecretStr("ghp_secret"))


@pytest.fixture
def renderer() -> PRPRenderer:
    return PRPRenderer()


@pytest.fixture
def global_config(project_dir: Path) -> GlobalConfig:
    return GlobalConfig(projects=[ProjectEntry(name="demo", path=str(project_dir))])
