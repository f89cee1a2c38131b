import pytest

from shellgate.engine.config import ShellConfig, default_shell, fire_event
from shellgate.engine.errors import InvalidApprovalModeError
from shellgate.engine.models import ApprovalMode
from shellgate.engine.yaml_config import load_yaml_config

_ENV_VARS = [
    "SHELLGATE_DEFAULT_TIMEOUT_MS",
    "SHELLGATE_MAX_TIMEOUT_MS",
    "SHELLGATE_BACKGROUND_CHECK_INTERVAL",
    "SHELLGATE_BACKGROUND_PROMPT_AFTER",
    "SHELLGATE_KILL_GRACE_SECONDS",
    "SHELLGATE_APPROVAL_MODE",
    "SHELLGATE_ALLOWED_TOOLS",
    "SHELLGATE_SHELL",
    "SHELLGATE_CWD",
    "SHELLGATE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = ShellConfig()
    assert config.default_timeout_ms == 120_000
    assert config.max_timeout_ms == 600_000
    assert config.background_check_interval_seconds == 0.5
    assert config.background_prompt_after_seconds == 5.0
    assert config.approval_mode == ApprovalMode.DEFAULT
    assert config.allowed_tools == []


def test_from_env_defaults() -> None:
    assert ShellConfig.from_env() == ShellConfig()


def test_from_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SHELLGATE_DEFAULT_TIMEOUT_MS", "30000")
    monkeypatch.setenv("SHELLGATE_BACKGROUND_PROMPT_AFTER", "2.5")
    monkeypatch.setenv("SHELLGATE_APPROVAL_MODE", "autoedit")
    monkeypatch.setenv("SHELLGATE_ALLOWED_TOOLS", "bash_output, kill_bash,")
    monkeypatch.setenv("SHELLGATE_SHELL", "/bin/zsh")
    monkeypatch.setenv("SHELLGATE_CWD", "/srv/app")
    config = ShellConfig.from_env()
    assert config.default_timeout_ms == 30_000
    assert config.background_prompt_after_seconds == 2.5
    assert config.approval_mode == ApprovalMode.AUTO_EDIT
    assert config.allowed_tools == ["bash_output", "kill_bash"]
    assert config.resolved_shell == "/bin/zsh"
    assert config.default_cwd == "/srv/app"


def test_invalid_mode_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SHELLGATE_APPROVAL_MODE", "reckless")
    with pytest.raises(InvalidApprovalModeError):
        ShellConfig.from_env()


def test_mode_parsing() -> None:
    assert ShellConfig(approval_mode="yolo").approval_mode == ApprovalMode.YOLO
    assert ApprovalMode.parse(" autoEdit ") == ApprovalMode.AUTO_EDIT
    with pytest.raises(ValueError):
        ApprovalMode.parse("nope")


def test_default_shell_uses_env(monkeypatch) -> None:
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("SHELL", "/usr/bin/fish")
    assert default_shell() == "/usr/bin/fish"
    monkeypatch.delenv("SHELL")
    assert default_shell() == "/bin/bash"


def test_yaml_config(tmp_path) -> None:
    path = tmp_path / "shellgate.yaml"
    path.write_text(
        "shell:\n"
        "  mode: yolo\n"
        "  timeout_ms: 45000\n"
        "  max_timeout_ms: 90000\n"
        "  background_prompt_after_seconds: 8\n"
        "  allowed_tools: [bash_output]\n"
        "  cwd: /work\n"
        "  colour: blue\n"
    )
    config = load_yaml_config(path)
    assert config.approval_mode == ApprovalMode.YOLO
    assert config.default_timeout_ms == 45_000
    assert config.max_timeout_ms == 90_000
    assert config.background_prompt_after_seconds == 8.0
    assert config.allowed_tools == ["bash_output"]
    assert config.default_cwd == "/work"


def test_yaml_config_empty_file(tmp_path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_yaml_config(path) == ShellConfig()


def test_yaml_config_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "absent.yaml")


def test_yaml_config_bad_section(tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("shell: [1, 2]\n")
    with pytest.raises(ValueError):
        load_yaml_config(path)


@pytest.mark.asyncio
async def test_fire_event_ignores_callback_errors() -> None:
    seen = []

    async def broken(event):
        seen.append(event)
        raise RuntimeError("boom")

    await fire_event(broken, {"event": "x"})
    await fire_event(None, {"event": "y"})
    assert seen == [{"event": "x"}]
