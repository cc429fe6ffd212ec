import pytest

from review_agent import cli
from review_agent.domain.conversation import ConversationState
from review_agent.domain.exceptions import ApiError
from review_agent.flows.runner import AgentRunResult
from review_agent.flows.state import RunStatus


@pytest.fixture
def fake_run(monkeypatch):
    seen = {}

    def install(status, text):
        def run_review(directory, settings, **kw):
            seen["directory"] = directory
            return AgentRunResult(
                status=status,
                text=text,
                conversation=ConversationState("go"),
                rounds=1,
                trace_id="tr-1",
            )

        monkeypatch.setattr(cli, "run_review", run_review)
        return seen

    monkeypatch.setattr(cli, "setup_logger", lambda settings: None)
    return install


def test_parser_defaults_to_current_directory():
    assert cli.build_parser().parse_args([]).directory == "."


def test_done_prints_report(fake_run, capsys):
    seen = fake_run(RunStatus.DONE, "CODE REVIEW COMPLETE")
    assert cli.main(["site"]) == 0
    assert seen["directory"] == "site"
    assert capsys.readouterr().out.strip() == "CODE REVIEW COMPLETE"


@pytest.mark.parametrize("status", [RunStatus.MAX_TURNS_EXCEEDED, RunStatus.CANCELLED])
def test_unfinished_run_exits_non_zero(fake_run, capsys, status):
    fake_run(status, "Run cancelled.")
    assert cli.main([]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Run cancelled." in captured.err


def test_backend_error_propagates(monkeypatch):
    def run_review(directory, settings, **kw):
        raise ApiError(code="API_ERROR", message="unauthorized", http_status=401)

    monkeypatch.setattr(cli, "run_review", run_review)
    monkeypatch.setattr(cli, "setup_logger", lambda settings: None)
    with pytest.raises(ApiError):
        cli.main(["."])
