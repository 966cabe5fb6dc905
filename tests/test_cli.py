"""
Tests for the command line entry point.
"""

import asyncio
import json
from unittest.mock import patch

import pytest

from s3_remover import cli
from s3_remover.config import RemoverConfig, RunOptions
from s3_remover.models import Cancelled, Emptied, Failed, LiteralBucket


SERVICE_FILE = """
service: photos
provider:
  stage: dev
custom:
  remover:
    buckets:
      - photos-uploads
      - Ref: ThumbnailBucket
"""


@pytest.fixture
def service_file(tmp_path):
    path = tmp_path / "serverless.yml"
    path.write_text(SERVICE_FILE)
    return path


class TestParseArguments:
    """Test argument parsing."""

    def test_defaults(self):
        args = cli.parse_arguments([])

        assert args.command == "remove"
        assert args.config == "serverless.yml"
        assert args.prompt is None
        assert args.verbose is False

    def test_prompt_flags(self):
        assert cli.parse_arguments(["--prompt"]).prompt is True
        assert cli.parse_arguments(["--yes"]).prompt is False

    def test_prompt_and_yes_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.parse_arguments(["--prompt", "--yes"])

    def test_overrides(self):
        args = cli.parse_arguments(
            ["inspect", "-c", "svc.yml", "-s", "prod", "-r", "us-west-2", "-v"]
        )

        assert args.command == "inspect"
        assert args.config == "svc.yml"
        assert args.stage == "prod"
        assert args.region == "us-west-2"
        assert args.verbose is True


class TestMain:
    """Test the entry point end to end with the removal stubbed out."""

    def test_inspect_prints_configuration(self, service_file, capsys):
        code = cli.main(["inspect", "-c", str(service_file), "--stage", "prod"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["effective"]["stack"] == "photos-prod"
        assert output["effective"]["buckets"] == ["photos-uploads", "ThumbnailBucket-ref"]
        assert output["config"]["buckets"][0] == {"name": "photos-uploads"}

    def test_configuration_error_exit_code(self, tmp_path):
        assert cli.main(["-c", str(tmp_path / "missing.yml")]) == 2

    def test_no_buckets(self, tmp_path):
        path = tmp_path / "serverless.yml"
        path.write_text("service: photos\n")

        with patch.object(cli, "remove_buckets") as remove_buckets:
            assert cli.main(["-c", str(path)]) == 0

        remove_buckets.assert_not_called()

    def test_success_exit_code(self, service_file):
        async def fake_remove(config, options, answers=None):
            assert isinstance(config, RemoverConfig)
            assert isinstance(options, RunOptions)
            assert options.prompt is False
            return {ref: Emptied(1) for ref in config.buckets}

        with patch.object(cli, "remove_buckets", side_effect=fake_remove):
            assert cli.main(["-c", str(service_file), "--yes"]) == 0

    def test_failure_exit_code(self, service_file):
        async def fake_remove(config, options, answers=None):
            return {
                LiteralBucket("photos-uploads"): Failed(RuntimeError("boom")),
                config.buckets[1]: Cancelled(),
            }

        with patch.object(cli, "remove_buckets", side_effect=fake_remove):
            assert cli.main(["-c", str(service_file)]) == 1

    def test_prompt_runs_before_event_loop(self, service_file):
        captured = {}

        def answer(text):
            with pytest.raises(RuntimeError):
                asyncio.get_running_loop()
            return "yes" if "photos-uploads" in text else "no"

        async def fake_remove(config, options, answers=None):
            captured["answers"] = answers
            return {ref: Emptied(0) for ref in config.buckets}

        with patch("builtins.input", side_effect=answer), patch.object(
            cli, "remove_buckets", side_effect=fake_remove
        ):
            assert cli.main(["-c", str(service_file), "--prompt"]) == 0

        assert captured["answers"] == {"photos-uploads": "yes", "ThumbnailBucket-ref": "no"}

    def test_interrupt_at_prompt_exits_immediately(self, service_file):
        with patch("builtins.input", side_effect=KeyboardInterrupt), patch.object(
            cli, "remove_buckets"
        ) as remove_buckets:
            assert cli.main(["-c", str(service_file), "--prompt"]) == 1

        remove_buckets.assert_not_called()

    def test_closed_stdin_declines_every_bucket(self, service_file):
        captured = {}

        async def fake_remove(config, options, answers=None):
            captured["answers"] = answers
            return {ref: Cancelled() for ref in config.buckets}

        with patch("builtins.input", side_effect=EOFError), patch.object(
            cli, "remove_buckets", side_effect=fake_remove
        ):
            assert cli.main(["-c", str(service_file), "--prompt"]) == 0

        assert captured["answers"] == {}

class TestRemoveBuckets:
    """Test wiring of the AWS provider into the orchestrator."""

    def test_uses_effective_region_and_prompt(self):
        config = RemoverConfig(service="photos", region="eu-west-1", prompt=True)
        options = RunOptions(region="us-west-2", prompt=False, profile="deploy")
        captured = {}

        class FakeAwsProvider:
            def __init__(self, **kwargs):
                captured.update(kwargs)

            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc_info):
                return False

        class FakeOrchestrator:
            async def run(self, references, interactive=False):
                captured["interactive"] = interactive
                return {}

        def create(provider, config, options, prompt=None):
            captured["prompt"] = prompt
            return FakeOrchestrator()

        with patch.object(cli, "AwsProvider", FakeAwsProvider), patch.object(
            cli.RemovalOrchestrator, "create", side_effect=create
        ):
            assert asyncio.run(cli.remove_buckets(config, options)) == {}

        assert captured["region"] == "us-west-2"
        assert captured["profile"] == "deploy"
        assert captured["interactive"] is False
        assert captured["prompt"] is None
