"""Tests for the command line interface."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from framecast.cli import cli
from framecast.errors import PipelineStepError
from framecast.models.capture import FrameRecord, frame_filename


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def mock_orchestrator():
    with patch("framecast.cli.Orchestrator") as cls:
        yield cls


class TestRender:
    """Tests for the render command."""

    def test_render_passes_options(self, runner, mock_orchestrator, tmp_path):
        instance = mock_orchestrator.return_value
        instance.run_render_only.return_value = [FrameRecord(frame=0, path="f.png")]

        result = runner.invoke(cli, [
            "render", "site/index.html", str(tmp_path / "frames"),
            "--frames", "12", "--fps", "24", "--width", "320", "--height", "240",
        ])

        assert result.exit_code == 0, result.output
        options = instance.run_render_only.call_args.args[0]
        assert options.entry == "site/index.html"
        assert options.total_frames == 12
        assert options.fps == 24
        assert options.viewport == {"width": 320, "height": 240}
        assert "Rendered 1 frames" in result.output

    def test_no_placeholder_flag_disables_fallback(self, runner, mock_orchestrator, tmp_path):
        mock_orchestrator.return_value.run_render_only.return_value = []
        result = runner.invoke(cli, ["render", "a.html", str(tmp_path), "--no-placeholder-fallback"])

        assert result.exit_code == 0, result.output
        config = mock_orchestrator.call_args.args[0]
        assert config.allow_placeholder is False

    def test_render_failure_exits_nonzero(self, runner, mock_orchestrator, tmp_path):
        mock_orchestrator.return_value.run_render_only.side_effect = PipelineStepError(
            "render", RuntimeError("browser died"),
        )
        result = runner.invoke(cli, ["render", "a.html", str(tmp_path)])

        assert result.exit_code == 1
        assert "[render] browser died" in result.output

    def test_invalid_frame_count(self, runner, mock_orchestrator, tmp_path):
        result = runner.invoke(cli, ["render", "a.html", str(tmp_path), "--frames", "-1"])
        assert result.exit_code == 1
        mock_orchestrator.return_value.run_render_only.assert_not_called()

    def test_config_file(self, runner, mock_orchestrator, tmp_path):
        config_path = tmp_path / "framecast.json"
        config_path.write_text(json.dumps({"protocol_timeout": 5000, "allow_placeholder": False}))
        mock_orchestrator.return_value.run_render_only.return_value = []

        result = runner.invoke(cli, ["--config", str(config_path), "render", "a.html", str(tmp_path)])

        assert result.exit_code == 0, result.output
        config = mock_orchestrator.call_args.args[0]
        assert config.protocol_timeout_ms == 5000
        assert config.allow_placeholder is False

    def test_missing_config_file(self, runner, mock_orchestrator, tmp_path):
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.json"), "render"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestEncode:
    """Tests for the encode command."""

    def test_encode_options(self, runner, mock_orchestrator, tmp_path):
        out = tmp_path / "o.mov"
        mock_orchestrator.return_value.run_encode_only.return_value = out

        result = runner.invoke(cli, [
            "encode", "frames/frame-%05d.png", str(out), "--fps", "30", "--codec", "prores_ks", "--frames", "90",
        ])

        assert result.exit_code == 0, result.output
        options = mock_orchestrator.return_value.run_encode_only.call_args.args[0]
        assert options.codec == "prores_ks"
        assert options.resolved_pixel_format == "yuv422p10le"
        assert options.fps == 30
        assert options.frame_count == 90

    def test_unknown_codec_rejected_by_click(self, runner, mock_orchestrator):
        result = runner.invoke(cli, ["encode", "--codec", "vp9"])
        assert result.exit_code == 2


class TestPipeline:
    """Tests for the pipeline command."""

    def test_pipeline_request(self, runner, mock_orchestrator, tmp_path):
        run_result = MagicMock()
        run_result.frames = [FrameRecord(frame=0, path="f.png")]
        run_result.manifest.video.size = 10
        run_result.manifest.video.hash = "abc"
        run_result.duration_seconds = 1.5
        mock_orchestrator.return_value.run_full_pipeline.return_value = run_result

        result = runner.invoke(cli, [
            "pipeline", "a.html", str(tmp_path / "out"),
            "--frames", "3", "--fps", "30", "--seed", "s1",
            "--plugin", "@vis/audio", "--plugin", "@vis/timeline",
        ])

        assert result.exit_code == 0, result.output
        request = mock_orchestrator.return_value.run_full_pipeline.call_args.args[0]
        assert request.seed == "s1"
        assert request.plugins == ["@vis/audio", "@vis/timeline"]
        assert request.resolved_video_file == tmp_path / "out" / "loop.mp4"
        assert "Pipeline Complete" in result.output

    def test_pipeline_failure(self, runner, mock_orchestrator, tmp_path):
        mock_orchestrator.return_value.run_full_pipeline.side_effect = PipelineStepError(
            "encode", RuntimeError("ffmpeg exited with code 1"),
        )
        result = runner.invoke(cli, ["pipeline", "a.html", str(tmp_path)])
        assert result.exit_code == 1
        assert "[encode]" in result.output


class TestCompare:
    """Tests for the compare command against real frame directories."""

    def test_identical_passes(self, runner, tmp_path, frame_sequence):
        frame_sequence(tmp_path / "a", 2)
        frame_sequence(tmp_path / "b", 2)

        result = runner.invoke(cli, ["compare", str(tmp_path / "a"), str(tmp_path / "b"), "--fail-above", "0"])

        assert result.exit_code == 0, result.output
        assert "Compared 2 frames" in result.output

    def test_mismatch_above_limit_fails(self, runner, tmp_path, frame_sequence, make_png):
        frame_sequence(tmp_path / "a", 2)
        frame_sequence(tmp_path / "b", 2)
        make_png(tmp_path / "a" / frame_filename(1), color=(0, 0, 255, 255))
        report = tmp_path / "report.json"

        result = runner.invoke(cli, [
            "compare", str(tmp_path / "a"), str(tmp_path / "b"),
            "--fail-above", "0.01", "--report", str(report),
        ])

        assert result.exit_code == 1
        assert "exceeds threshold" in result.output
        with open(report) as f:
            assert json.load(f)["failed"] is True

    def test_mismatch_without_limit_passes(self, runner, tmp_path, frame_sequence, make_png):
        frame_sequence(tmp_path / "a", 2)
        frame_sequence(tmp_path / "b", 2)
        make_png(tmp_path / "a" / frame_filename(0), color=(0, 0, 255, 255))

        result = runner.invoke(cli, ["compare", str(tmp_path / "a"), str(tmp_path / "b")])

        assert result.exit_code == 0, result.output
        assert frame_filename(0) in result.output

    def test_dimension_mismatch_fails(self, runner, tmp_path, make_png):
        make_png(tmp_path / "a" / frame_filename(0), size=(8, 8))
        make_png(tmp_path / "b" / frame_filename(0), size=(4, 4))

        result = runner.invoke(cli, ["compare", str(tmp_path / "a"), str(tmp_path / "b")])

        assert result.exit_code == 1
        assert "mismatched" in result.output
