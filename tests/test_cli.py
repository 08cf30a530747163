"""Tests for the command-line interface."""

import argparse
import json
import logging

import pytest
from PIL import Image

from droste.cli import _parse_quad, _ProgressBar, _session_config, build_arg_parser, main
from droste.io import encoder
from droste.loop import Direction
from droste.util.logging_setup import get_logger


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = get_logger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


@pytest.fixture
def image_path(tmp_path, texture):
    path = tmp_path / "picture.png"
    texture.save(path)
    return path


class TestParseQuad:
    def test_valid(self):
        assert _parse_quad("0.1,0.2 0.9,0.2 0.9,0.8 0.1,0.8")[2] == [0.9, 0.8]

    @pytest.mark.parametrize("text", ["0,0 1,0 1,1", "a,b c,d e,f g,h", "0,0,0 1,0 1,1 0,1"])
    def test_invalid(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_quad(text)


class TestSessionConfig:
    def test_overrides(self, image_path):
        args = build_arg_parser().parse_args([
            "export", str(image_path),
            "--depth", "30", "--speed", "2.5", "--constant-speed",
            "--direction", "out", "-p", "low",
        ])
        cfg = _session_config(args)
        assert cfg.depth == 20
        assert cfg.zoom_speed == 2.5
        assert cfg.constant_speed is True
        assert cfg.desired_direction is Direction.OUT
        assert cfg.max_export_dimension == 320

    def test_file_then_flags(self, image_path, tmp_path):
        config_path = tmp_path / "cfg.json"
        config_path.write_text(json.dumps({"depth": 7, "zoom_speed": 0.5}))
        args = build_arg_parser().parse_args([
            "export", str(image_path), "--config", str(config_path), "--speed", "3",
        ])
        cfg = _session_config(args)
        assert cfg.depth == 7
        assert cfg.zoom_speed == 3.0


    def test_no_constant_speed_overrides_file(self, image_path, tmp_path):
        config_path = tmp_path / "cfg.json"
        config_path.write_text(json.dumps({"constant_speed": True}))
        args = build_arg_parser().parse_args([
            "export", str(image_path), "--config", str(config_path), "--no-constant-speed",
        ])
        assert _session_config(args).constant_speed is False

    def test_constant_speed_left_to_file(self, image_path, tmp_path):
        config_path = tmp_path / "cfg.json"
        config_path.write_text(json.dumps({"constant_speed": True}))
        args = build_arg_parser().parse_args(["export", str(image_path), "--config", str(config_path)])
        assert _session_config(args).constant_speed is True

    def test_zero_max_dimension_rejected(self, image_path):
        args = build_arg_parser().parse_args(["export", str(image_path), "--max-dimension", "0"])
        with pytest.raises(ValueError, match="max_export_dimension"):
            _session_config(args)


class TestProgressBar:
    def test_one_line_per_step(self, capsys):
        bar = _ProgressBar()
        total = 300
        for i in range(1, total + 1):
            bar(i / total)
        lines = capsys.readouterr().out.split()
        assert lines[0] == "0.0%"
        assert lines[-1] == "100.0%"
        assert len(lines) == len(set(lines)) == 21

    def test_sparse_updates(self, capsys):
        bar = _ProgressBar()
        for fraction in (0.5, 0.51, 1.0):
            bar(fraction)
        assert capsys.readouterr().out.split() == ["50.0%", "100.0%"]


class TestMain:
    def test_export_gif(self, image_path, tmp_path):
        out = tmp_path / "out" / "loop.gif"
        code = main(["export", str(image_path), "-o", str(out), "--depth", "4"])
        assert code == 0
        assert out.exists()
        with Image.open(out) as im:
            assert im.n_frames > 1

    def test_default_output_name(self, image_path):
        assert main(["export", str(image_path), "--depth", "2", "--speed", "5"]) == 0
        assert (image_path.parent / "picture_droste.gif").exists()

    def test_missing_image(self, tmp_path):
        assert main(["export", str(tmp_path / "nope.png")]) == 1

    def test_unreadable_image(self, tmp_path):
        bogus = tmp_path / "bogus.png"
        bogus.write_text("not an image")
        assert main(["export", str(bogus)]) == 1

    def test_bad_config(self, image_path, tmp_path):
        config_path = tmp_path / "cfg.json"
        config_path.write_text(json.dumps({"unknown_field": 1}))
        assert main(["export", str(image_path), "--config", str(config_path)]) == 2

    def test_unsupported_output(self, image_path, tmp_path):
        assert main(["export", str(image_path), "-o", str(tmp_path / "out.bmp")]) == 1

    def test_mp4_without_ffmpeg(self, image_path, tmp_path, monkeypatch):
        monkeypatch.setattr(encoder.shutil, "which", lambda name: None)
        assert main(["export", str(image_path), "-o", str(tmp_path / "out.mp4")]) == 1

    def test_bad_quad_argument(self, image_path):
        with pytest.raises(SystemExit):
            main(["export", str(image_path), "--quad", "1,2 3,4"])

    def test_log_file(self, image_path, tmp_path):
        log_file = tmp_path / "droste.log"
        code = main([
            "--log-level", "DEBUG", "--log-file", str(log_file),
            "export", str(image_path), "-o", str(tmp_path / "l.gif"), "--depth", "2",
        ])
        assert code == 0
        assert get_logger().level == logging.DEBUG
        assert "Export start" in log_file.read_text()

    def test_wrongly_typed_config(self, image_path, tmp_path):
        config_path = tmp_path / "cfg.json"
        config_path.write_text(json.dumps({"depth": None}))
        assert main(["export", str(image_path), "--config", str(config_path)]) == 2

    def test_zero_max_dimension(self, image_path):
        assert main(["export", str(image_path), "--max-dimension", "0"]) == 2
