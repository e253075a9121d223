import pytest
from PIL import Image

from sizefit.cli import EXIT_FAILED, EXIT_OK, build_parser, main


def test_single_file_output(png_file, tmp_path, capsys):
    output = tmp_path / "small.jpg"
    target = png_file.stat().st_size // 8

    code = main([str(png_file), "-t", str(target), "-o", str(output), "--preset", "fast"])

    assert code == EXIT_OK
    with Image.open(output) as img:
        assert img.format == 'JPEG'
    assert str(output) in capsys.readouterr().out


def test_batch_into_directory(png_file, tmp_path, capsys):
    out_dir = tmp_path / "out"

    code = main([
        str(png_file), "-t", "40KB", "-o", str(out_dir),
        "--format", "webp", "--max-attempts", "10", "--step", "bisect",
    ])

    assert code == EXIT_OK
    assert (out_dir / "noise.webp").exists()
    assert "Done: 1 written" in capsys.readouterr().out


def test_missing_input_fails(tmp_path):
    assert main([str(tmp_path / "missing.png"), "-t", "10KB", "-o", str(tmp_path / "x")]) == EXIT_FAILED


def test_missing_input_does_not_stop_batch(png_file, tmp_path, capsys):
    out_dir = tmp_path / "out"
    target = png_file.stat().st_size // 8

    code = main([
        str(png_file), str(tmp_path / "missing.png"),
        "-t", str(target), "-o", str(out_dir), "--preset", "fast",
    ])

    assert code == EXIT_FAILED
    assert (out_dir / "noise.jpg").exists()
    output = capsys.readouterr().out
    assert "missing.png: FAILED" in output
    assert "Done: 1 written" in output


def test_single_file_under_target_keeps_source_extension(png_file, tmp_path):
    requested = tmp_path / "photo.jpg"

    code = main([str(png_file), "-t", "10MB", "-o", str(requested)])

    assert code == EXIT_OK
    assert not requested.exists()
    kept = tmp_path / "photo.png"
    assert kept.read_bytes() == png_file.read_bytes()


def test_unreadable_input_fails(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_text("nope")

    assert main([str(broken), "-t", "10KB", "-o", str(tmp_path / "out.jpg")]) == EXIT_FAILED


def test_invalid_quality_bounds_are_usage_errors(png_file, tmp_path):
    code = main([
        str(png_file), "-t", "10KB", "-o", str(tmp_path / "out.jpg"),
        "--min-quality", "0.9", "--max-quality", "0.5",
    ])

    assert code == 2


@pytest.mark.parametrize("argv", [
    ["a.png", "-t", "lots"],
    ["a.png", "-t", "0"],
    ["a.png", "-t", "1MB", "--preset", "nope"],
    ["a.png", "-t", "1MB", "--format", "BMP"],
    ["a.png", "-t", "1MB", "--jobs", "0"],
    ["a.png"],
])
def test_bad_arguments_exit_with_usage(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)

    assert excinfo.value.code == 2


def test_parser_defaults():
    args = build_parser().parse_args(["a.png", "-t", "1MB"])

    assert args.format == 'JPEG'
    assert args.preset == 'precise'
    assert not args.no_rescale
