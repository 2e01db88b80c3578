"""Tests for the line-driven console player."""

import io

from main import build_parser, run_console


def _select(session, track):
    session.select_track(track)
    session.wait_for_regions(timeout=5)


class TestRunConsole:
    """Tests for console commands and keys."""

    def test_mark_and_save(self, session, track, capsys) -> None:
        _select(session, track)
        lines = io.StringIO("seek 2\ns\nseek 0:05.5\ne\nsave chorus\nlist\nquit\ns\n")

        run_console(session, stream=lines)

        assert [(r.start, r.end, r.label) for r in session.regions] == [(2.0, 5.5, "chorus")]
        assert session.looping_enabled
        out = capsys.readouterr().out
        assert "Saved loop 'chorus'" in out
        assert "* 1. chorus" in out
        assert session.pending_start is None

    def test_errors_are_printed(self, session, track, capsys) -> None:
        _select(session, track)
        run_console(session, stream=io.StringIO("save\nseek soon\ndelete 3\nbogus\n"))

        out = capsys.readouterr().out
        assert "Error: Both loop start and loop end must be marked" in out
        assert "Not a time: 'soon'" in out
        assert "No loop #3" in out
        assert "Unknown command: bogus" in out

    def test_delete_by_number(self, session, registry, track) -> None:
        registry.create_region(track.id, 1.0, 2.0, "a")
        _select(session, track)
        run_console(session, stream=io.StringIO("delete 1\n"))
        assert session.regions == []
        assert registry.list_regions(track.id) == []


class TestParser:

    def test_play_command(self) -> None:
        args = build_parser().parse_args(["--data-dir", "/tmp/x", "play", "abc"])
        assert args.track_id == "abc"
        assert args.data_dir == "/tmp/x"
        assert args.ffmpeg is None
