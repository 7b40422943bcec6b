"""Tests for LogTailLoader."""

import pytest

from pm2_dashboard.errors import LogReadError
from pm2_dashboard.logs import LogTailLoader

from .conftest import write_log


class TestLoadTail:
    """Tests for reading the tail of a log file."""

    @pytest.mark.asyncio
    async def test_long_file_yields_last_100(self, tmp_path):
        """A 250-line file yields exactly the last 100 lines, in order."""
        path = write_log(tmp_path / "out.log", 250)
        tail = await LogTailLoader().load_tail(str(path))
        lines = tail.split("\n")
        assert len(lines) == 100
        assert lines[0] == "line 151"
        assert lines[-1] == "line 250"

    @pytest.mark.asyncio
    async def test_short_file_unchanged(self, tmp_path):
        """A 40-line file yields all 40 lines."""
        path = tmp_path / "out.log"
        content = "\n".join(f"entry {i}" for i in range(40))
        path.write_text(content)
        assert await LogTailLoader().load_tail(str(path)) == content

    @pytest.mark.asyncio
    async def test_trailing_newline_is_a_terminator(self, tmp_path):
        path = tmp_path / "out.log"
        path.write_text("a\nb\n")
        assert await LogTailLoader().load_tail(str(path)) == "a\nb"

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path):
        path = tmp_path / "out.log"
        path.write_text("")
        assert await LogTailLoader().load_tail(str(path)) == ""

    @pytest.mark.asyncio
    async def test_custom_line_count(self, tmp_path):
        path = write_log(tmp_path / "out.log", 10)
        tail = await LogTailLoader(lines=3).load_tail(str(path))
        assert tail == "line 8\nline 9\nline 10"

    @pytest.mark.asyncio
    async def test_carriage_return_is_not_a_line_break(self, tmp_path):
        """Progress-bar redraws (bare \\r) stay inside their line."""
        path = tmp_path / "out.log"
        path.write_bytes(b"start\nprogress 10%\rprogress 100%\ndone\n")
        tail = await LogTailLoader(lines=2).load_tail(str(path))
        assert tail == "progress 10%\rprogress 100%\ndone"

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self, tmp_path):
        path = tmp_path / "out.log"
        path.write_bytes(b"ok\n\xff\xfe broken\n")
        tail = await LogTailLoader().load_tail(str(path))
        assert tail.startswith("ok\n")
        assert "broken" in tail

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(LogReadError) as info:
            await LogTailLoader().load_tail(str(tmp_path / "nope.log"))
        assert info.value.path.endswith("nope.log")

    @pytest.mark.asyncio
    async def test_no_path_raises(self):
        with pytest.raises(LogReadError):
            await LogTailLoader().load_tail(None)


class TestTruncate:
    """Tests for clearing log files."""

    @pytest.mark.asyncio
    async def test_truncate_empties_file(self, tmp_path):
        path = write_log(tmp_path / "out.log", 20)
        await LogTailLoader().truncate(str(path))
        assert path.stat().st_size == 0

    @pytest.mark.asyncio
    async def test_truncate_missing_raises(self, tmp_path):
        with pytest.raises(LogReadError):
            await LogTailLoader().truncate(str(tmp_path / "missing" / "out.log"))

    @pytest.mark.asyncio
    async def test_truncate_all_isolates_failures(self, tmp_path):
        """One failing file does not stop the other from being cleared."""
        out = write_log(tmp_path / "out.log", 20)
        missing = tmp_path / "missing" / "err.log"
        cleared = await LogTailLoader().truncate_all([str(missing), str(out)])
        assert cleared == [str(out)]
        assert out.stat().st_size == 0

    @pytest.mark.asyncio
    async def test_truncate_all_empty(self):
        assert await LogTailLoader().truncate_all([]) == []
