from __future__ import annotations

from pathlib import Path

from session_atlas.ingest.log_watcher import SessionWatcher


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestSessionWatcher:
    def test_first_poll_only_primes(self, tmp_path: Path) -> None:
        _write(tmp_path / "proj" / "a.jsonl", "{}\n")
        watcher = SessionWatcher([tmp_path])
        assert watcher.poll() == []
        assert watcher.poll() == []

    def test_reports_added_modified_and_removed(self, tmp_path: Path) -> None:
        existing = _write(tmp_path / "proj" / "a.jsonl", "{}\n")
        watcher = SessionWatcher([tmp_path])
        watcher.poll()

        added = _write(tmp_path / "proj" / "b.jsonl", "{}\n")
        assert watcher.poll() == [added]

        with existing.open("a", encoding="utf-8") as handle:
            handle.write('{"more": true}\n')
        assert watcher.poll() == [existing]

        added.unlink()
        assert watcher.poll() == [added]

    def test_ignores_other_file_types(self, tmp_path: Path) -> None:
        watcher = SessionWatcher([tmp_path])
        watcher.poll()

        _write(tmp_path / "notes.txt", "hi")
        index = _write(tmp_path / "proj" / "sessions-index.json", "{}")

        assert watcher.poll() == [index]

    def test_missing_roots_are_skipped(self, tmp_path: Path) -> None:
        watcher = SessionWatcher([tmp_path / "absent"])
        watcher.poll()
        assert watcher.poll() == []

    def test_watch_delivers_batches(self, tmp_path: Path) -> None:
        watcher = SessionWatcher([tmp_path], poll_interval=0.05, debounce=0.01)
        watcher.poll()
        created = _write(tmp_path / "proj" / "new.jsonl", "{}\n")

        batches: list[list[Path]] = []
        count = watcher.watch(on_change=batches.append, max_batches=1)

        assert count == 1
        assert batches == [[created]]

    def test_watch_stops_after_max_seconds(self, tmp_path: Path) -> None:
        watcher = SessionWatcher([tmp_path], poll_interval=0.05)
        assert watcher.watch(max_seconds=0.1) == 0
