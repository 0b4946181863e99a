import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from media_linker import scanner as scanner_mod
from media_linker.models import Blueprint
from media_linker.scanner import ScanEngine, chunked, list_directory

from _fakes import FakeClassifier, movie, show

VIDEO_EXTS = [".mkv", ".mp4"]


def _touch(directory: Path, *names: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_bytes(b"")


class TestScanEngine(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "media"
        self.root.mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_episode_group_yields_one_item_with_two_sidecars(self) -> None:
        _touch(self.root, "Show.S01E01.mkv", "Show.S01E01.srt", "Show.S01E01-thumb.jpg")
        classifier = FakeClassifier(
            primary={"Show.S01E01": show("Show", 1, 1)},
            roles={"Show.S01E01-thumb.jpg": "thumb", "Show.S01E01.srt": "subtitle"},
        )
        engine = ScanEngine(classifier, VIDEO_EXTS)

        blueprint = await engine.scan(self.root, Blueprint())

        self.assertEqual(blueprint.titles(), ["Show"])
        items = blueprint["Show"].items
        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item.primary_file.original_filename, "Show.S01E01.mkv")
        self.assertEqual(item.primary_file.source_path, self.root / "Show.S01E01.mkv")
        roles = {f.original_filename: f.role for f in item.sidecar_files}
        self.assertEqual(roles, {"Show.S01E01-thumb.jpg": "thumb", "Show.S01E01.srt": "subtitle"})
        self.assertEqual((item.season, item.episode), (1, 1))
        self.assertEqual(classifier.primary_calls, [("Show.S01E01", "media")])
        self.assertTrue(all(base == "Show S01E01" for base, _ in classifier.role_calls))

    async def test_failed_item_does_not_affect_chunk_siblings(self) -> None:
        _touch(self.root, "a.mkv", "b.mkv", "c.mkv")
        classifier = FakeClassifier(
            primary={
                "a": show("Show", 1, 1),
                "b": RuntimeError("classifier exploded"),
                "c": show("Show", 1, 3),
            }
        )
        engine = ScanEngine(classifier, VIDEO_EXTS, concurrency=3)

        with self.assertLogs("media_linker.scanner", level="ERROR"):
            blueprint = await engine.scan(self.root, Blueprint())

        episodes = sorted(item.episode for item in blueprint["Show"].items)
        self.assertEqual(episodes, [1, 3])
        self.assertEqual(engine.stats.classified, 2)
        self.assertEqual(engine.stats.dropped, 1)

    async def test_chunks_bound_in_flight_requests(self) -> None:
        _touch(self.root, *(f"ep{i}.mkv" for i in range(5)))
        classifier = FakeClassifier(primary={f"ep{i}": show("Show", 1, i) for i in range(5)})
        engine = ScanEngine(classifier, VIDEO_EXTS, concurrency=2)

        blueprint = await engine.scan(self.root, Blueprint())

        self.assertEqual(classifier.max_in_flight, 2)
        self.assertEqual(len(blueprint["Show"].items), 5)

    async def test_unknown_and_incomplete_results_are_dropped(self) -> None:
        _touch(self.root, "noise.mkv", "partial.mkv", "missing.mkv", "good.mkv")
        classifier = FakeClassifier(
            primary={
                "noise": show("x", 1, 1).model_copy(update={"type": "unknown"}),
                "partial": show("Show", 1, 1).model_copy(update={"episode": None}),
                "good": movie("Dune", 2021),
            }
        )
        blueprint = await ScanEngine(classifier, VIDEO_EXTS).scan(self.root, Blueprint())

        self.assertEqual(blueprint.titles(), ["Dune"])
        self.assertEqual(classifier.role_calls, [])

    async def test_sidecar_role_failure_keeps_item(self) -> None:
        _touch(self.root, "Movie.mkv", "Movie-poster.jpg", "Movie.nfo")
        classifier = FakeClassifier(
            primary={"Movie": movie("Movie", 1999)},
            roles={"Movie-poster.jpg": "poster", "Movie.nfo": OSError("timeout")},
        )
        with self.assertLogs("media_linker.scanner", level="WARNING"):
            blueprint = await ScanEngine(classifier, VIDEO_EXTS).scan(self.root, Blueprint())

        item = blueprint["Movie"].items[0]
        roles = {f.original_filename: f.role for f in item.sidecar_files}
        self.assertEqual(roles, {"Movie-poster.jpg": "poster", "Movie.nfo": None})
        self.assertTrue(all(base == "Movie (1999)" for base, _ in classifier.role_calls))

    async def test_walks_subdirectories_depth_first(self) -> None:
        _touch(self.root / "Show" / "Season 1", "e1.mkv")
        _touch(self.root / "Show" / "Season 2", "e2.mkv")
        _touch(self.root / "Film", "film.mp4")
        classifier = FakeClassifier(
            primary={"e1": show("Show", 1, 1), "e2": show("Show", 2, 1), "film": movie("Film")}
        )
        await ScanEngine(classifier, VIDEO_EXTS).scan(self.root, Blueprint())

        self.assertEqual(
            classifier.primary_calls,
            [("film", "Film"), ("e1", "Season 1"), ("e2", "Season 2")],
        )

    async def test_unreadable_directory_is_skipped(self) -> None:
        _touch(self.root / "locked", "hidden.mkv")
        _touch(self.root / "open", "visible.mkv")
        classifier = FakeClassifier(
            primary={"hidden": movie("Hidden"), "visible": movie("Visible")}
        )
        real_list = scanner_mod.list_directory

        def _list(directory, patterns=()):
            if directory.name == "locked":
                raise PermissionError(13, "Permission denied", str(directory))
            return real_list(directory, patterns)

        engine = ScanEngine(classifier, VIDEO_EXTS)
        with patch("media_linker.scanner.list_directory", side_effect=_list):
            with self.assertLogs("media_linker.scanner", level="WARNING") as logs:
                blueprint = await engine.scan(self.root, Blueprint())

        self.assertEqual(blueprint.titles(), ["Visible"])
        self.assertEqual(engine.stats.unreadable_directories, 1)
        self.assertTrue(any("locked" in line for line in logs.output))

    async def test_exclude_patterns_skip_files(self) -> None:
        _touch(self.root, "Film.mkv", "Film-sample.mkv")
        classifier = FakeClassifier(primary={"Film": movie("Film")})
        engine = ScanEngine(classifier, VIDEO_EXTS, exclude_patterns=["*-sample.*"])

        await engine.scan(self.root, Blueprint())

        self.assertEqual(classifier.primary_calls, [("Film", "media")])

    async def test_scans_accumulate_into_one_blueprint(self) -> None:
        other = Path(self._tmp.name) / "other"
        _touch(self.root, "a.mkv")
        _touch(other, "b.mkv")
        classifier = FakeClassifier(primary={"a": show("Show", 1, 1), "b": show("Show", 1, 2)})
        engine = ScanEngine(classifier, VIDEO_EXTS)
        blueprint = Blueprint()

        await engine.scan(self.root, blueprint)
        await engine.scan(other, blueprint)

        self.assertEqual(blueprint["Show"].title_votes["Show"], 2)


class TestScannerHelpers(unittest.TestCase):
    def test_concurrency_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            ScanEngine(FakeClassifier(), VIDEO_EXTS, concurrency=0)

    def test_chunked_keeps_order(self) -> None:
        self.assertEqual(list(chunked([1, 2, 3, 4, 5], 2)), [[1, 2], [3, 4], [5]])

    def test_list_directory_sorts_and_separates_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            _touch(tmp, "b.mkv", "a.srt")
            (tmp / "sub").mkdir()
            listing = list_directory(tmp)
            self.assertEqual(listing.files, ["a.srt", "b.mkv"])
            self.assertEqual(listing.subdirectories, [tmp / "sub"])


if __name__ == "__main__":
    unittest.main()
