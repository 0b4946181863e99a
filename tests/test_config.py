import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from media_linker.config import ClassifierSettings, LibrarySettings, Settings, find_config


class TestSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = Settings()
        self.assertEqual(settings.links.link_type, "soft")
        self.assertEqual(settings.links.path_mode, "absolute")
        self.assertEqual(settings.scan.concurrency, 10)
        self.assertFalse(settings.debug.enabled)
        self.assertIn(".rmvb", settings.library.video_extensions)
        self.assertIsNone(settings.links.target_root)

    def test_load_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            config = tmp / "config.yaml"
            config.write_text(
                "library:\n"
                f"  roots: ['{tmp / 'a'}']\n"
                "  video_extensions: ['MKV', '.Mp4']\n"
                "links:\n"
                f"  target_root: {tmp / 'lib'}\n"
                "  link_type: hard\n"
                "scan:\n"
                "  concurrency: 4\n",
                encoding="utf-8",
            )
            settings = Settings.load(config)

        self.assertEqual(settings.library.roots, [(tmp / "a").resolve()])
        self.assertEqual(settings.library.video_extensions, [".mkv", ".mp4"])
        self.assertEqual(settings.links.link_type, "hard")
        self.assertEqual(settings.scan.concurrency, 4)

    def test_empty_yaml_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "config.yaml"
            config.write_text("", encoding="utf-8")
            self.assertEqual(Settings.load(config), Settings())

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            Settings.model_validate({"links": {"link_type": "junction"}})
        with self.assertRaises(ValidationError):
            Settings.model_validate({"scan": {"concurrency": 0}})
        with self.assertRaises(ValidationError):
            Settings().with_overrides(path_mode="sideways")

    def test_overrides_apply_on_top(self) -> None:
        base = Settings.model_validate({"links": {"link_type": "hard"}, "scan": {"concurrency": 3}})
        updated = base.with_overrides(
            sources=[Path("/media/a"), Path("/media/b")],
            target=Path("/library"),
            debug=True,
            cache_enabled=False,
        )
        self.assertEqual(updated.library.roots, [Path("/media/a").resolve(), Path("/media/b").resolve()])
        self.assertEqual(updated.links.target_root, Path("/library").resolve())
        self.assertEqual(updated.links.link_type, "hard")
        self.assertEqual(updated.scan.concurrency, 3)
        self.assertTrue(updated.debug.enabled)
        self.assertFalse(updated.cache.enabled)
        self.assertFalse(base.debug.enabled)

    def test_extension_normalization(self) -> None:
        settings = LibrarySettings(video_extensions=[" TS ", "", "mkv"])
        self.assertEqual(settings.video_extensions, [".ts", ".mkv"])


class TestClassifierSettings(unittest.TestCase):
    def test_explicit_key_wins(self) -> None:
        with patch.dict(os.environ, {"AI_SCRAPER_API_KEY": "from-env"}):
            self.assertEqual(ClassifierSettings(api_key="inline").resolve_api_key(), "inline")

    def test_key_from_environment(self) -> None:
        with patch.dict(os.environ, {"AI_SCRAPER_API_KEY": " from-env "}):
            self.assertEqual(ClassifierSettings().resolve_api_key(), "from-env")

    def test_blank_environment_key_is_missing(self) -> None:
        with patch.dict(os.environ, {"AI_SCRAPER_API_KEY": "  "}):
            self.assertIsNone(ClassifierSettings().resolve_api_key())


class TestFindConfig(unittest.TestCase):
    def test_explicit_missing_path_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            find_config(Path("/definitely/not/here.yaml"))

    def test_discovers_config_in_cwd(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp = Path(tmpdir)
            with patch("media_linker.config.Path.cwd", return_value=tmp):
                self.assertIsNone(find_config(None))
                (tmp / "config.yml").write_text("{}", encoding="utf-8")
                self.assertEqual(find_config(None), tmp / "config.yml")


if __name__ == "__main__":
    unittest.main()
