import os
import tempfile
import time
import unittest
from pathlib import Path

from tools.fs.batch_move import category_of, run as fs_batch_move
from tools.fs.batch_rename import run as fs_batch_rename
from tools.fs.find_duplicates import run as fs_find_duplicates
from tools.fs.organize import run as fs_organize


class TestFsBatch(unittest.TestCase):
    def test_batch_rename_find_replace(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            paths = []
            for name in ("IMG_draft_1.jpg", "IMG_draft_2.jpg", "notes.txt"):
                (root / name).write_text(name, encoding="utf-8")
                paths.append(str(root / name))

            out = fs_batch_rename({"paths": paths, "find": "draft", "replace": "final"}, dry_run=False)
            self.assertEqual(out["message"], "Renamed 2 of 3 files")
            self.assertTrue((root / "IMG_final_1.jpg").exists())
            self.assertTrue((root / "notes.txt").exists())

    def test_batch_rename_pattern(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            for name in ("b.png", "a.png"):
                (root / name).write_text(name, encoding="utf-8")
            out = fs_batch_rename({"paths": [str(root / "a.png"), str(root / "b.png")], "pattern": "photo_{n}"}, dry_run=False)
            self.assertEqual(out["count"], 2)
            self.assertEqual((root / "photo_1.png").read_text(encoding="utf-8"), "a.png")
            self.assertEqual((root / "photo_2.png").read_text(encoding="utf-8"), "b.png")

    def test_batch_rename_skips_collisions(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "a.txt").write_text("a", encoding="utf-8")
            (root / "b.txt").write_text("b", encoding="utf-8")
            out = fs_batch_rename({"paths": [str(root / "a.txt")], "find": "a", "replace": "b"}, dry_run=False)
            self.assertEqual(out["count"], 0)
            self.assertEqual(out["skipped"][0]["reason"], "target exists")
            self.assertEqual((root / "b.txt").read_text(encoding="utf-8"), "b")

    def test_batch_rename_needs_a_rule(self) -> None:
        with self.assertRaises(ValueError):
            fs_batch_rename({"paths": ["/x"]}, dry_run=True)

    def test_batch_move_creates_destination_and_groups(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            for name in ("a.jpg", "b.pdf"):
                (root / name).write_text(name, encoding="utf-8")
            dest = root / "sorted"
            out = fs_batch_move(
                {"paths": [str(root / "a.jpg"), str(root / "b.pdf")], "destination": str(dest), "organize_by": "type"},
                dry_run=False,
            )
            self.assertTrue((dest / "Images" / "a.jpg").exists())
            self.assertTrue((dest / "Documents" / "b.pdf").exists())
            kinds = [e["kind"] for e in out["effects"]]
            self.assertEqual(kinds, ["created", "created", "moved", "created", "moved"])
            self.assertTrue(all(e.get("implicit") for e in out["effects"] if e["kind"] == "created"))
            self.assertEqual(out["message"], f"Moved 2 of 2 files to '{dest}'")

    def test_batch_move_into_file_fails(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "a.txt").write_text("a", encoding="utf-8")
            (root / "target").write_text("file", encoding="utf-8")
            with self.assertRaises(NotADirectoryError):
                fs_batch_move({"paths": [str(root / "a.txt")], "destination": str(root / "target")}, dry_run=False)

    def test_organize_by_date(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            f = root / "old.txt"
            f.write_text("x", encoding="utf-8")
            stamp = time.mktime((2023, 5, 17, 12, 0, 0, 0, 0, -1))
            os.utime(f, (stamp, stamp))
            (root / ".hidden").write_text("h", encoding="utf-8")

            out = fs_organize({"path": str(root), "organize_by": "date"}, dry_run=False)
            self.assertTrue((root / "2023-05" / "old.txt").exists())
            self.assertTrue((root / ".hidden").exists())
            self.assertEqual(out["count"], 1)

    def test_category_of(self) -> None:
        self.assertEqual(category_of(Path("x.JPG")), "Images")
        self.assertEqual(category_of(Path("x.tar")), "Archives")
        self.assertEqual(category_of(Path("README")), "Other")

    def test_find_duplicates(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "sub").mkdir()
            (root / "a.txt").write_text("same content", encoding="utf-8")
            (root / "sub" / "b.txt").write_text("same content", encoding="utf-8")
            (root / "c.txt").write_text("different!!!", encoding="utf-8")
            (root / "empty1").write_text("", encoding="utf-8")
            (root / "empty2").write_text("", encoding="utf-8")

            out = fs_find_duplicates({"path": str(root)}, dry_run=False)
            self.assertEqual(len(out["groups"]), 1)
            self.assertEqual(out["groups"][0]["paths"], sorted([str(root / "a.txt"), str(root / "sub" / "b.txt")]))
            self.assertEqual(out["wasted_bytes"], len("same content"))

            out = fs_find_duplicates({"path": str(root), "recursive": False}, dry_run=False)
            self.assertEqual(out["groups"], [])


if __name__ == "__main__":
    unittest.main()
