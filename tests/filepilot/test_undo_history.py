import json
import tempfile
import unittest
from pathlib import Path

from filepilot.bootstrap_tools import build_tool_catalog
from filepilot.core.chain import new_operation
from filepilot.core.executor import ToolExecutor, ToolResult
from filepilot.core.undo import UNDO_CAPACITY, UndoEntry, UndoHistory, create_reverse_operation, reverse_steps_for


def _entry(label: str, can_undo: bool = True) -> UndoEntry:
    op = new_operation("file_rename", json.dumps({"path": label, "new_name": label + "2"}))
    return UndoEntry(operation=op, reverse_action="Rename back to original name", reverse_steps=[{"op": "relocate", "args": {}}], can_undo=can_undo)


class _Recorder:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.calls = []

    def __call__(self, steps):
        self.calls.append(steps)
        return ToolResult(success=self.ok, error=None if self.ok else "nope")


class TestUndoRing(unittest.TestCase):
    def test_push_until_full_evicts_oldest(self) -> None:
        h = UndoHistory(capacity=3)
        for i in range(5):
            h.push(_entry(f"f{i}"))
        self.assertEqual(len(h), 3)
        self.assertEqual(h.head, 2)
        paths = [json.loads(e.operation.arguments_json)["path"] for e in h.entries()]
        self.assertEqual(paths, ["f2", "f3", "f4"])

    def test_default_capacity(self) -> None:
        h = UndoHistory()
        self.assertEqual(h.capacity, UNDO_CAPACITY)
        for i in range(UNDO_CAPACITY + 1):
            h.push(_entry(f"f{i}"))
        self.assertEqual(len(h), UNDO_CAPACITY)

    def test_undo_last_pops_newest(self) -> None:
        rec = _Recorder()
        h = UndoHistory(capacity=3, reverser=rec)
        for i in range(4):
            h.push(_entry(f"f{i}"))
        head = h.head
        self.assertTrue(h.undo_last())
        self.assertEqual(len(h), 2)
        self.assertEqual(h.head, head)
        self.assertEqual(len(rec.calls), 1)
        self.assertEqual(json.loads(h.get(1).operation.arguments_json)["path"], "f2")

    def test_failed_reversal_keeps_entry(self) -> None:
        h = UndoHistory(reverser=_Recorder(ok=False))
        h.push(_entry("f"))
        self.assertFalse(h.undo_last())
        self.assertEqual(len(h), 1)

    def test_reverser_may_read_the_history(self) -> None:
        h = UndoHistory()
        seen = []

        def reverser(steps):
            seen.append((len(h), h.can_undo(), len(h.entries())))
            return ToolResult(success=True)

        h.set_reverser(reverser)
        h.push(_entry("a"))
        h.push(_entry("b"))
        self.assertTrue(h.undo_at(0))
        self.assertTrue(h.undo_last())
        self.assertEqual(seen, [(2, True, 2), (2, False, 2)])
        self.assertEqual(len(h), 1)
        self.assertFalse(h.can_undo())

    def test_failed_out_of_order_undo_stays_undoable(self) -> None:
        h = UndoHistory(reverser=_Recorder(ok=False))
        h.push(_entry("a"))
        self.assertFalse(h.undo_at(0))
        self.assertTrue(h.get(0).can_undo)

    def test_without_reverser_nothing_happens(self) -> None:
        h = UndoHistory()
        h.push(_entry("f"))
        self.assertFalse(h.undo_last())
        self.assertEqual(len(h), 1)

    def test_can_undo_looks_at_newest_only(self) -> None:
        h = UndoHistory(reverser=_Recorder())
        self.assertFalse(h.can_undo())
        h.push(_entry("a"))
        h.push(_entry("b", can_undo=False))
        self.assertFalse(h.can_undo())
        self.assertFalse(h.undo_last())

    def test_undo_at_flags_entry(self) -> None:
        rec = _Recorder()
        h = UndoHistory(reverser=rec)
        h.push(_entry("a"))
        h.push(_entry("b"))
        self.assertTrue(h.undo_at(0))
        self.assertEqual(len(h), 2)
        self.assertFalse(h.get(0).can_undo)
        self.assertFalse(h.undo_at(0))
        self.assertFalse(h.undo_at(7))
        self.assertEqual(len(rec.calls), 1)

    def test_description_and_clear(self) -> None:
        h = UndoHistory()
        h.push(_entry("a"))
        self.assertEqual(h.description(0), "Rename to 'a2' (undo: Rename back to original name)")
        self.assertIsNone(h.description(3))
        h.clear()
        self.assertEqual(len(h), 0)
        self.assertEqual(h.entries(), [])

    def test_capacity_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            UndoHistory(capacity=0)


class TestReverseOperation(unittest.TestCase):
    def test_reverse_steps_last_first(self) -> None:
        effects = [
            {"kind": "created", "path": "/d/Images", "is_dir": True, "implicit": True},
            {"kind": "moved", "from": "/d/a.png", "to": "/d/Images/a.png"},
            {"kind": "copied", "from": "/d/b.txt", "to": "/e/b.txt"},
        ]
        self.assertEqual(
            reverse_steps_for(effects),
            [
                {"op": "trash", "args": {"paths": ["/e/b.txt"]}},
                {"op": "relocate", "args": {"from": "/d/Images/a.png", "to": "/d/a.png"}},
                {"op": "rmdir", "args": {"path": "/d/Images"}},
            ],
        )
        self.assertIsNone(reverse_steps_for([{"kind": "shredded", "path": "/x"}]))

    def test_read_only_operations_are_not_undoable(self) -> None:
        op = new_operation("file_list", '{"path": "."}')
        op.executed = op.success = True
        entry = create_reverse_operation(op)
        self.assertFalse(entry.can_undo)

    def test_entry_keeps_a_copy(self) -> None:
        op = new_operation("file_copy", '{"source": "a", "destination": "b"}')
        op.effects = [{"kind": "copied", "from": "/a", "to": "/b/a"}]
        entry = create_reverse_operation(op)
        op.description = "changed"
        self.assertTrue(entry.can_undo)
        self.assertEqual(entry.reverse_action, "Delete the copy")
        self.assertNotEqual(entry.operation.description, "changed")

    def test_delete_without_trash_effect_is_not_undoable(self) -> None:
        op = new_operation("file_delete", '{"paths": ["a"]}')
        self.assertFalse(create_reverse_operation(op).can_undo)


class TestUndoOnDisk(unittest.TestCase):
    def test_organize_undo_restores_layout(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "downloads"
            root.mkdir()
            for name in ("photo.jpg", "report.pdf", "song.mp3"):
                (root / name).write_text(name, encoding="utf-8")
            ex = ToolExecutor(build_tool_catalog(), working_directory=str(root), trash_dir=str(Path(td) / "trash"))

            res = ex.execute("organize", json.dumps({"path": "."}))
            self.assertTrue(res.success, res.error)
            self.assertTrue((root / "Images" / "photo.jpg").exists())
            self.assertTrue((root / "Documents" / "report.pdf").exists())

            op = new_operation("organize", json.dumps({"path": "."}))
            op.executed = op.success = True
            op.effects = res.effects
            h = UndoHistory(reverser=ex.revert)
            h.push(create_reverse_operation(op))
            self.assertTrue(h.undo_last())

            self.assertEqual(sorted(p.name for p in root.iterdir()), ["photo.jpg", "report.pdf", "song.mp3"])

    def test_create_undo_sends_file_to_trash(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            trash = root / ".trash"
            ex = ToolExecutor(build_tool_catalog(), working_directory=str(root), trash_dir=str(trash))
            res = ex.execute("file_create", json.dumps({"path": "draft.txt", "content": "keep me"}))
            op = new_operation("file_create", json.dumps({"path": "draft.txt"}))
            op.effects = res.effects
            h = UndoHistory(reverser=ex.revert)
            h.push(create_reverse_operation(op))
            self.assertTrue(h.undo_last())
            self.assertFalse((root / "draft.txt").exists())
            self.assertEqual(len(list(trash.rglob("draft.txt"))), 1)


if __name__ == "__main__":
    unittest.main()
