import json
import tempfile
import unittest
from pathlib import Path

from config.allowed_context import (
    ALLOWED_CONTEXT_FILENAME,
    AllowedContextError,
    AllowedContextMap,
    default_candidate_paths,
    load_allowed_context,
    parse_allowed_context,
)


class TestParseAllowedContext(unittest.TestCase):
    def test_valid_document(self):
        allowed = parse_allowed_context({"G1": ["C1", "C2"], "G2": []})
        self.assertIsInstance(allowed, AllowedContextMap)
        self.assertEqual(allowed["G1"], frozenset({"C1", "C2"}))
        self.assertEqual(allowed.channels_for("G2"), frozenset())
        self.assertIsNone(allowed.channels_for("G3"))

    def test_shape_violations(self):
        for data in ("a string", ["G1"], {"G1": "C1"}, {"G1": [1, 2]}, {"G1": None}, None):
            with self.subTest(data=data):
                with self.assertRaises(AllowedContextError):
                    parse_allowed_context(data)

    def test_map_is_read_only(self):
        allowed = parse_allowed_context({"G1": ["C1"]})
        with self.assertRaises(TypeError):
            allowed["G2"] = frozenset()  # type: ignore[index]


class TestLoadAllowedContext(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.child = self.root / "bot"
        self.child.mkdir()

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, directory: Path, content: str) -> Path:
        path = directory / ALLOWED_CONTEXT_FILENAME
        path.write_text(content, encoding="utf-8")
        return path

    def test_missing_everywhere_returns_none(self):
        self.assertIsNone(load_allowed_context(default_candidate_paths(self.child)))

    def test_loads_from_working_directory(self):
        self._write(self.child, json.dumps({"G1": ["C1"]}))
        allowed = load_allowed_context(default_candidate_paths(self.child))
        self.assertEqual(dict(allowed), {"G1": frozenset({"C1"})})

    def test_falls_back_to_parent_directory(self):
        self._write(self.root, json.dumps({"G2": []}))
        allowed = load_allowed_context(default_candidate_paths(self.child))
        self.assertIn("G2", allowed)

    def test_first_candidate_wins(self):
        self._write(self.child, json.dumps({"near": []}))
        self._write(self.root, json.dumps({"far": []}))
        allowed = load_allowed_context(default_candidate_paths(self.child))
        self.assertEqual(list(allowed), ["near"])

    def test_empty_object_is_not_absent(self):
        self._write(self.child, "{}")
        allowed = load_allowed_context(default_candidate_paths(self.child))
        self.assertIsNotNone(allowed)
        self.assertEqual(len(allowed), 0)

    def test_malformed_json_fails_open(self):
        path = self._write(self.child, "{not json")
        with self.assertLogs("config.allowed_context", level="WARNING"):
            self.assertIsNone(load_allowed_context([path]))

    def test_wrong_shape_fails_open(self):
        path = self._write(self.child, json.dumps("G1,G2"))
        with self.assertLogs("config.allowed_context", level="WARNING"):
            self.assertIsNone(load_allowed_context([path]))

    def test_unreadable_first_candidate_does_not_fall_through(self):
        (self.child / ALLOWED_CONTEXT_FILENAME).mkdir()
        self._write(self.root, json.dumps({"far": []}))
        with self.assertLogs("config.allowed_context", level="WARNING"):
            self.assertIsNone(load_allowed_context(default_candidate_paths(self.child)))

    def test_logs_loaded_path(self):
        path = self._write(self.child, json.dumps({"G1": []}))
        with self.assertLogs("config.allowed_context", level="INFO") as captured:
            load_allowed_context([path])
        self.assertTrue(any(str(path) in line for line in captured.output))

    def test_candidates_resolve_against_cwd(self):
        near, far = default_candidate_paths(self.child)
        self.assertEqual(near, (self.child / ALLOWED_CONTEXT_FILENAME).resolve())
        self.assertEqual(far, (self.root / ALLOWED_CONTEXT_FILENAME).resolve())


if __name__ == "__main__":
    unittest.main()
