import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from fieldengine.json_text import JsonTextTypeError, dumps_labels, loads_array, loads_labels


class TestJsonText(unittest.TestCase):
    def test_list_order_preserved(self) -> None:
        self.assertEqual(dumps_labels(["b", "a"]), '["b","a"]')

    def test_non_ascii_preserved(self) -> None:
        out = dumps_labels(["café"])
        self.assertIn("café", out)
        self.assertNotIn("\\u", out)

    def test_rejects_non_string_items(self) -> None:
        with self.assertRaises(JsonTextTypeError):
            dumps_labels(["a", 1])

    def test_rejects_non_list(self) -> None:
        with self.assertRaises(JsonTextTypeError):
            dumps_labels("a")

    def test_loads(self) -> None:
        self.assertEqual(loads_labels('["A", "B"]'), ["A", "B"])
        self.assertEqual(loads_labels('["A", 2, null]'), ["A"])

    def test_loads_array_keeps_every_item(self) -> None:
        self.assertEqual(loads_array('["A", 2, null]'), ["A", 2, None])
        self.assertIsNone(loads_array('{"a": 1}'))

    def test_loads_not_an_array(self) -> None:
        self.assertIsNone(loads_labels(None))
        self.assertIsNone(loads_labels(""))
        self.assertIsNone(loads_labels("A,B"))
        self.assertIsNone(loads_labels('"A"'))


if __name__ == "__main__":
    unittest.main()
