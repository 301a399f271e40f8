import tempfile
import unittest
from pathlib import Path

from md3_converter.obj_validate import validate_obj, validate_obj_text

VALID = """o thing
v 0 0 0
v 1 0 0
v 0 1 0
vt 0 0
vt 1 0
vt 0 1
vn 0 0 1
vn 0 0 1
vn 0 0 1
g part
f 1/1/1 2/2/2 3/3/3
"""


class ValidateObjTests(unittest.TestCase):
    def test_valid_document(self) -> None:
        self.assertEqual(validate_obj_text(VALID), (True, "ok"))

    def test_face_index_out_of_range(self) -> None:
        ok, message = validate_obj_text(VALID.replace("3/3/3", "4/4/4"))
        self.assertFalse(ok)
        self.assertIn("out of range", message)

    def test_zero_index_rejected(self) -> None:
        ok, _ = validate_obj_text(VALID.replace("1/1/1", "0/0/0"))
        self.assertFalse(ok)

    def test_attribute_count_mismatch(self) -> None:
        ok, message = validate_obj_text(VALID.replace("vt 0 1\n", ""))
        self.assertFalse(ok)
        self.assertIn("counts differ", message)

    def test_missing_object_line(self) -> None:
        ok, message = validate_obj_text(VALID.split("\n", 1)[1])
        self.assertFalse(ok)
        self.assertEqual(message, "missing object line")

    def test_quad_face_rejected(self) -> None:
        ok, _ = validate_obj_text(VALID.replace("3/3/3", "3/3/3 1/1/1"))
        self.assertFalse(ok)

    def test_unreadable_file(self) -> None:
        ok, message = validate_obj(Path("/nonexistent/out.obj"))
        self.assertFalse(ok)
        self.assertTrue(message.startswith("cannot read"))

    def test_file_on_disk(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "thing.obj"
            path.write_text(VALID)
            self.assertEqual(validate_obj(path), (True, "ok"))


if __name__ == "__main__":
    unittest.main()
