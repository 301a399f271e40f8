import struct
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np

from md3_converter import md3_decoder as decoder
from md3_converter._testing import (
    ModelSpec,
    TagSpec,
    build_md3,
    quad_surface,
    triangle_surface,
)
from md3_converter.binary_reader import ByteSource
from md3_converter.errors import (
    Md3BadMagicError,
    Md3BadVersionError,
    Md3BoundsError,
    Md3FormatError,
    Md3TruncatedError,
)
from md3_converter.md3_types import HEADER_STRUCT, SURFACE_STRUCT


def _source(spec: ModelSpec) -> ByteSource:
    return ByteSource.from_bytes(build_md3(spec), name=spec.name)


class HeaderTests(unittest.TestCase):
    def test_valid_header(self) -> None:
        spec = ModelSpec(name="models/head", surfaces=[triangle_surface(frames=2)])
        header = decoder.decode_header(_source(spec))
        self.assertEqual(header.name, "models/head")
        self.assertEqual(header.version, 15)
        self.assertEqual(header.num_frames, 2)
        self.assertEqual(header.num_surfaces, 1)
        self.assertEqual(header.ofs_surfaces, HEADER_STRUCT.size)

    def test_bad_magic(self) -> None:
        spec = ModelSpec(ident=b"IDP2", surfaces=[triangle_surface()])
        with self.assertRaises(Md3BadMagicError):
            decoder.decode_header(_source(spec))

    def test_bad_version(self) -> None:
        spec = ModelSpec(version=16, surfaces=[triangle_surface()])
        with self.assertRaises(Md3BadVersionError):
            decoder.decode_header(_source(spec))

    def test_end_offset_past_file_size(self) -> None:
        spec = ModelSpec(ofs_end_extra=1, surfaces=[triangle_surface()])
        with self.assertRaises(Md3TruncatedError):
            decoder.decode_header(_source(spec))

    def test_end_offset_before_file_end_is_accepted(self) -> None:
        spec = ModelSpec(ofs_end_extra=-4, surfaces=[triangle_surface()])
        decoder.decode_header(_source(spec))

    def test_file_shorter_than_header(self) -> None:
        with self.assertRaises(Md3TruncatedError):
            decoder.decode_header(ByteSource.from_bytes(b"IDP3" + b"\x00" * 20))

    def test_truncated_is_a_bounds_error(self) -> None:
        self.assertTrue(issubclass(Md3TruncatedError, Md3BoundsError))
        self.assertTrue(issubclass(Md3BadMagicError, Md3FormatError))


class SurfaceTests(unittest.TestCase):
    def test_decodes_every_block(self) -> None:
        spec = ModelSpec(surfaces=[triangle_surface("a", frames=2), quad_surface("b")], num_frames=2)
        source = _source(spec)
        surfaces = decoder.decode_surfaces(source, decoder.decode_header(source))

        self.assertEqual([s.name for s in surfaces], ["a", "b"])
        first = surfaces[0]
        self.assertEqual(first.triangles.tolist(), [[0, 1, 2]])
        self.assertEqual(first.texcoords.shape, (3, 2))
        self.assertEqual(len(first.vertices), 6)
        self.assertEqual(first.frame_vertices(1)["xyz"][0].tolist(), [64, 0, 0])
        self.assertEqual(surfaces[1].vertices["normal"].tolist(), [0x4040] * 4)

    def test_padding_between_surfaces_is_skipped(self) -> None:
        padded = triangle_surface("padded")
        padded.padding = 12
        spec = ModelSpec(surfaces=[padded, quad_surface("after")])
        source = _source(spec)
        surfaces = decoder.decode_surfaces(source, decoder.decode_header(source))
        self.assertEqual(surfaces[1].name, "after")
        self.assertEqual(surfaces[1].num_verts, 4)

    def test_bad_surface_magic_fails_whole_model(self) -> None:
        broken = quad_surface("broken")
        broken.ident = b"XXXX"
        spec = ModelSpec(surfaces=[triangle_surface("ok"), broken])
        with self.assertRaises(Md3BadMagicError) as ctx:
            decoder.decode_md3(_source(spec))
        self.assertIn("surface 1", str(ctx.exception))

    def test_triangle_offset_out_of_bounds(self) -> None:
        broken = triangle_surface("broken")
        broken.ofs_triangles_override = 1 << 20
        spec = ModelSpec(surfaces=[broken])
        with self.assertRaises(Md3BoundsError) as ctx:
            decoder.decode_md3(_source(spec))
        self.assertIn("triangles", str(ctx.exception))

    def test_vertex_block_sized_by_surface_frame_count(self) -> None:
        # Claims more frames than the file holds vertices for.
        greedy = triangle_surface("greedy", frames=1)
        greedy.num_frames = 50
        spec = ModelSpec(surfaces=[greedy], num_frames=1)
        with self.assertRaises(Md3BoundsError) as ctx:
            decoder.decode_md3(_source(spec))
        self.assertIn("vertices", str(ctx.exception))

    def test_surface_header_past_end(self) -> None:
        data = bytearray(build_md3(ModelSpec(surfaces=[triangle_surface()])))
        # Declare a second surface that is not there.
        struct.pack_into("<i", data, 4 + 4 + 64 + 4 * 3, 2)
        with self.assertRaises(Md3BoundsError):
            decoder.decode_md3(ByteSource.from_bytes(bytes(data)))

    def test_negative_vertex_count(self) -> None:
        data = bytearray(build_md3(ModelSpec(surfaces=[triangle_surface()])))
        num_verts_offset = HEADER_STRUCT.size + 4 + 64 + 4 * 3
        struct.pack_into("<i", data, num_verts_offset, -3)
        with self.assertRaises(Md3BoundsError):
            decoder.decode_md3(ByteSource.from_bytes(bytes(data)))

    def test_triangle_index_past_vertex_count(self) -> None:
        surface = triangle_surface()
        surface.triangles = [(0, 1, 7)]
        with self.assertRaisesRegex(Md3BoundsError, "Triangle index"):
            decoder.decode_md3(_source(ModelSpec(surfaces=[surface])))

    def test_negative_triangle_index(self) -> None:
        surface = triangle_surface()
        surface.triangles = [(0, -1, 2)]
        with self.assertRaises(Md3BoundsError):
            decoder.decode_md3(_source(ModelSpec(surfaces=[surface])))

    def test_frame_count_mismatch_is_permissive(self) -> None:
        spec = ModelSpec(surfaces=[triangle_surface(frames=2)], num_frames=1)
        with self.assertLogs(level="WARNING"):
            model = decoder.decode_md3(_source(spec))
        self.assertEqual(model.surfaces[0].num_frames, 2)

    def test_surface_header_size(self) -> None:
        self.assertEqual(SURFACE_STRUCT.size, 108)
        self.assertEqual(HEADER_STRUCT.size, 108)


class TagTests(unittest.TestCase):
    def test_reads_first_frame_tags(self) -> None:
        spec = ModelSpec(
            surfaces=[triangle_surface(frames=2)],
            tags=[
                TagSpec("tag_head", origin=(1.0, 2.0, 3.0)),
                TagSpec("tag_weapon", axis=(0.0, 1.0, 0.0, -1.0, 0.0, 0.0, 0.0, 0.0, 1.0)),
            ],
        )
        model = decoder.decode_md3(_source(spec))
        self.assertEqual([t.name for t in model.tags], ["tag_head", "tag_weapon"])
        np.testing.assert_allclose(model.first_tag.origin, [1.0, 2.0, 3.0])
        np.testing.assert_allclose(model.tags[1].axis[1], [-1.0, 0.0, 0.0])

    def test_no_tags_is_none(self) -> None:
        model = decoder.decode_md3(_source(ModelSpec(surfaces=[triangle_surface()])))
        self.assertIsNone(model.tags)
        self.assertIsNone(model.first_tag)

    def test_unreadable_tags_degrade_to_none(self) -> None:
        spec = ModelSpec(
            surfaces=[triangle_surface()],
            tags=[TagSpec("tag_head")],
            ofs_tags_override=1 << 20,
        )
        with self.assertLogs(level="WARNING"):
            model = decoder.decode_md3(_source(spec))
        self.assertIsNone(model.tags)
        self.assertEqual(len(model.surfaces), 1)

    def test_tags_skipped_when_not_requested(self) -> None:
        spec = ModelSpec(
            surfaces=[triangle_surface()],
            tags=[TagSpec("tag_head")],
            ofs_tags_override=1 << 20,
        )
        with mock.patch.object(decoder, "decode_tags") as decode_tags:
            model = decoder.decode_md3(_source(spec), read_tags=False)
        decode_tags.assert_not_called()
        self.assertIsNone(model.tags)
        self.assertEqual(len(model.surfaces), 1)


class LoadTests(unittest.TestCase):
    def test_load_from_disk(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "model.md3"
            path.write_bytes(build_md3(ModelSpec(surfaces=[quad_surface()])))
            model = decoder.load_md3(path)
        self.assertEqual(model.source_name, str(path))
        self.assertEqual(model.surfaces[0].num_verts, 4)

    def test_error_names_the_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "broken.md3"
            path.write_bytes(build_md3(ModelSpec(version=3, surfaces=[quad_surface()])))
            with self.assertRaises(Md3BadVersionError) as ctx:
                decoder.load_md3(path)
        self.assertIn("broken.md3", str(ctx.exception))

    def test_missing_file(self) -> None:
        with self.assertRaises(OSError):
            decoder.load_md3(Path("/nonexistent/model.md3"))


if __name__ == "__main__":
    unittest.main()
