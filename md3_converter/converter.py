"""
converter.py
============

Convert Quake III MD3 models to Wavefront OBJ.

Two modes:
  - single file: every animation frame of one model becomes its own OBJ
    (``<base>+<frame>.obj``, or ``<base>.obj`` for single-frame models).
  - merge: frame 0 of two or more models is combined into one OBJ, each
    model placed by its first tag when it has one.

Usage:
    md3toobj [options] input.md3 [output.obj | output_directory]
    md3toobj [options] --merge merged.obj head.md3 upper.md3 lower.md3

Options:
    --swap-yz / --no-swap-yz     (aliases -swapYZ / -noSwapYZ, default on)
    --flip-uvs / --no-flip-uvs   (aliases -flipUVs / -noFlipUVs, default on)
    --merge                      (alias -merge)
    --validate                   re-check each written OBJ
    --report PATH                write a JSON summary
    --verbose
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from .errors import Md3FormatError, Md3ParseError
from .geometry import ConversionOptions
from .md3_decoder import load_md3
from .md3_types import Md3Model
from .obj_validate import validate_obj
from .obj_writer import emit_merged, emit_single_frame

MIN_MERGE_INPUTS = 2

# Per-file failures that are reported and skipped rather than aborting.
CONVERSION_ERRORS = (Md3ParseError, OSError, MemoryError)


@dataclass
class ConversionStats:
    inputs_total: int = 0
    inputs_loaded: int = 0
    inputs_failed: int = 0
    files_written: int = 0
    files_failed: int = 0
    failures: List[Dict] = field(default_factory=list)

    def record_failure(self, source: Path, exc: BaseException, kind: str) -> None:
        self.failures.append({"source": str(source), "error": str(exc), "type": kind})


# ---------------------------------------------------------------------------
# Output naming
# ---------------------------------------------------------------------------

def resolve_output_base(input_path: Path, output: Optional[Path]) -> Path:
    """Directory + stem used to name the OBJ files for *input_path*."""
    if output is None:
        return Path(input_path.stem)
    if output.is_dir():
        return output / input_path.stem
    return output.parent / output.stem


def frame_output_paths(base: Path, num_frames: int) -> List[Path]:
    if num_frames > 1:
        return [base.with_name(f"{base.name}+{frame}.obj") for frame in range(num_frames)]
    if num_frames == 1:
        return [base.with_name(f"{base.name}.obj")]
    return []


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def write_obj_file(path: Path, emit: Callable[[TextIO], None]) -> None:
    """Run *emit* against *path*; a partial file is removed on failure."""
    path.parent.mkdir(parents=True, exist_ok=True)
    out = open(path, "w", encoding="utf-8", newline="\n")
    try:
        with out:
            emit(out)
    except Exception:
        path.unlink(missing_ok=True)
        raise


def _check_written(path: Path, stats: ConversionStats) -> bool:
    ok, message = validate_obj(path)
    if ok:
        logging.debug("Validated %s", path)
        return True
    stats.files_failed += 1
    stats.failures.append({"source": str(path), "error": message, "type": "validation"})
    logging.error("Validation failed for %s: %s", path, message)
    return False


# ---------------------------------------------------------------------------
# Single-file mode
# ---------------------------------------------------------------------------

def convert_single(
    input_path: Path,
    output: Optional[Path],
    options: ConversionOptions,
    stats: ConversionStats,
    validate: bool = False,
) -> bool:
    """Write one OBJ per frame of *input_path*. Returns True if every frame was written."""
    stats.inputs_total += 1
    try:
        model = load_md3(input_path, read_tags=False)
    except CONVERSION_ERRORS as exc:
        stats.inputs_failed += 1
        stats.record_failure(input_path, exc, "parse")
        logging.error("Cannot convert %s: %s", input_path, exc)
        return False
    stats.inputs_loaded += 1

    logging.info(
        "Model: %s  Frames: %d, Surfaces: %d",
        model.name, model.num_frames, len(model.surfaces),
    )

    all_ok = True
    outputs = frame_output_paths(resolve_output_base(input_path, output), model.num_frames)
    if not outputs:
        logging.warning("%s declares no frames, nothing to write", input_path)
    for frame, out_path in enumerate(outputs):
        logging.info("Writing frame %d to %s", frame, out_path)
        try:
            write_obj_file(
                out_path,
                lambda out, frame=frame: emit_single_frame(
                    model.header, model.surfaces, frame, out, options
                ),
            )
        except CONVERSION_ERRORS as exc:
            all_ok = False
            stats.files_failed += 1
            stats.record_failure(out_path, exc, "write")
            logging.warning("Failed writing frame %d to %s: %s", frame, out_path, exc)
            continue

        stats.files_written += 1
        if validate and not _check_written(out_path, stats):
            all_ok = False
    return all_ok


# ---------------------------------------------------------------------------
# Merge mode
# ---------------------------------------------------------------------------

def _require_first_frame(path: Path, model: Md3Model) -> None:
    for surface in model.surfaces:
        if surface.num_frames < 1:
            raise Md3FormatError(f"{path}: surface '{surface.name}' has no frame 0")


def load_models(input_paths: Sequence[Path], stats: ConversionStats) -> List[Md3Model]:
    """Decode every input in order, skipping the ones that fail."""
    models: List[Md3Model] = []
    for path in input_paths:
        stats.inputs_total += 1
        try:
            model = load_md3(path, read_tags=True)
            _require_first_frame(path, model)
        except CONVERSION_ERRORS as exc:
            stats.inputs_failed += 1
            stats.record_failure(path, exc, "parse")
            logging.warning("Failed to load %s: %s", path, exc)
            continue
        stats.inputs_loaded += 1
        tag = model.first_tag
        logging.info(
            "Loaded %s: %d surfaces, %s",
            path, len(model.surfaces), f"tag '{tag.name}'" if tag else "no tags",
        )
        models.append(model)
    return models


def convert_merged(
    output_path: Path,
    input_paths: Sequence[Path],
    options: ConversionOptions,
    stats: ConversionStats,
    validate: bool = False,
) -> bool:
    """Merge frame 0 of every decodable input into *output_path*."""
    models = load_models(input_paths, stats)
    try:
        if len(models) < MIN_MERGE_INPUTS:
            logging.error(
                "At least %d MD3 files must be loaded successfully for merge mode (loaded %d)",
                MIN_MERGE_INPUTS, len(models),
            )
            return False

        logging.info("Writing %d models to %s", len(models), output_path)
        try:
            write_obj_file(output_path, lambda out: emit_merged(models, out, options))
        except CONVERSION_ERRORS as exc:
            stats.files_failed += 1
            stats.record_failure(output_path, exc, "write")
            logging.error("Failed writing merged OBJ file %s: %s", output_path, exc)
            return False

        stats.files_written += 1
        if validate:
            return _check_written(output_path, stats)
        return True
    finally:
        models.clear()


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

def write_report(
    report_path: Path, mode: str, options: ConversionOptions, stats: ConversionStats
) -> None:
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report = {"mode": mode, "options": asdict(options)}
    report.update(asdict(stats))
    report_path.write_text(json.dumps(report, indent=2))
    logging.info("Report written to %s", report_path)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert Quake III MD3 models to Wavefront OBJ.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "paths", nargs="+", type=Path, metavar="PATH",
        help=(
            "Single-file mode: INPUT [OUTPUT.obj | OUTPUT_DIR]. "
            "Merge mode: OUTPUT.obj INPUT INPUT [INPUT ...]"
        ),
    )
    parser.add_argument(
        "--swap-yz", "-swapYZ", dest="swap_yz", action="store_true", default=True,
        help="Swap Y and Z on positions and normals (default)",
    )
    parser.add_argument(
        "--no-swap-yz", "-noSwapYZ", dest="swap_yz", action="store_false",
        help="Keep MD3 axes and reverse face winding instead",
    )
    parser.add_argument(
        "--flip-uvs", "-flipUVs", dest="flip_uvs", action="store_true", default=True,
        help="Write V as 1 - V (default)",
    )
    parser.add_argument(
        "--no-flip-uvs", "-noFlipUVs", dest="flip_uvs", action="store_false",
        help="Write texture coordinates unchanged",
    )
    parser.add_argument(
        "--merge", "-merge", action="store_true",
        help="Merge frame 0 of several MD3 files into one OBJ",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Check every written OBJ for consistent counts and face indices",
    )
    parser.add_argument(
        "--report", type=Path, default=None,
        help="Path for JSON conversion report",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_intermixed_args(argv)

    if args.merge:
        if len(args.paths) < 1 + MIN_MERGE_INPUTS:
            parser.error(
                "merge mode requires an output file followed by at least two input MD3 files"
            )
    elif len(args.paths) > 2:
        parser.error("single-file mode takes INPUT and an optional OUTPUT")

    return args


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    options = ConversionOptions(swap_yz=args.swap_yz, flip_uvs=args.flip_uvs)
    stats = ConversionStats()

    if args.merge:
        mode = "merge"
        ok = convert_merged(args.paths[0], args.paths[1:], options, stats, validate=args.validate)
    else:
        mode = "single"
        input_path = args.paths[0]
        output = args.paths[1] if len(args.paths) > 1 else None
        ok = convert_single(input_path, output, options, stats, validate=args.validate)

    if args.report:
        write_report(args.report, mode, options, stats)

    if not ok:
        return 1
    logging.info(
        "Conversion completed: %d file(s) written, %d input(s) skipped",
        stats.files_written, stats.inputs_failed,
    )
    return 0

