"""
Main entry point for Flux Archive.

This module provides the main() function behind the flux-archive command:

    flux-archive info IMAGE
    flux-archive dump IMAGE --head H --track T [--sub-track S] --capture C
                 [--stream index|data] --out FILE
    flux-archive import-scp SRC DEST
    flux-archive media-type --medium-type X --density-code Y [--vendor V] [--model M]

Exit status is 0 on success, 1 when an image operation fails and 2 on
usage errors.
"""

import argparse
import logging
import time
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from flux_archive.hardware.flux_codec import decode_flux
from flux_archive.imaging import (
    FluxImage,
    FluxImageError,
    ImageFormat,
    ImageFormatError,
    ImageWriteError,
    create_image,
    open_image,
)
from flux_archive.media import get_media_type_from_ssc
from flux_archive.utils import describe_error, log_error, log_operation, log_performance, setup_logging
from flux_archive.utils.logging import LOG_LEVELS

logger = logging.getLogger(__name__)


def _int_auto(value: str) -> int:
    """Parse decimal or 0x-prefixed integers."""
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flux-archive",
        description="Store, inspect and convert raw flux captures of floppy disks",
    )
    parser.add_argument("--log-file", help="Log file (default from settings)")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                        help="Log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Show image metadata and capture counts")
    info.add_argument("image", type=Path, help="Flux image (.fluxarc, .flx, .scp)")

    dump = subparsers.add_parser("dump", help="Write one raw capture stream to a file")
    dump.add_argument("image", type=Path, help="Flux image")
    dump.add_argument("--head", type=int, required=True, help="Physical head")
    dump.add_argument("--track", type=int, required=True, help="Physical track")
    dump.add_argument("--sub-track", type=int, default=0, help="Physical sub-track")
    dump.add_argument("--capture", type=int, required=True, help="Capture index")
    dump.add_argument(
        "--stream",
        choices=("index", "data"),
        default="data",
        help="Stream to dump",
    )
    dump.add_argument("--out", type=Path, required=True, help="Output file")

    import_scp = subparsers.add_parser(
        "import-scp",
        help="Copy every capture of an SCP image into a new FLUXARC archive",
    )
    import_scp.add_argument("source", type=Path, help="Input SCP image")
    import_scp.add_argument("dest", type=Path, help="Output FLUXARC archive")

    media = subparsers.add_parser("media-type", help="Classify tape media from SSC data")
    media.add_argument("--medium-type", type=_int_auto, required=True,
                       help="MODE SENSE medium type (e.g. 0x38)")
    media.add_argument("--density-code", type=_int_auto, required=True,
                       help="MODE SENSE density code (e.g. 0x44)")
    media.add_argument("--vendor", default="", help="INQUIRY vendor string")
    media.add_argument("--model", default="", help="INQUIRY product string")
    media.add_argument("--peripheral-type", type=_int_auto, default=1,
                       help="SCSI peripheral device type")

    return parser


# =============================================================================
# Commands
# =============================================================================

def cmd_info(args: argparse.Namespace, console: Console) -> int:
    with open_image(str(args.image)) as image:
        metadata = image.get_metadata()
        floppy = image.floppy_info

        summary = Table(title=f"{metadata.filename}", show_header=False)
        summary.add_column("Field", style="bold")
        summary.add_column("Value")
        summary.add_row("Format", f"{metadata.format_name} {metadata.version}".strip())
        summary.add_row("Size", f"{metadata.file_size} bytes")
        summary.add_row("Addresses", str(metadata.address_count))
        summary.add_row("Captures", str(metadata.capture_count))
        if metadata.application:
            summary.add_row("Application",
                            f"{metadata.application} {metadata.application_version}".strip())
        if metadata.creator:
            summary.add_row("Creator", metadata.creator)
        if metadata.comments:
            summary.add_row("Comments", metadata.comments)
        if metadata.creation_time:
            summary.add_row("Created", metadata.creation_time.isoformat(timespec='seconds'))
        if floppy.tracks:
            summary.add_row("Geometry", f"{floppy.tracks} tracks x {floppy.heads} heads, "
                                        f"{floppy.track_density} tpi")
        console.print(summary)

        captures = Table(title="Captures")
        captures.add_column("Head", justify="right")
        captures.add_column("Track", justify="right")
        captures.add_column("Sub", justify="right")
        captures.add_column("Captures", justify="right")
        captures.add_column("Resolution (ps)", justify="right")
        for address in image.addresses():
            count = image.captures_length(address.head, address.track, address.sub_track)
            resolutions = sorted({
                image.read_flux_resolution(address.head, address.track, address.sub_track, i)
                for i in range(count)
            })
            captures.add_row(str(address.head), str(address.track), str(address.sub_track),
                             str(count), ", ".join(str(r) for r in resolutions))
        console.print(captures)
    return 0


def cmd_dump(args: argparse.Namespace, console: Console) -> int:
    with open_image(str(args.image)) as image:
        if args.stream == "index":
            stream = image.read_flux_index_capture(args.head, args.track, args.sub_track,
                                                   args.capture)
        else:
            stream = image.read_flux_data_capture(args.head, args.track, args.sub_track,
                                                  args.capture)
        resolution = image.read_flux_resolution(args.head, args.track, args.sub_track,
                                                args.capture)

    try:
        args.out.write_bytes(stream)
    except OSError as e:
        raise ImageWriteError(f"Failed to write stream: {e}", str(args.out)) from e

    log_operation("dump", f"{args.image} H{args.head}:T{args.track}.{args.sub_track} "
                          f"capture {args.capture} {args.stream} -> {args.out}")
    console.print(f"Wrote {len(stream)} bytes ({args.stream} stream, "
                  f"{resolution} ps resolution) to {args.out}")
    return 0


def copy_captures(source: FluxImage, dest: FluxImage) -> int:
    """Copy every capture of source into dest, keeping capture indices."""
    copied = 0
    for address in source.addresses():
        for capture in range(source.captures_length(address.head, address.track,
                                                    address.sub_track)):
            resolution, index, data = source.read_flux_capture(
                address.head, address.track, address.sub_track, capture)
            dest.write_flux_capture(resolution, index, data, address.head, address.track,
                                    address.sub_track, capture)
            copied += 1
    return copied


def cmd_import_scp(args: argparse.Namespace, console: Console) -> int:
    start = time.perf_counter()

    with open_image(str(args.source)) as source:
        if source.format != ImageFormat.SCP:
            raise ImageFormatError("Source is not an SCP image", str(args.source),
                                   detected_format=source.format.name)

        metadata = source.get_metadata()
        metadata.comments = metadata.comments or f"Imported from {args.source.name}"
        with create_image(str(args.dest), metadata=metadata,
                          floppy_info=source.floppy_info) as dest:
            copied = copy_captures(source, dest)
            addresses = len(dest.addresses())

    log_performance("import_scp", time.perf_counter() - start,
                    captures=copied, addresses=addresses)
    console.print(f"Imported {copied} captures at {addresses} addresses into {args.dest}")
    return 0


def cmd_media_type(args: argparse.Namespace, console: Console) -> int:
    media_type = get_media_type_from_ssc(args.peripheral_type, args.vendor, args.model,
                                         args.medium_type, args.density_code, 0, 0)
    console.print(media_type.value)
    return 0


COMMANDS = {
    "info": cmd_info,
    "dump": cmd_dump,
    "import-scp": cmd_import_scp,
    "media-type": cmd_media_type,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for Flux Archive.

    Returns:
        Process exit status
    """
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    setup_logging(args.log_file, args.log_level)
    logger.debug("Running command %s", args.command)

    console = Console()
    try:
        return COMMANDS[args.command](args, console)
    except FluxImageError as e:
        log_error(args.command, e)
        Console(stderr=True).print(describe_error(e), markup=False, highlight=False)
        return 1


__all__ = ["main", "build_arg_parser", "copy_captures"]
