"""Точка входа: командная строка поверх контроллера."""
from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from resizer.app import ImageResizerApp
from resizer.config import ResizerConfig
from resizer.errors import ImageProcessingError
from resizer.models.record_model import FileUpload, StoredArtifact


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image-resizer", description="Resize, convert and edit images.")
    parser.add_argument("--storage-root", default=None, help="Directory for outputs and records")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    resize = sub.add_parser("resize", help="Resize one or more images and store the results")
    resize.add_argument("files", nargs="+", help="Input image paths")
    resize.add_argument("--width", default=None, help="Target width (default 500)")
    resize.add_argument("--height", default=None, help="Target height (default 500)")
    resize.add_argument("--lock-aspect", action="store_true", help="Derive height from width")
    resize.add_argument("--format", default=None, help="png|jpeg|webp|gif|bmp|tiff")
    resize.add_argument("--quality", default=None, help="Quality 1..100 for jpeg/webp")
    resize.add_argument("--target-size", default=None, help='Target size, e.g. "300", "300KB", "1.5MB"')

    preview = sub.add_parser("preview", help="Report output size without storing anything")
    preview.add_argument("file", help="Input image path")
    preview.add_argument("--width", default=None)
    preview.add_argument("--height", default=None)
    preview.add_argument("--lock-aspect", action="store_true")
    preview.add_argument("--format", default=None)
    preview.add_argument("--quality", default=None)

    edit = sub.add_parser("edit", help="Edit a stored image into a new record")
    edit.add_argument("id", help="Record id")
    edit.add_argument("--crop", default=None, help="left,top,width,height")
    edit.add_argument("--rotate", default=None, help="Clockwise degrees")
    edit.add_argument("--flip-h", action="store_true")
    edit.add_argument("--flip-v", action="store_true")
    edit.add_argument("--format", default=None)
    edit.add_argument("--quality", default=None)

    sub.add_parser("list", help="List stored images, newest first")

    delete = sub.add_parser("delete", help="Delete a stored image and its file")
    delete.add_argument("id")

    archive = sub.add_parser("zip", help="Write stored files into a zip archive")
    archive.add_argument("output", help="Archive path")
    archive.add_argument("filenames", nargs="+")
    return parser


def _parse_crop(value: Optional[str]) -> Optional[Dict[str, str]]:
    if not value:
        return None
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise ValueError("--crop expects left,top,width,height")
    return dict(zip(("left", "top", "width", "height"), parts))


def _read_upload(path: Path) -> FileUpload:
    mime_type, _ = mimetypes.guess_type(path.name)
    return FileUpload(data=path.read_bytes(), original_name=path.name, mime_type=mime_type or "")


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def run(args: argparse.Namespace, app: ImageResizerApp) -> int:
    controller = app.controller

    if args.command == "resize":
        params = controller.resize_params({
            "width": args.width,
            "height": args.height,
            "lockAspect": args.lock_aspect,
            "format": args.format,
            "quality": args.quality,
            "targetSize": args.target_size,
        })
        uploads = [_read_upload(Path(p)) for p in args.files]
        items = controller.resize_batch(uploads, params)
        output: List[Dict[str, Any]] = []
        for item in items:
            if isinstance(item, StoredArtifact):
                output.append({"ok": True, **item.record.to_dict(), "iterations": item.artifact.iterations})
            else:
                output.append({"ok": False, "name": item.original_name, "kind": item.kind, "error": item.message})
        _print(output)
        return 0 if all(item.ok for item in items) else 1

    if args.command == "preview":
        params = controller.preview_params({
            "width": args.width,
            "height": args.height,
            "lockAspect": args.lock_aspect,
            "format": args.format,
            "quality": args.quality,
        })
        result = controller.preview_resize(Path(args.file).read_bytes(), params)
        _print({"width": result.width, "height": result.height, "sizeKB": result.size_kb, "format": result.format})
        return 0

    if args.command == "edit":
        params = controller.edit_params({
            "crop": _parse_crop(args.crop),
            "rotate": args.rotate,
            "flipH": args.flip_h,
            "flipV": args.flip_v,
            "format": args.format,
            "quality": args.quality,
        })
        stored = controller.edit_image(args.id, params)
        _print(stored.record.to_dict())
        return 0

    if args.command == "list":
        _print([record.to_dict() for record in controller.list_images()])
        return 0

    if args.command == "delete":
        controller.delete_image(args.id)
        return 0

    if args.command == "zip":
        with open(args.output, "wb") as fh:
            added = controller.write_zip(args.filenames, fh)
        _print({"archive": args.output, "files": added})
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Разбирает аргументы, собирает приложение и выполняет команду."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ResizerConfig.from_env()
    if args.storage_root:
        config.storage_root = Path(args.storage_root)
    app = ImageResizerApp(config)

    try:
        return run(args, app)
    except (ImageProcessingError, ValueError, OSError) as exc:
        kind = getattr(exc, "kind", type(exc).__name__)
        print(f"error [{kind}]: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
