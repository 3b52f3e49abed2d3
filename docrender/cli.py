"""Command-line interface for rendering documents outside the HTTP server.

Provides subcommands for rendering a single JSON document to PDF and for
batch rendering a folder of JSON documents with a CSV summary. Input files
use the same body shape as the API, e.g.
``{"invoice": {...}, "companyInfo": {...}, "printerInfo": {...}}``.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path
from typing import Any

from pdf2image import pdfinfo_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError

from docrender.engine.supervisor import RenderEngineSupervisor
from docrender.exceptions import DocRenderError
from docrender.rendering.models import DocumentType, PDFArtifact
from docrender.rendering.renderer import DocumentRenderer, build_render_request
from docrender.utils.config import AppConfig, load_config
from docrender.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_TYPE_CHOICES = [member.slug for member in DocumentType]
_SUMMARY_COLUMNS = [
    "filename",
    "status",
    "document_type",
    "output",
    "page_count",
    "render_time_s",
    "error",
]


def detect_document_type(
    payload: dict[str, Any], explicit: str | None = None
) -> DocumentType:
    """Work out which document a JSON body holds.

    Args:
        payload: API-shaped request body.
        explicit: Type named on the command line, as value or slug.

    Returns:
        The explicit type if given, otherwise the first type whose payload
        key is present in the body.

    Raises:
        ValueError: If no type can be determined.
    """
    if explicit:
        return DocumentType.parse(explicit)
    for member in DocumentType:
        if member.payload_key in payload:
            return member
    keys = ", ".join(member.payload_key for member in DocumentType)
    raise ValueError(f"No document found in payload (expected one of: {keys})")


def count_pages(content: bytes) -> int | None:
    """Count pages in a rendered PDF, or None when poppler is unavailable."""
    try:
        info = pdfinfo_from_bytes(content)
    except (PDFInfoNotInstalledError, PDFPageCountError) as exc:
        logger.debug("Could not count pages: %s", exc)
        return None
    return int(info["Pages"])


def _build_renderer(config: AppConfig) -> DocumentRenderer:
    supervisor = RenderEngineSupervisor(config.engine)
    return DocumentRenderer(supervisor, config.session, config.render)


def _load_json(path: Path) -> dict[str, Any]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Top-level JSON value must be an object")
    return payload


async def _render_file(
    renderer: DocumentRenderer,
    path: Path,
    output_dir: Path,
    document_type: str | None,
) -> dict[str, object]:
    """Render one JSON file and describe the outcome as a summary row."""
    start_time = time.perf_counter()
    row: dict[str, object] = {"filename": path.name}
    try:
        payload = _load_json(path)
        doc_type = detect_document_type(payload, document_type)
        row["document_type"] = doc_type.value
        artifact = await renderer.render(build_render_request(doc_type, payload))
        output_path = output_dir / artifact.filename
        output_path.write_bytes(artifact.content)
    except (DocRenderError, ValueError, OSError) as exc:
        logger.error("Failed to render %s: %s", path.name, exc)
        row.update(status="failed", error=str(exc).splitlines()[0] if str(exc) else "")
        return row

    row.update(
        status="success",
        output=str(output_path),
        page_count=count_pages(artifact.content),
        render_time_s=round(time.perf_counter() - start_time, 2),
        error=None,
    )
    return row


async def render_documents(
    paths: list[Path],
    output_dir: Path,
    document_type: str | None = None,
    config: AppConfig | None = None,
) -> list[dict[str, object]]:
    """Render several JSON documents concurrently through one shared engine.

    Args:
        paths: JSON input files.
        output_dir: Directory receiving the PDFs.
        document_type: Force a document type for every file.
        config: Application configuration. Loaded from file when omitted.

    Returns:
        One summary row per input file, in input order.
    """
    config = config or load_config()
    renderer = _build_renderer(config)
    output_dir.mkdir(parents=True, exist_ok=True)
    try:
        return list(
            await asyncio.gather(
                *(_render_file(renderer, p, output_dir, document_type) for p in paths)
            )
        )
    finally:
        await renderer.shutdown()


def render_single(
    file_path: Path,
    output: Path | None = None,
    document_type: str | None = None,
) -> PDFArtifact:
    """Render one JSON document to a PDF file.

    Args:
        file_path: JSON input file.
        output: Destination PDF. Defaults to the artifact filename in the
            input file's directory.
        document_type: Force the document type.

    Returns:
        The rendered artifact.
    """
    payload = _load_json(file_path)
    doc_type = detect_document_type(payload, document_type)
    request = build_render_request(doc_type, payload)

    async def _run() -> PDFArtifact:
        renderer = _build_renderer(load_config())
        try:
            return await renderer.render(request)
        finally:
            await renderer.shutdown()

    artifact = asyncio.run(_run())
    destination = output or file_path.parent / artifact.filename
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(artifact.content)
    logger.info("Wrote %s (%d bytes)", destination, len(artifact.content))
    return artifact


def process_folder(
    input_dir: Path,
    output_dir: Path,
    summary_csv: Path,
    document_type: str | None = None,
    verbose: bool = False,
) -> dict[str, int]:
    """Render every JSON document in a folder and write a CSV summary.

    Args:
        input_dir: Directory containing JSON files.
        output_dir: Directory receiving the PDFs.
        summary_csv: Path for the summary CSV file.
        document_type: Force a document type for every file.
        verbose: Whether to print per-file results.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    files = sorted(input_dir.glob("*.json"))
    if not files:
        logger.warning("No JSON documents found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d documents to render", len(files))
    results = asyncio.run(render_documents(files, output_dir, document_type))

    if verbose:
        for row in results:
            print(f"{row['filename']}: {row['status']}")

    successful = sum(1 for row in results if row["status"] == "success")
    _write_csv(results, summary_csv)
    logger.info("Summary written to %s", summary_csv)

    summary = {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
    }
    _print_summary(summary, output_dir, summary_csv)
    return summary


def _write_csv(results: list[dict[str, object]], output_path: Path) -> None:
    """Write render results to a CSV file.

    Args:
        results: List of summary rows.
        output_path: Path for the output CSV file.
    """
    if not results:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_SUMMARY_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(results)


def _print_summary(summary: dict[str, int], output_dir: Path, summary_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Rendering Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"PDFs:       {output_dir}")
    print(f"Summary:    {summary_csv}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Financial document PDF renderer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    render_parser = subparsers.add_parser("render", help="Render a single JSON document")
    render_parser.add_argument("file", type=Path, help="JSON document to render")
    render_parser.add_argument(
        "-t",
        "--type",
        choices=_TYPE_CHOICES,
        dest="doc_type",
        help="Document type (default: detected from the payload)",
    )
    render_parser.add_argument("-o", "--output", type=Path, help="Output PDF file")

    batch_parser = subparsers.add_parser("batch", help="Render a folder of JSON documents")
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with JSON documents"
    )
    batch_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory for rendered PDFs (default: output)",
    )
    batch_parser.add_argument(
        "-s",
        "--summary",
        type=Path,
        default=Path("results.csv"),
        help="Summary CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-t",
        "--type",
        choices=_TYPE_CHOICES,
        dest="doc_type",
        help="Document type (default: detected per file)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "render":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            artifact = render_single(args.file, args.output, args.doc_type)
        except (DocRenderError, ValueError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        print(f"Rendered {artifact.filename} ({len(artifact.content)} bytes)")
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(
            args.input_dir,
            args.output_dir,
            args.summary,
            args.doc_type,
            args.verbose,
        )
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
