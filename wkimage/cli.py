"""
Command Line Interface
======================

``wkimage render`` converts an HTML file, URL or stdin into an image;
``wkimage serve`` runs the HTTP API.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from wkimage.config.logging import setup_logging
from wkimage.config.settings import get_settings
from wkimage.core.rendering.converter import HtmlToImageConverter
from wkimage.core.rendering.exceptions import ImageGenerationError
from wkimage.models.schemas import ImageFormat, ProcessPriority


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wkimage", description="Render HTML to images with wkhtmltoimage")
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render an HTML file, URL or stdin")
    render.add_argument("source", help="HTML file path or URL, '-' reads HTML from stdin")
    render.add_argument("-o", "--output", default="-", help="Output image file, '-' writes to stdout")
    render.add_argument(
        "-f", "--format", default=None,
        help=f"Image format ({', '.join(f.value for f in ImageFormat)}); "
             "defaults to png, or the output file extension",
    )
    render.add_argument("--zoom", type=float, help="Zoom factor")
    render.add_argument("--width", type=int, help="Minimum image width")
    render.add_argument("--height", type=int, help="Minimum image height")
    render.add_argument("--timeout", type=float, help="Execution timeout in seconds")
    render.add_argument(
        "--priority", choices=[p.value for p in ProcessPriority], help="Process priority"
    )
    render.add_argument("--custom-args", help="Extra wkhtmltoimage arguments, passed verbatim")
    render.add_argument("--tool-path", help="Directory containing wkhtmltoimage")
    render.add_argument("--exe", help="wkhtmltoimage executable name")
    render.add_argument("-v", "--verbose", action="store_true", help="Echo wkhtmltoimage stderr")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind host")
    serve.add_argument("--port", type=int, help="Bind port")

    return parser


def make_converter(args: argparse.Namespace) -> HtmlToImageConverter:
    """Converter from settings, overridden by command line flags."""
    converter = HtmlToImageConverter.from_settings()
    if args.tool_path:
        converter.tool_path = Path(args.tool_path)
    if args.exe:
        converter.executable_name = args.exe
    if args.zoom is not None:
        converter.zoom = args.zoom
    if args.width is not None:
        converter.width = args.width
    if args.height is not None:
        converter.height = args.height
    if args.timeout is not None:
        converter.execution_timeout = args.timeout
    if args.priority:
        converter.process_priority = ProcessPriority(args.priority)
    if args.custom_args:
        converter.custom_args = args.custom_args
    if args.verbose:
        converter.log_received = lambda line: print(line, file=sys.stderr)
    return converter


def run_render(args: argparse.Namespace) -> int:
    converter = make_converter(args)
    to_stdout = args.output == "-"
    # Only a file target can leave the format to the output extension
    file_target = not to_stdout and args.source != "-"
    image_format = args.format or (None if file_target else "png")

    try:
        if args.source == "-":
            html = sys.stdin.buffer.read()
            if to_stdout:
                converter.generate_image_to_stream(html, image_format, sys.stdout.buffer)
            else:
                image = converter.generate_image(html, image_format)
                with open(args.output, "wb") as f:
                    f.write(image)
        elif to_stdout:
            converter.generate_image_from_file_to_stream(args.source, image_format, sys.stdout.buffer)
        else:
            converter.generate_image_from_file_to_path(args.source, image_format, args.output)
    except ImageGenerationError as e:
        print(f"wkimage: {e}", file=sys.stderr)
        code = e.error_code
        return code if code is not None and code > 0 else 1

    sys.stdout.buffer.flush()
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "wkimage.api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    if args.command == "render":
        return run_render(args)
    return run_serve(args)


if __name__ == "__main__":
    sys.exit(main())
