"""
Report Format Detection & Dispatch.

Single entry point for turning an uploaded file into a parsed report. The
caller states which kind of report it expects (its upload target); the file
extension then selects the HTML or spreadsheet parser for that kind. Wrong
extensions are rejected before any parsing is attempted.
"""
import os
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

from .backtest_html_parser import parse_backtest_html
from .backtest_xlsx_parser import parse_backtest_xlsx
from .config import (
    BACKTEST,
    EXTENSION_ERRORS,
    FALLBACK_ENCODINGS,
    HTML_EXTENSIONS,
    REPORT_KINDS,
    SUPPORTED_EXTENSIONS,
    TRADE_HISTORY,
    UNSUPPORTED_EXTENSION_ERROR,
    UPLOAD_SLOTS,
)
from .history_html_parser import parse_trade_history_html
from .history_xlsx_parser import parse_trade_history_xlsx
from .models import ParseResult

Content = Union[str, bytes]

_PARSERS: Dict[Tuple[str, str], Callable[..., ParseResult]] = {
    (TRADE_HISTORY, 'html'): parse_trade_history_html,
    (TRADE_HISTORY, 'xlsx'): parse_trade_history_xlsx,
    (BACKTEST, 'html'): parse_backtest_html,
    (BACKTEST, 'xlsx'): parse_backtest_xlsx,
}

# ==========================================
# SECTION 1: HELPERS
# ==========================================
def detect_encoding(data: bytes) -> str:
    """
    Guesses the text encoding of an HTML export.

    MT5 writes reports as UTF-16 (with BOM); NUL bytes in the first kilobytes
    give UTF-16 away even without one.
    """
    if data.startswith(b'\xff\xfe') or data.startswith(b'\xfe\xff'):
        return 'utf-16'
    if b'\x00' in data[:2000]:
        return 'utf-16-le'
    for encoding in FALLBACK_ENCODINGS:
        try:
            data.decode(encoding)
            return encoding
        except UnicodeDecodeError:
            continue
    return 'latin-1'

def decode_html(content: Content) -> str:
    if isinstance(content, str):
        return content
    if content.startswith(b'\xef\xbb\xbf'):
        return content[3:].decode('utf-8', errors='replace')
    return content.decode(detect_encoding(content), errors='replace')

def file_extension(filename: str) -> str:
    return os.path.splitext(filename)[1].lower()

def _extension_error(allowed: Sequence[str]) -> str:
    for extensions, message in EXTENSION_ERRORS.items():
        if set(allowed) == set(extensions):
            return message
    return f"Please upload a {' or '.join(allowed)} file"

# ==========================================
# SECTION 2: DISPATCH
# ==========================================
def load_report(
    filename: str,
    content: Content,
    report_kind: str,
    allowed_extensions: Optional[Sequence[str]] = None,
    verbose: bool = False
) -> ParseResult:
    """
    Validates the file extension and runs the matching parser.

    Args:
        filename (str): Original file name; only its extension is used.
        content (Content): Raw bytes (or already-decoded HTML text).
        report_kind (str): 'trade-history' or 'backtest'.
        allowed_extensions (Optional[Sequence[str]]): Extensions accepted by
            the upload target. Defaults to every supported extension.
        verbose (bool): Forwarded to the parser.

    Returns:
        ParseResult: The parser's result, or a 'format' error when the
        extension is not accepted. Never raises.
    """
    if report_kind not in REPORT_KINDS:
        return ParseResult.fail(f"Unknown report kind '{report_kind}'", 'format')

    extension = file_extension(filename)
    allowed = tuple(allowed_extensions) if allowed_extensions else SUPPORTED_EXTENSIONS

    if extension not in SUPPORTED_EXTENSIONS:
        message = UNSUPPORTED_EXTENSION_ERROR if allowed_extensions is None else _extension_error(allowed)
        return ParseResult.fail(message, 'format')
    if extension not in allowed:
        return ParseResult.fail(_extension_error(allowed), 'format')

    if verbose:
        print(f" [>] Parsing {report_kind} report: {os.path.basename(filename)}")

    if extension in HTML_EXTENSIONS:
        return _PARSERS[(report_kind, 'html')](decode_html(content), verbose=verbose)

    if isinstance(content, str):
        return ParseResult.fail(f"{filename} must be supplied as bytes", 'format')
    return _PARSERS[(report_kind, 'xlsx')](content, verbose=verbose)

def load_upload(slot: str, filename: str, content: Content, verbose: bool = False) -> ParseResult:
    """Parses a file submitted to one of the named UPLOAD_SLOTS."""
    target = UPLOAD_SLOTS.get(slot)
    if target is None:
        return ParseResult.fail(f"Unknown upload target '{slot}'", 'format')
    return load_report(filename, content, target['kind'], target['extensions'], verbose=verbose)

def load_report_file(path: str, report_kind: str, verbose: bool = False) -> ParseResult:
    """Reads a report from disk and dispatches it by extension."""
    if file_extension(path) not in SUPPORTED_EXTENSIONS:
        return load_report(path, b'', report_kind, verbose=verbose)
    try:
        with open(path, 'rb') as f:
            content = f.read()
    except OSError as e:
        if verbose:
            print(f" [!] Error: Could not read {path}: {e}")
        return ParseResult.fail(f"Could not read {path}: {e}", 'parse')
    return load_report(path, content, report_kind, verbose=verbose)


