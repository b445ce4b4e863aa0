"""
Box-drawing and colour primitives for the terminal run summary.
"""
import os
import re
import shutil
import sys


# ── ANSI Styling ─────────────────────────────────────────────
class C:
    """Terminal color codes."""
    RST  = '\033[0m'
    BOLD = '\033[1m'
    DIM  = '\033[2m'
    RED  = '\033[91m'
    GRN  = '\033[92m'
    YLW  = '\033[93m'
    CYN  = '\033[96m'
    WHT  = '\033[97m'
    BG_RED = '\033[41m'


# ── Box-Drawing Characters ───────────────────────────────────
BOX_H  = '─'
BOX_V  = '│'
BOX_TL = '┌'
BOX_TR = '┐'
BOX_BL = '└'
BOX_BR = '┘'
BOX_LT = '├'
BOX_RT = '┤'

_ANSI_RE = re.compile(r'\033\[[0-9;]*m')

# Status / health label -> colour
STATUS_COLORS = {
    'PASS': C.GRN,
    'INFO': C.CYN,
    'WARN': C.YLW,
    'FAIL': C.RED,
    'ERROR': C.RED,
    'CRITICAL': C.BOLD + C.BG_RED + C.WHT,
    'Healthy': C.GRN,
    'Warning': C.YLW,
    'Critical': C.BOLD + C.RED,
}


# ── Helpers ──────────────────────────────────────────────────
def strip_ansi(text):
    """Remove ANSI escape sequences from *text*."""
    return _ANSI_RE.sub('', text)


def colors_enabled(stream=None):
    """False when NO_COLOR is set or *stream* (default stdout) is not a tty."""
    if os.environ.get("NO_COLOR"):
        return False
    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def cols():
    """Return terminal width, with a sane fallback."""
    return shutil.get_terminal_size((80, 24)).columns


def truncate(text, width):
    """Shorten plain *text* to *width* characters, marking the cut."""
    if width <= 0:
        return ''
    if len(text) <= width:
        return text
    if width == 1:
        return text[:1]
    return text[:width - 1] + '…'


def colorize(label):
    """Wrap a status or health label in its colour."""
    color = STATUS_COLORS.get(label, '')
    return f"{color}{label}{C.RST}" if color else label


# ── Box Functions ────────────────────────────────────────────
def box_top(w):
    return f"  {C.DIM}{BOX_TL}{BOX_H * (w - 2)}{BOX_TR}{C.RST}"


def box_mid(w):
    return f"  {C.DIM}{BOX_LT}{BOX_H * (w - 2)}{BOX_RT}{C.RST}"


def box_bot(w):
    return f"  {C.DIM}{BOX_BL}{BOX_H * (w - 2)}{BOX_BR}{C.RST}"


def box_row(content, w):
    """Wrap content in box side-bars, padded to width *w*."""
    visible = len(strip_ansi(content))
    inner = w - 4
    pad = max(0, inner - visible)
    return f"  {C.DIM}{BOX_V}{C.RST} {content}{' ' * pad} {C.DIM}{BOX_V}{C.RST}"


def box_section(label, w):
    """Section divider with embedded label."""
    lbl = f" {label} "
    bar_len = max(0, w - 2 - len(lbl))
    left = bar_len // 2
    right = bar_len - left
    return f"  {C.DIM}{BOX_LT}{BOX_H * left}{C.RST}{C.BOLD}{C.CYN}{lbl}{C.RST}{C.DIM}{BOX_H * right}{BOX_RT}{C.RST}"


def box_kv(key, value, w, key_color=C.CYN, val_color=C.WHT):
    """Key-value row inside a box."""
    return box_row(f"{key_color}{key}:{C.RST}  {val_color}{value}{C.RST}", w)


def box_status(status, text, w):
    """Row with a fixed-width coloured status column, then *text*."""
    badge = colorize(status) + ' ' * max(0, 8 - len(status))
    room = max(0, w - 4 - 9)
    return box_row(f"{badge} {truncate(text, room)}", w)
