"""Status lines for the ``sitewire`` command.

They are written to stderr so stdout stays machine-readable (e.g. ``sitewire
plan --json``). Each line starts with an emoji, or an ASCII stand-in when
stderr cannot encode it.
"""

import click

# kind -> (emoji, ASCII stand-in, color)
STYLES = {
    "caution": ("⚠️", "[!]", "yellow"),  # pragma: no mutate
    "success": ("✅", "[OK]", "green"),  # pragma: no mutate
    "error": ("❌", "[X]", "red"),  # pragma: no mutate
}


def _stderr_can_encode(text: str) -> bool:
    stream = click.get_text_stream("stderr")  # pragma: no mutate
    try:
        text.encode(getattr(stream, "encoding", None) or "ascii")
    except UnicodeEncodeError:
        return False
    return True


def _glyph(kind: str) -> str:
    emoji, fallback, _ = STYLES[kind]
    return emoji if _stderr_can_encode(emoji) else fallback


def caution_glyph() -> str:
    return _glyph("caution")


def success_glyph() -> str:
    return _glyph("success")


def error_glyph() -> str:
    return _glyph("error")


def _emit(kind: str, msg: str) -> None:
    click.secho(f"{_glyph(kind)}  {msg}", fg=STYLES[kind][2], bold=True, err=True)


def warn(msg: str) -> None:
    """Print *msg* as a yellow warning, e.g. ``⚠️  Back up the database first.``"""
    _emit("caution", msg)


def success(msg: str) -> None:
    """Print *msg* as a green success line, e.g. ``✅  Upgrade complete!``"""
    _emit("success", msg)


def error(msg: str) -> None:
    """Print *msg* as a red error line, e.g. ``❌  Cannot connect to database``"""
    _emit("error", msg)
