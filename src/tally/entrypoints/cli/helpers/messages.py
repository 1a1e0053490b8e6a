"""Terminal message helpers for the ``tally`` command line.

Status lines go to stderr with an emoji marker, falling back to ASCII when
stderr cannot encode it.
"""

import click


def glyph(emoji: str, fallback: str) -> str:
    """Return ``emoji`` if stderr can encode it, otherwise ``fallback``.

    Click's stderr stream is looked up on every call so that tests (and
    redirected streams) are honoured.
    """
    stream = click.get_text_stream("stderr")  # pragma: no mutate
    try:
        emoji.encode(getattr(stream, "encoding", None) or "ascii")
    except UnicodeEncodeError:
        return fallback
    return emoji


def success(msg: str) -> None:
    """Emit a bold green line prefixed with a check mark."""
    click.secho(f"{glyph('✅', '[OK]')}  {msg}", fg="green", bold=True, err=True)


def failure(msg: str) -> None:
    """Emit a bold red line prefixed with a cross."""
    click.secho(f"{glyph('❌', '[X]')}  {msg}", fg="red", bold=True, err=True)


def detail(msg: str) -> None:
    """Emit an indented, unstyled continuation line."""
    click.echo(f"    {msg}", err=True)
