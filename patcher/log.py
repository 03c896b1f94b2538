"""
Per-target status lines for apply, check and revert.

FilePatcher.run sets the current target label, so every line reads
"[workbench] ✅ Patched (+43 bytes)". Colours: green = done, yellow =
skipped or suspicious, red = failed. `detail` prints an indented
secondary line, e.g. the resolved aliases or a failed target summary.
"""
import threading

import click

_lock = threading.Lock()
_label_context = threading.local()


def set_label_context(label: str):
    """Set the current target label for this thread's log lines."""
    _label_context.label = label


def clear_label_context():
    """Clear the label context for this thread."""
    _label_context.label = None


def _prefix():
    """Get the current thread's label prefix, if any."""
    label = getattr(_label_context, 'label', None)
    return f"[{label}] " if label else ""


def echo(msg, **kwargs):
    """Thread-safe click.echo with optional label prefix."""
    with _lock:
        click.echo(f"  {_prefix()}{msg}", **kwargs)


def secho(msg, **kwargs):
    """Thread-safe click.secho with optional label prefix."""
    with _lock:
        click.secho(f"  {_prefix()}{msg}", **kwargs)


def ok(msg):
    secho(f"✅ {msg}", fg='green')


def skip(msg):
    secho(f"⏭️  {msg}", fg='yellow')


def warn(msg):
    secho(f"⚠️  {msg}", fg='yellow')


def fail(msg):
    secho(f"❌ {msg}", fg='red')


def detail(msg):
    """Indented diagnostic line (offsets, resolved aliases)."""
    with _lock:
        click.echo(f"     {msg}")
