#!/usr/bin/env python3
"""
better-antigravity - community fixes for Antigravity IDE.

Usage:
    better-antigravity                         # list available fixes
    better-antigravity auto-run                # apply the auto-run fix
    better-antigravity auto-run --check        # show patch status
    better-antigravity auto-run --revert       # restore original files
    better-antigravity auto-run --path DIR     # skip installation discovery
"""
import os
from typing import List, Optional

import click

from patcher import log
from patcher.config import load_config
from patcher.discovery import WORKBENCH_REL, find_install_root, get_version, is_install_dir
from patcher.engine import FilePatcher, Target, all_ok
from patcher.errors import ConfigError
from patcher.fixes import FIXES


def _banner():
    click.echo("")
    click.echo("  better-antigravity — community fixes for Antigravity IDE")
    click.echo("")


def _resolve_root(explicit_path: Optional[str]) -> str:
    if explicit_path:
        root = os.path.abspath(explicit_path)
        if not is_install_dir(root):
            click.secho(f"\n❌ --path \"{root}\" does not look like an Antigravity installation.", fg='red')
            click.echo(f"   Expected to find: {WORKBENCH_REL}")
            raise SystemExit(1)
        return root

    root = find_install_root()
    if not root:
        click.secho("\n❌ Antigravity installation not found!", fg='red')
        click.echo("")
        click.echo("   Try one of:")
        click.echo("     1. Run from the Antigravity install directory")
        click.echo("     2. Specify the path explicitly: better-antigravity auto-run --path DIR")
        click.echo("     3. Set ANTIGRAVITY_PATH to the install directory")
        raise SystemExit(1)
    return root


def _run_targets(patcher: FilePatcher, mode: str, targets: List[Target]):
    """Run every target; an I/O error fails that file only."""
    results = []
    io_failed = False
    for target in targets:
        try:
            results.extend(patcher.run(mode, [target]))
        except OSError as e:
            click.secho(f"  ❌ [{target.label}] I/O error: {e}", fg='red')
            io_failed = True
    return results, io_failed


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx):
    """Community fixes for Antigravity IDE."""
    _banner()
    if ctx.invoked_subcommand is not None:
        return

    click.echo("  Available fixes:")
    click.echo("")
    for name, fix in FIXES.items():
        click.echo(f"    {name:<15} {fix.description}")
    click.echo("")
    click.echo("  Usage:")
    click.echo("    better-antigravity <fix-name>           Apply fix")
    click.echo("    better-antigravity <fix-name> --check   Check status")
    click.echo("    better-antigravity <fix-name> --revert  Revert fix")
    click.echo("")


@main.command('auto-run')
@click.option('--check', is_flag=True, help='Report patch status without changing anything')
@click.option('--revert', is_flag=True, help='Restore the original files from backup')
@click.option('--path', 'explicit_path', type=click.Path(file_okay=False), help='Antigravity installation directory')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='JSON file overriding matcher settings')
def auto_run(check: bool, revert: bool, explicit_path: Optional[str], config_path: Optional[str]):
    """Make "Always Proceed" actually auto-execute terminal commands."""
    mode = 'revert' if revert else 'check' if check else 'apply'

    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg='red')
        raise SystemExit(1)

    click.echo("=" * 52)
    click.echo('  Antigravity "Always Proceed" Auto-Run Fix')
    click.echo("=" * 52)

    root = _resolve_root(explicit_path)
    click.echo(f"\n📍 {root}")
    click.echo(f"📦 Version: {get_version(root)}")
    click.echo("")

    patcher = FilePatcher(config)
    results, io_failed = _run_targets(patcher, mode, FIXES['auto-run'].targets(root))

    if mode == 'check':
        if io_failed:
            raise SystemExit(1)
        return

    if mode == 'revert':
        if io_failed:
            click.secho("\n⚠️  Some files could not be restored.", fg='yellow')
            raise SystemExit(1)
        click.secho("\n✨ Restored! Restart Antigravity.", fg='green')
        return

    if all_ok(results) and not io_failed:
        click.secho("\n✨ Done! Restart Antigravity.", fg='green', bold=True)
        click.echo("💡 Run with --revert to undo.")
        click.echo("⚠️  Re-run after Antigravity updates.")
        return

    failed = [r for r in results if not r.ok]
    click.secho("\n⚠️  Some patches failed.", fg='yellow', bold=True)
    for r in failed:
        log.detail(f"{r.label}: {r.status.value} {r.detail}".rstrip())
    raise SystemExit(1)


if __name__ == "__main__":
    main()
