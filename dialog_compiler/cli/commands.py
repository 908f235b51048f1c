"""
CLI commands for dialog compiler
"""

import functools
import logging
from pathlib import Path

import click

from dialog_compiler.export.cache import load_cache
from dialog_compiler.export.exporter import LanguageExporter
from dialog_compiler.parser.errors import DialogCompileError
from dialog_compiler.parser.parser import CompileContext, compile_language
from dialog_compiler.parser.sources import ContentRegistry


def source_options(func):
    """Options shared by every command that compiles a language"""

    @click.option(
        '--content-root', '-c',
        type=click.Path(file_okay=False, path_type=Path),
        envvar='DIALOG_CONTENT_ROOT',
        help='Directory holding the primary Dialog/*.txt files',
    )
    @click.option(
        '--overlay', '-o', 'overlays',
        multiple=True,
        type=click.Path(exists=True, path_type=Path),
        envvar='DIALOG_OVERLAYS',
        help='Overlay mod folder or zip, applied in the order given',
    )
    @click.option('--no-primary', is_flag=True, help='Skip the primary dialog file')
    @click.option('--no-overlays', is_flag=True, help='Skip every overlay')
    @click.option('--unguarded', is_flag=True, help='Resolve inserts without the cycle guard')
    @functools.wraps(func)
    def wrapper(*args, content_root, overlays, no_primary, no_overlays, unguarded, **kwargs):
        kwargs['compile_args'] = dict(
            content_root=content_root,
            overlays=overlays,
            load_primary=not no_primary,
            load_overlays=not no_overlays,
            guard_cycles=not unguarded,
        )
        return func(*args, **kwargs)

    return wrapper


def run_compile(virtual_path, content_root, overlays, load_primary, load_overlays, guard_cycles):
    """Compile a language, returning it together with its compile context"""
    registry = ContentRegistry.from_paths(content_root, overlays)
    context = CompileContext()
    language = compile_language(
        virtual_path,
        registry,
        load_primary=load_primary,
        load_overlays=load_overlays,
        guard_cycles=guard_cycles,
        context=context,
    )
    return language, context


def _fail(error):
    click.echo(f"\n❌ Error: {error}", err=True)
    raise SystemExit(1)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log every source read')
def cli(verbose):
    """Dialog Compiler - merges dialog files and their overlays into languages"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s [%(name)s] %(message)s",
    )


@cli.command(name='compile')
@click.argument('virtual_path')
@source_options
@click.option('--detailed', '-d', is_flag=True, help='Show sample keys')
def compile_cmd(virtual_path, compile_args, detailed):
    """Compile a dialog file, e.g. Dialog/English"""
    try:
        language, context = run_compile(virtual_path, **compile_args)
    except (DialogCompileError, OSError) as e:
        _fail(e)

    click.echo(f"\n📄 Language: {language.id} ({language.label or 'no label'})")
    click.echo("-" * 40)
    click.echo(f"File: {language.file_path}")
    click.echo(f"Keys: {len(language.raw)}")
    click.echo(f"Sources: {', '.join(sorted(set(context.tracker.line_sources.values()))) or 'none'}")

    if detailed:
        click.echo("\nSample keys:")
        for i, (key, text) in enumerate(language.cleaned.items()):
            if i >= 5:
                break
            preview = text.replace("\n", " / ")
            click.echo(f"  • {key}: {preview[:60]}{'...' if len(preview) > 60 else ''}")

    if context.conflicts:
        click.echo(f"\n⚠️  Conflicts: {len(context.conflicts)}")
        for conflict in context.conflicts:
            click.echo(f"  • {conflict.message}")
    else:
        click.echo("\n✅ Compiled without conflicts")


@cli.command()
@click.argument('virtual_path')
@source_options
def stats(virtual_path, compile_args):
    """Show statistics for a compiled dialog file"""
    try:
        language, context = run_compile(virtual_path, **compile_args)
    except (DialogCompileError, OSError) as e:
        _fail(e)

    total_chars = sum(len(text) for text in language.cleaned.values())
    total_words = sum(len(text.split()) for text in language.cleaned.values())

    click.echo(f"\n📊 Statistics for {language.id}")
    click.echo("=" * 50)

    click.echo(f"\n📝 Metadata:")
    click.echo(f"  Label:          {language.label}")
    click.echo(f"  Order:          {language.order:>6}")
    click.echo(f"  Icon:           {language.icon_path}")
    if language.font_face:
        click.echo(f"  Font:           {language.font_face} {language.font_face_size:g}")

    click.echo(f"\n📈 Content:")
    click.echo(f"  Keys:           {len(language.raw):>6}")
    click.echo(f"  Words:          {total_words:>6}")
    click.echo(f"  Characters:     {total_chars:>6}")

    if context.conflicts:
        click.echo(f"\n⚠️  Issues:")
        click.echo(f"  Conflicts:      {len(context.conflicts):>6}")
        click.echo(f"  Conflicted keys:{len(context.tracker.conflicted_keys()):>6}")

    click.echo()


@cli.command()
@click.argument('virtual_path')
@click.argument('key')
@source_options
def show_key(virtual_path, key, compile_args):
    """Display the raw and cleaned text of one dialog key"""
    try:
        language, context = run_compile(virtual_path, **compile_args)
    except (DialogCompileError, OSError) as e:
        _fail(e)

    if key not in language.raw:
        click.echo(f"❌ Key '{key}' not found in {language.id}", err=True)
        click.echo("\nAvailable keys:")
        for k in sorted(language.raw)[:20]:
            click.echo(f"  • {k}")
        if len(language.raw) > 20:
            click.echo(f"  ... and {len(language.raw) - 20} more")
        raise SystemExit(1)

    click.echo(f"\n📍 Key: {key}")
    click.echo("=" * 50)
    source = context.tracker.source_of(key)
    if source:
        click.echo(f"Source: {source}")
    click.echo("\n⚙️  Raw:")
    click.echo(f"  {language.raw[key]}")
    click.echo("\n💬 Cleaned:")
    for line in language.cleaned[key].split("\n"):
        click.echo(f"  {line}")
    click.echo()


@cli.command()
@click.argument('virtual_path')
@source_options
def conflicts(virtual_path, compile_args):
    """List dialog keys defined by more than one source"""
    try:
        language, context = run_compile(virtual_path, **compile_args)
    except (DialogCompileError, OSError) as e:
        _fail(e)

    if not context.conflicts:
        click.echo(f"✅ No conflicts in {language.id}")
        return

    click.echo(f"\n⚠️  {len(context.conflicts)} conflict(s) in {language.id}")
    for conflict in context.conflicts:
        click.echo(f"  • {conflict.key}: {conflict.previous_source} -> {conflict.source} (write #{conflict.count})")


@cli.command()
@click.argument('virtual_path')
@click.argument('output_path', type=click.Path(dir_okay=False, path_type=Path))
@source_options
@click.option(
    '--format', '-f', 'fmt',
    type=click.Choice(LanguageExporter.FORMATS),
    default='cache',
    show_default=True,
)
def export(virtual_path, output_path, compile_args, fmt):
    """Compile a dialog file and write it as a cache, JSON or CSV"""
    try:
        language, context = run_compile(virtual_path, **compile_args)
        LanguageExporter().export(language, output_path, fmt, context.conflicts)
    except (DialogCompileError, OSError) as e:
        _fail(e)

    click.echo(f"✅ Exported {language.id} to: {output_path}")
    click.echo(f"   • {len(language.raw)} keys")


@cli.command(name='load-cache')
@click.argument('cache_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def load_cache_cmd(cache_path):
    """Load a binary language cache and summarize it"""
    try:
        language = load_cache(cache_path)
    except (DialogCompileError, OSError) as e:
        _fail(e)

    click.echo(f"\n📦 Cache: {cache_path.name}")
    click.echo("-" * 40)
    click.echo(f"Language: {language.id} ({language.label})")
    click.echo(f"File: {language.file_path}")
    click.echo(f"Keys: {len(language.raw)}")
    click.echo(f"Lines: {language.lines}  Words: {language.words}")


if __name__ == '__main__':
    cli()
