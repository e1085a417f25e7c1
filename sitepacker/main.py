from __future__ import annotations

import logging
import webbrowser
from pathlib import Path

import click

from .assistant import AssistantClient, concat_pages, suggest_names
from .core.models import README_NAME, Workspace
from .core.storage import load_config, save_config, write_archive
from .core.templating import unresolved_placeholders
from .core.workspace import Session
from .errors import SitePackerError
from .importers import read_batch
from .settings import SettingsManager


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _find_page(workspace: Workspace, name: str):
    page = workspace.page_by_name(name)
    if page is None:
        known = ", ".join(p.original_name for p in workspace.pages) or "none"
        raise click.BadParameter(f"{name} is not an uploaded HTML page (pages: {known})")
    return page


def _load(session: Session, sources: tuple[str, ...]) -> Workspace:
    batch = read_batch(sources)
    for warning in batch.warnings:
        click.echo(f"warning: {warning}", err=True)
    return session.load(batch.assets)


def _warn_unresolved(workspace: Workspace) -> None:
    for page in workspace.pages:
        missing = unresolved_placeholders(page.raw_content, workspace.config)
        if missing:
            click.echo(f"warning: {page.original_name} has no value for {', '.join(missing)}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.option("--settings", "settings_file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Settings file to use instead of the one in the data directory.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, settings_file: Path | None) -> None:
    """Bundle static site files for GitHub Pages."""
    _configure_logging(verbose)
    ctx.obj = SettingsManager(settings_file).settings


@cli.command()
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--index", "index_name", required=True, help="Uploaded page to publish as index.html.")
@click.option("--rename", "renames", multiple=True, metavar="OLD=NEW", help="Output name for an uploaded page.")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Configuration JSON to use instead of an uploaded _config.json.")
@click.option("--suggest-names", "suggest", is_flag=True, help="Ask the assistant for page file names first.")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_obj
def pack(settings, sources, index_name, renames, config_file, suggest: bool, output: Path | None) -> None:
    """Build the deployable archive."""
    with Session() as session:
        try:
            workspace = _load(session, sources)
            if config_file:
                config = session.edit_config(load_config(config_file).raw_text)
                if not config.is_valid:
                    raise click.ClickException(f"{config_file}: {config.error}")
            if suggest:
                client = AssistantClient(settings)
                names = suggest_names(workspace.pages, client.suggest_filename, settings.max_workers)
                session.apply_suggestions(names)
            for item in renames:
                old, sep, new = item.partition("=")
                if not sep:
                    raise click.BadParameter(f"expected OLD=NEW, got {item!r}", param_hint="--rename")
                session.rename(_find_page(session.snapshot(), old).id, new)
            session.set_entry_point(_find_page(session.snapshot(), index_name).id)
            _warn_unresolved(session.snapshot())

            manifest = session.package(settings.archive_name)
            target = write_archive(output or Path(settings.archive_name), manifest)
        except SitePackerError as exc:
            raise click.ClickException(str(exc)) from exc

    for name in manifest.collisions():
        click.echo(f"warning: more than one file is packaged as {name}", err=True)
    click.echo(f"Wrote {target} ({len(manifest.files())} files, see {README_NAME} inside)")


@cli.command()
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-o", "--output", "output_dir", type=click.Path(file_okay=False, path_type=Path), default=Path("preview"))
@click.option("--open", "open_browser", is_flag=True, help="Open the first preview in a browser.")
def preview(sources, output_dir: Path, open_browser: bool) -> None:
    """Write a self-contained preview of every uploaded page."""
    written: list[Path] = []
    with Session() as session:
        try:
            workspace = _load(session, sources)
        except SitePackerError as exc:
            raise click.ClickException(str(exc)) from exc
        _warn_unresolved(workspace)
        output_dir.mkdir(parents=True, exist_ok=True)
        for page in workspace.pages:
            target = output_dir / page.original_name
            target.write_text(page.preview.read(), encoding="utf-8")
            written.append(target)
            click.echo(str(target))
    if not written:
        click.echo("No HTML pages found.", err=True)
    elif open_browser:
        webbrowser.open(written[0].resolve().as_uri())


@cli.command("suggest-names")
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True))
@click.pass_obj
def suggest_names_cmd(settings, sources) -> None:
    """Print an assistant-suggested file name for every page."""
    with Session() as session:
        try:
            workspace = _load(session, sources)
            client = AssistantClient(settings)
            names = suggest_names(workspace.pages, client.suggest_filename, settings.max_workers)
        except SitePackerError as exc:
            raise click.ClickException(str(exc)) from exc
        for page in workspace.pages:
            click.echo(f"{page.original_name} -> {names.get(page.id, page.output_name)}")


@cli.command("generate-config")
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_obj
def generate_config_cmd(settings, sources, output: Path | None) -> None:
    """Generate a _config.json skeleton from the placeholders in the pages."""
    with Session() as session:
        try:
            workspace = _load(session, sources)
            client = AssistantClient(settings)
            config = session.apply_generated_config(lambda: client.generate_config(concat_pages(workspace)))
        except SitePackerError as exc:
            raise click.ClickException(str(exc)) from exc
    text = config.to_text()
    if output is None:
        click.echo(text)
    else:
        save_config(output, config)
        click.echo(f"Wrote {output}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
