import logging
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from upath import UPath

from apisync.codegen.clients import parse_api
from apisync.codegen.codegen import Codegen
from apisync.codegen.paths import build_paths
from apisync.codegen.records import parse_dtos
from apisync.config import get_config
from apisync.exceptions import ApiSyncError
from apisync.model import Components, Info, OpenApiDefinition
from apisync.openapi.schema_codec import dump_schema_definition
from apisync.openapi.writer import dump_document_text

console = Console()
app = typer.Typer(
    name='apisync',
    help='Keep OpenAPI documents and generated Python code in sync',
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option('--verbose', '-v', help='Show debug logging')
    ] = False,
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(message)s',
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _read(path: str) -> str:
    try:
        return UPath(path).read_text(encoding='utf-8')
    except OSError as e:
        console.print(f'[red]Error:[/red] cannot read {path}: {e}')
        raise typer.Exit(1)


@app.command()
def generate(
    config: Annotated[
        str | None,
        typer.Option(
            '--config', '-c', help='Path to configuration file (YAML or JSON)'
        ),
    ] = None,
) -> None:
    """Generate models and a client from configuration.

    If no config file is specified, looks for apisync.yaml, apisync.yml or a
    [tool.apisync] table in pyproject.toml in the current directory.

    Examples:
        apisync generate
        apisync generate --config my-config.yaml
    """
    try:
        settings = get_config(config)
    except (FileNotFoundError, ApiSyncError) as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)

    try:
        for document_config in settings.documents:
            with Progress(
                SpinnerColumn(),
                TextColumn('[progress.description]{task.description}'),
                console=console,
            ) as progress:
                task = progress.add_task(
                    f'Generating code for {document_config.source} in {document_config.output}...',
                    total=None,
                )
                codegen = Codegen(
                    document_config,
                    generate_client=settings.generate_client,
                    format_code=settings.format_code,
                )
                files = codegen.generate()
                progress.update(
                    task, description=f'Code generation completed for {document_config.source}!'
                )
            console.print('[dim]Generated files:[/dim]')
            for path in files:
                console.print(f'  - {path}')
    except ApiSyncError as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)


@app.command('parse-models')
def parse_models(
    path: Annotated[str, typer.Argument(help='Generated models module')],
) -> None:
    """Print the schemas recovered from a models module as YAML."""
    schemas = parse_dtos(_read(path))
    data = {'schemas': {schema.name: dump_schema_definition(schema) for schema in schemas}}
    typer.echo(yaml.safe_dump(data, sort_keys=False), nl=False)


@app.command('parse-client')
def parse_client(
    path: Annotated[str, typer.Argument(help='Generated client module')],
    models: Annotated[
        str | None,
        typer.Option('--models', '-m', help='Models module to include as components'),
    ] = None,
    lift: Annotated[
        bool,
        typer.Option('--lift', help='Move facets shared by a path onto its path item'),
    ] = False,
) -> None:
    """Print the document recovered from a client module as YAML."""
    metadata, endpoints = parse_api(_read(path))
    components = None
    if models:
        components = Components(schemas={s.name: s for s in parse_dtos(_read(models))})
    definition = OpenApiDefinition(
        openapi=metadata.openapi or '3.2.0',
        info=metadata.info or Info(title='API', version='0.0.0'),
        json_schema_dialect=metadata.json_schema_dialect,
        self_uri=metadata.self_uri,
        servers=metadata.servers,
        paths=build_paths(endpoints, lift_common_path_metadata=lift),
        paths_extensions=metadata.paths_extensions,
        webhooks_extensions=metadata.webhooks_extensions,
        components=(
            components.model_copy(update={'security_schemes': metadata.security_schemes})
            if components
            else Components(security_schemes=metadata.security_schemes)
        ),
        security=metadata.security,
        security_explicit_empty=metadata.security_explicit_empty,
        tags=metadata.tags,
        external_docs=metadata.external_docs,
        extensions=metadata.extensions,
    )
    typer.echo(dump_document_text(definition), nl=False)


@app.command()
def version() -> None:
    """Show the version of apisync."""
    from apisync import __version__

    console.print(f'apisync version: {__version__}')


if __name__ == '__main__':
    app()
