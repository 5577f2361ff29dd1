import click

from catalog.domain.exceptions import DomainException
from catalog.infrastructure.bootstrap import configure_logging
from catalog.infrastructure.cli.checkout_commands import checkout
from catalog.infrastructure.cli.errors import CatalogCliError
from catalog.infrastructure.cli.product_commands import (
    product_add,
    product_delete,
    product_edit,
    product_list,
    product_show,
)
from catalog.infrastructure.config import Settings

_VERBOSITY = ("WARNING", "INFO", "DEBUG")


@click.group()
@click.option("-v", "--verbose", count=True, help="Log more (repeat for debug output).")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """Catalog — product catalog and checkout"""
    try:
        settings = Settings.from_env()
    except DomainException as exc:
        raise CatalogCliError(exc)

    level = settings.log_level
    if verbose:
        level = _VERBOSITY[min(verbose, len(_VERBOSITY) - 1)]
    configure_logging(level)
    ctx.obj = settings


@cli.group()
def product() -> None:
    """Manage products."""


# Register subcommands
product.add_command(product_add)
product.add_command(product_delete)
product.add_command(product_edit)
product.add_command(product_list)
product.add_command(product_show)
cli.add_command(checkout)
