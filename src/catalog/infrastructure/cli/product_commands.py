"""CLI commands for the Product aggregate."""

from __future__ import annotations

import asyncio

import click

from catalog.application.add_product import AddProductHandler
from catalog.application.delete_product import DeleteProductHandler
from catalog.application.dto import ProductDTO
from catalog.application.edit_product import EditProductHandler
from catalog.application.show_product import ListProductsHandler, ShowProductHandler
from catalog.domain.exceptions import DomainException
from catalog.infrastructure.bootstrap import open_store
from catalog.infrastructure.cli.errors import CatalogCliError
from catalog.infrastructure.config import Settings


def _parse_attributes(raw: tuple[str, ...]) -> dict[str, str]:
    """Parse ('color=red', 'size=L') into {name: value}."""
    attributes: dict[str, str] = {}
    for pair in raw:
        if "=" not in pair:
            raise click.BadParameter(
                f"Invalid attribute '{pair}'. Expected 'key=value'.",
                param_hint="--attr",
            )
        key, value = pair.split("=", 1)
        attributes[key.strip()] = value.strip()
    return attributes


def run_use_case(settings: Settings, use_case):
    """Run an async use case against a freshly opened store."""

    async def main():
        async with open_store(settings) as store:
            return await use_case(store)

    try:
        return asyncio.run(main())
    except DomainException as exc:
        raise CatalogCliError(exc)


def display_products(products: list[ProductDTO]) -> None:
    click.echo(f"{'ID':<34} {'Name':<20} {'Amount':>8}  Attributes")
    click.echo("-" * 78)
    for p in products:
        attrs = ", ".join(f"{k}={v}" for k, v in sorted(p.attributes.items()))
        click.echo(f"{p.id:<34} {p.name:<20} {p.amount:>8}  {attrs}")


@click.command("list")
@click.pass_obj
def product_list(settings: Settings) -> None:
    """List all products in the catalog."""
    products = run_use_case(settings, lambda store: ListProductsHandler(store).handle())

    if not products:
        click.echo("No products found.")
        return
    display_products(products)


@click.command("show")
@click.option("--id", "product_id", required=True, help="Product ID.")
@click.pass_obj
def product_show(settings: Settings, product_id: str) -> None:
    """Show a single product."""
    product = run_use_case(settings, lambda store: ShowProductHandler(store).handle(product_id))
    display_products([product])


@click.command("add")
@click.option("--name", required=True, help="Product name (unique).")
@click.option("--amount", default=0, show_default=True, type=int, help="Units in stock.")
@click.option("--attr", "attrs", multiple=True, help="Extra attribute as 'key=value'.")
@click.pass_obj
def product_add(settings: Settings, name: str, amount: int, attrs: tuple[str, ...]) -> None:
    """Add a new product to the catalog."""
    payload = {**_parse_attributes(attrs), "name": name, "amount": amount}
    product = run_use_case(settings, lambda store: AddProductHandler(store).handle(payload))

    click.echo(f"Product {product.id} '{product.name}' added with {product.amount} in stock")


@click.command("edit")
@click.option("--id", "product_id", required=True, help="Product ID.")
@click.option("--name", default=None, help="New product name.")
@click.option("--amount", default=None, type=int, help="New stock level.")
@click.option("--attr", "attrs", multiple=True, help="Attribute to set as 'key=value'.")
@click.pass_obj
def product_edit(
    settings: Settings,
    product_id: str,
    name: str | None,
    amount: int | None,
    attrs: tuple[str, ...],
) -> None:
    """Edit a product's name, stock or attributes."""
    payload: dict = _parse_attributes(attrs)
    if name is not None:
        payload["name"] = name
    if amount is not None:
        payload["amount"] = amount

    product = run_use_case(settings, lambda store: EditProductHandler(store).handle(product_id, payload))
    click.echo(f"Product {product.id} updated")
    display_products([product])


@click.command("delete")
@click.option("--id", "product_id", required=True, help="Product ID.")
@click.pass_obj
def product_delete(settings: Settings, product_id: str) -> None:
    """Remove a product from the catalog."""
    product = run_use_case(settings, lambda store: DeleteProductHandler(store).handle(product_id))
    click.echo(f"Product {product.id} '{product.name}' deleted")
