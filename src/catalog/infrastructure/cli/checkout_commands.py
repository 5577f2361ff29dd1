"""CLI command for checkout."""

from __future__ import annotations

import click

from catalog.application.checkout import CheckoutHandler
from catalog.infrastructure.cli.product_commands import display_products, run_use_case
from catalog.infrastructure.config import Settings


def _parse_items(raw: str) -> list[dict]:
    """Parse 'Widget:3,Gadget:5' into a raw cart payload."""
    cart: list[dict] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductName:Quantity'.",
                param_hint="--items",
            )
        name, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{name}'.",
                param_hint="--items",
            )
        cart.append({"name": name.strip(), "amount": qty})
    return cart


@click.command("checkout")
@click.option("--items", required=True, help="Items as 'Product:Qty,Product:Qty'.")
@click.pass_obj
def checkout(settings: Settings, items: str) -> None:
    """Decrement stock for every item, or for none if any item fails."""
    cart = _parse_items(items)

    products = run_use_case(
        settings,
        lambda store: CheckoutHandler(
            store,
            timeout=settings.checkout_timeout,
            max_concurrency=settings.max_concurrency,
        ).handle(cart),
    )

    click.echo(f"Checked out {len(products)} line(s). Stock after checkout:")
    display_products(products)
