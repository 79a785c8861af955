# stockwatch/cli/retailer.py
import click

from stockwatch.cli.common import run_with_container
from stockwatch.core.enums import RetailerId
from stockwatch.core.exceptions import ProviderError

RETAILER_CHOICES = click.Choice([r.value for r in RetailerId])


@click.command("validate-sku")
@click.option("--retailer", type=RETAILER_CHOICES, default=RetailerId.BESTBUY.value, show_default=True)
@click.argument("sku")
def validate_sku(retailer, sku):
    """Check that a SKU exists at the retailer"""

    async def _validate(container):
        provider = container.registry.get_provider(retailer)
        return await provider.validate_sku(sku)

    try:
        valid = run_with_container(_validate)
    except ProviderError as e:
        raise click.ClickException(str(e))

    if not valid:
        raise click.ClickException(f"SKU {sku} not found at {retailer}")
    click.echo(f"SKU {sku} is valid at {retailer}")


@click.command("find-stores")
@click.option("--retailer", type=RETAILER_CHOICES, default=RetailerId.BESTBUY.value, show_default=True)
@click.option("--max-results", type=int, default=10, show_default=True)
@click.argument("zip_code")
def find_stores(retailer, max_results, zip_code):
    """List retailer stores near a ZIP code"""

    async def _find(container):
        provider = container.registry.get_provider(retailer)
        return await provider.find_stores(zip_code, max_results=max_results)

    try:
        stores = run_with_container(_find)
    except NotImplementedError:
        raise click.ClickException(f"{retailer} does not support store lookup")
    except ProviderError as e:
        raise click.ClickException(str(e))

    if not stores:
        click.echo(f"No stores found near {zip_code}")
        return
    for store in stores:
        address = f" - {store.address}" if store.address else ""
        click.echo(f"{store.store_id}\t{store.store_name}{address} {store.zip_code}".rstrip())
