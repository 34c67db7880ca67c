# promo_engine/cli.py
import click
from flask.cli import with_appcontext
from sqlalchemy import func
from .model import Discount
from .services.discount_service import list_available_discounts

@click.command("discount-usage")
@with_appcontext
@click.option("--store", "store_id", required=True)
@click.option("--code", required=True)
def discount_usage(store_id, code):
    d = Discount.query.filter(
        Discount.store_id == store_id, func.lower(Discount.code) == code.strip().lower()
    ).first()
    if not d:
        click.echo("Discount not found"); return
    limit = d.usage_limit if d.usage_limit is not None else "unlimited"
    click.echo(f"{d.code}: used {d.usage_count} / {limit}")
    if d.budget_type:
        click.echo(f"campaign {d.campaign_name or '-'} ({d.budget_type}): {d.budget_used} / {d.budget_limit}")

@click.command("available-discounts")
@with_appcontext
@click.option("--store", "store_id", required=True)
@click.option("--customer", "customer_id", default=None)
def available_discounts(store_id, customer_id):
    rows = list_available_discounts(store_id, customer_id)
    if not rows:
        click.echo("No public discounts available"); return
    for d in rows:
        click.echo(f"{d.code}\t{d.type}\t{d.value}\t{d.name}")

def register_cli(app):
    app.cli.add_command(discount_usage)
    app.cli.add_command(available_discounts)
