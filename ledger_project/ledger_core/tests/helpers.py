import datetime

from ledger_core.models import (Account, Customer, Entity, Group, Invoice,
                                InvoiceLine, Item)
from ledger_core.services import (bind_default_roles, open_bank_account,
                                  seed_entity_accounts, seed_group_chart)

TODAY = datetime.date(2025, 9, 18)


def make_entity(group_slug="acme", entity_slug="hq", bind_roles=True):
    """Group + entity with the default chart, one account per subcategory"""
    group, _ = Group.objects.get_or_create(
        slug=group_slug, defaults={"name": group_slug.title()})
    seed_group_chart(group)
    entity = Entity.objects.create(
        group=group, name=entity_slug.upper(), slug=entity_slug)
    seed_entity_accounts(entity)
    if bind_roles:
        bind_default_roles(entity)
    return entity


def account(entity, code):
    return Account.objects.for_entity(entity).get(code=code)


def balance(entity, code):
    return account(entity, code).balance


def make_bank(entity, name="Main Checking"):
    return open_bank_account(entity, name, bank_name="First Bank").ledger_account


def make_invoice(entity, lines, number="INV-001"):
    """lines: (item or None, quantity, unit_price, tax_amount)"""
    customer = Customer.objects.create(entity=entity, name="Globex")
    invoice = Invoice.objects.create(
        entity=entity, customer=customer, invoice_number=number, date=TODAY)
    for item, quantity, unit_price, tax in lines:
        InvoiceLine.objects.create(
            invoice=invoice,
            item=item,
            quantity=quantity,
            unit_price=unit_price,
            tax_amount=tax,
        )
    invoice.refresh_from_db()
    return invoice


def make_item(entity, sku="W-1", cost_price=0, track_inventory=False,
              item_type="product"):
    return Item.objects.create(
        entity=entity,
        sku=sku,
        name=f"Item {sku}",
        item_type=item_type,
        track_inventory=track_inventory,
        cost_price=cost_price,
    )
