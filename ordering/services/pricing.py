"""
Pricing validator - recomputes every line from server-held catalog prices.

Client-submitted unit prices are ignored. Modifier deltas and side prices are
re-looked-up by id as well, but fall back to the submitted value when the id is
unknown (see _modifier_snapshot / _side_snapshot).
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.models.menu import ItemModifierOption, MenuItem, MenuItemSide
from ordering.models.order import OptionType
from ordering.schemas import CartItem, ModifierSelection, SideSelection
from ordering.services.errors import ItemInactive, ItemNotFound, SideSelectionInvalid
from ordering.services.inventory import DailyItemRef
from ordering.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OptionSnapshot:
    option_type: OptionType
    label_snapshot: str
    price_delta_huf: int = 0
    side_item_id: Optional[str] = None


@dataclass
class PricedLine:
    item_id: str
    name_snapshot: str
    qty: int
    unit_price_huf: int
    line_total_huf: int
    options: List[OptionSnapshot] = field(default_factory=list)
    daily: Optional[DailyItemRef] = None


@dataclass
class CatalogSnapshot:
    """Catalog rows needed to price one cart, fetched in bulk"""
    items: Dict[str, MenuItem]
    side_rules: Dict[str, List[MenuItemSide]]
    modifier_options: Dict[str, ItemModifierOption]
    side_items: Dict[str, MenuItem]


async def load_catalog(db: AsyncSession, cart: Iterable[CartItem]) -> CatalogSnapshot:
    cart = list(cart)
    item_ids = {c.item_id for c in cart}
    option_ids = {m.option_id for c in cart for m in c.modifiers if m.option_id}
    side_ids = {s.id for c in cart for s in c.sides}

    items: Dict[str, MenuItem] = {}
    side_rules: Dict[str, List[MenuItemSide]] = defaultdict(list)
    if item_ids:
        result = await db.execute(select(MenuItem).where(MenuItem.id.in_(item_ids)))
        items = {m.id: m for m in result.scalars().all()}
        result = await db.execute(select(MenuItemSide).where(MenuItemSide.main_item_id.in_(item_ids)))
        for rule in result.scalars().all():
            side_rules[rule.main_item_id].append(rule)

    modifier_options: Dict[str, ItemModifierOption] = {}
    if option_ids:
        result = await db.execute(select(ItemModifierOption).where(ItemModifierOption.id.in_(option_ids)))
        modifier_options = {o.id: o for o in result.scalars().all()}

    side_items: Dict[str, MenuItem] = {}
    if side_ids:
        result = await db.execute(select(MenuItem).where(MenuItem.id.in_(side_ids)))
        side_items = {m.id: m for m in result.scalars().all()}

    return CatalogSnapshot(items, dict(side_rules), modifier_options, side_items)


def check_catalog_item(catalog: CatalogSnapshot, cart_item: CartItem) -> MenuItem:
    menu_item = catalog.items.get(cart_item.item_id)
    if menu_item is None:
        raise ItemNotFound(f"Menu item not found: {cart_item.name_snapshot}")
    if not menu_item.is_active:
        raise ItemInactive(f"Menu item is no longer available: {menu_item.name}")
    return menu_item


def validate_side_selection(catalog: CatalogSnapshot, cart_item: CartItem) -> None:
    """Required side configurations bound the number of chosen sides."""
    required = [r for r in catalog.side_rules.get(cart_item.item_id, []) if r.is_required]
    if not required:
        return

    min_select = max(r.min_select for r in required)
    max_select = max(r.max_select for r in required)
    selected = len(cart_item.sides)
    if not min_select <= selected <= max_select:
        if min_select == max_select:
            expected = str(min_select)
        else:
            expected = f"{min_select}-{max_select}"
        raise SideSelectionInvalid(
            f"{cart_item.name_snapshot}: choose {expected} side dish(es), got {selected}"
        )


def _modifier_snapshot(catalog: CatalogSnapshot, modifier: ModifierSelection) -> OptionSnapshot:
    option = catalog.modifier_options.get(modifier.option_id) if modifier.option_id else None
    if option is not None:
        return OptionSnapshot(OptionType.MODIFIER, option.label, option.price_delta_huf)
    # Trust boundary: no catalog row for this modifier, keep the client's delta
    logger.debug(f"Modifier '{modifier.label_snapshot}' not in catalog, using submitted price")
    return OptionSnapshot(OptionType.MODIFIER, modifier.label_snapshot, modifier.price_delta_huf)


def _side_snapshot(catalog: CatalogSnapshot, side: SideSelection) -> OptionSnapshot:
    side_item = catalog.side_items.get(side.id)
    if side_item is not None:
        return OptionSnapshot(OptionType.SIDE, side_item.name, side_item.price_huf, side_item.id)
    # Trust boundary: unknown side id, fall back to the submitted price (same policy as modifiers)
    logger.debug(f"Side '{side.name}' not in catalog, using submitted price")
    return OptionSnapshot(OptionType.SIDE, side.name, side.price_huf, side.id)


def price_line(
    catalog: CatalogSnapshot,
    cart_item: CartItem,
    unit_price_huf: int,
    name: str,
    daily: Optional[DailyItemRef] = None,
) -> PricedLine:
    """(unit price + modifier deltas + side prices) * qty"""
    options = [_modifier_snapshot(catalog, m) for m in cart_item.modifiers]
    options += [_side_snapshot(catalog, s) for s in cart_item.sides]
    per_unit = unit_price_huf + sum(o.price_delta_huf for o in options)

    if daily is not None:
        options.append(OptionSnapshot(
            OptionType.DAILY_META,
            daily_marker(daily),
            0,
        ))

    return PricedLine(
        item_id=cart_item.item_id,
        name_snapshot=name,
        qty=cart_item.qty,
        unit_price_huf=unit_price_huf,
        line_total_huf=per_unit * cart_item.qty,
        options=options,
        daily=daily,
    )


def daily_marker(ref: DailyItemRef) -> str:
    """kind|id|date, parsed back by parse_daily_marker when an order is cancelled"""
    return f"{ref.kind.value}|{ref.id}|{ref.date.isoformat()}"


def parse_daily_marker(label: str) -> Optional[tuple]:
    parts = label.split("|")
    if len(parts) != 3:
        return None
    return tuple(parts)


def price_regular_items(catalog: CatalogSnapshot, cart: List[CartItem]) -> List[PricedLine]:
    """Validate and price every permanent-menu line. Side rules are checked first for the whole cart."""
    menu_items = [check_catalog_item(catalog, c) for c in cart]
    for cart_item in cart:
        validate_side_selection(catalog, cart_item)

    lines = []
    for cart_item, menu_item in zip(cart, menu_items):
        if cart_item.unit_price_huf != menu_item.price_huf:
            logger.info(
                f"Price override for {menu_item.name}: submitted {cart_item.unit_price_huf}, "
                f"catalog {menu_item.price_huf}"
            )
        lines.append(price_line(catalog, cart_item, menu_item.price_huf, cart_item.name_snapshot))
    return lines


def price_daily_item(catalog: CatalogSnapshot, cart_item: CartItem, ref: DailyItemRef) -> PricedLine:
    """Daily rows carry their own price; rows without one use the catalog item's price."""
    unit_price = ref.price_huf
    if unit_price is None:
        unit_price = check_catalog_item(catalog, cart_item).price_huf
    return price_line(catalog, cart_item, unit_price, cart_item.name_snapshot, daily=ref)
