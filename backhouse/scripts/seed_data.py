# scripts/seed_data.py
import asyncio
from decimal import Decimal

from tortoise import Tortoise

from backhouse.core.db import DB_URL, MODELS_MODULES
from backhouse.models.inventory import InventoryItem, InventoryRequirement
from backhouse.models.menu import MenuItem

# name -> (category, unit, current_stock, par_level)
INGREDIENTS = {
    "Ground Beef": ("proteins", "lbs", "20", "10"),
    "Chicken Breast": ("proteins", "lbs", "15", "8"),
    "Burger Buns": ("bakery", "pieces", "48", "24"),
    "Romaine Lettuce": ("produce", "heads", "12", "6"),
    "Cheddar Cheese": ("dairy", "lbs", "6", "4"),
    "Parmesan": ("dairy", "lbs", "3", "2"),
}

# name -> (category, price, {ingredient: quantity per unit sold})
MENU = {
    "Classic Burger": ("mains", "12.99", {"Ground Beef": "0.25", "Burger Buns": "1", "Romaine Lettuce": "0.1"}),
    "Cheeseburger": ("mains", "13.99", {"Ground Beef": "0.25", "Burger Buns": "1", "Cheddar Cheese": "0.1"}),
    "Grilled Chicken Sandwich": ("mains", "11.99", {"Chicken Breast": "0.3", "Burger Buns": "1"}),
    "Caesar Salad": ("salads", "9.99", {"Romaine Lettuce": "0.5", "Parmesan": "0.05"}),
    "Chicken Caesar": ("salads", "13.49", {"Romaine Lettuce": "0.5", "Parmesan": "0.05", "Chicken Breast": "0.25"}),
}


async def init():
    await Tortoise.init(db_url=DB_URL, modules={"models": MODELS_MODULES})
    # safe to call in dev; existing tables are left alone
    await Tortoise.generate_schemas(safe=True)


async def seed():
    ingredients = {}
    for name, (category, unit, stock, par) in INGREDIENTS.items():
        item, _ = await InventoryItem.get_or_create(
            name=name, defaults={"category": category, "unit": unit, "par_level": Decimal(par)}
        )
        # Reset stock so the script is repeatable
        item.current_stock = Decimal(stock)
        item.par_level = Decimal(par)
        await item.save()
        ingredients[name] = item
    print("Inventory items:", ", ".join(f"{n}={i.id}" for n, i in ingredients.items()))

    for name, (category, price, recipe) in MENU.items():
        menu_item, _ = await MenuItem.get_or_create(
            name=name, defaults={"category": category, "price": Decimal(price), "is_available": True}
        )
        for ingredient, quantity in recipe.items():
            await InventoryRequirement.update_or_create(
                menu_item=menu_item,
                inventory_item=ingredients[ingredient],
                defaults={"quantity_required": Decimal(quantity)},
            )
        print("Menu item:", name, str(menu_item.id))

    print("Requirements seeded.")


async def main():
    await init()
    await seed()
    await Tortoise.close_connections()

if __name__ == "__main__":
    asyncio.run(main())
