from tortoise import fields, models
import uuid


class InventoryItem(models.Model):
    """
    Ledger row for one ingredient. Stock only moves through order deduction
    and stock adjustments; rows are never deleted.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255, unique=True)
    description = fields.TextField(null=True)
    category = fields.CharField(max_length=64)
    current_stock = fields.DecimalField(max_digits=12, decimal_places=3, default=0)
    par_level = fields.DecimalField(max_digits=12, decimal_places=3, default=0)  # Reorder threshold
    unit = fields.CharField(max_length=32, default="each")
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "inventory_items"
        indexes = [
            ("category",),
        ]


class InventoryRequirement(models.Model):
    """How much of an inventory item one unit of a menu item consumes."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    menu_item = fields.ForeignKeyField("models.MenuItem", related_name="requirements")
    inventory_item = fields.ForeignKeyField("models.InventoryItem", related_name="requirements")
    quantity_required = fields.DecimalField(max_digits=12, decimal_places=3)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "menu_item_inventory"
        unique_together = (("menu_item", "inventory_item"),)
        indexes = [
            ("menu_item_id",),       # Evaluator lookups
            ("inventory_item_id",),  # Restock fan-out
        ]
