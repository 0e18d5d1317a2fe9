from tortoise import fields, models
import uuid


class MenuItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    category = fields.CharField(max_length=64)
    price = fields.DecimalField(max_digits=12, decimal_places=2)
    # Staff intent. The public view also hides the item while an 86 entry is active.
    is_available = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "menu_items"
        indexes = [
            ("category",),
            ("is_available",),
        ]


class EightySixEntry(models.Model):
    """
    One stretch of time a menu item spent on the 86 list. Active while
    removed_at is null; at most one active entry per menu item.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    menu_item = fields.ForeignKeyField("models.MenuItem", related_name="eighty_six_entries")
    reason = fields.TextField()
    created_by = fields.CharField(max_length=64, null=True)  # Null for automated entries
    is_auto_generated = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)
    removed_at = fields.DatetimeField(null=True)

    class Meta:
        table = "eighty_six_list"
        indexes = [
            ("menu_item_id",),
            ("menu_item_id", "removed_at"),  # Active entry lookup
            ("is_auto_generated",),
        ]
