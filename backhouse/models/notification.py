from enum import Enum
from tortoise import fields, models
import uuid


class NotificationType(str, Enum):
    INVENTORY_ALERT = "inventory_alert"
    GENERAL = "general"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Notification(models.Model):
    """Staff-facing alert. Low-stock alerts are created only by the monitor."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    type = fields.CharEnumField(NotificationType, default=NotificationType.GENERAL)
    title = fields.CharField(max_length=255)
    message = fields.TextField()
    severity = fields.CharEnumField(Severity, default=Severity.INFO)
    target_roles = fields.JSONField(default=list)
    metadata = fields.JSONField(default=dict)
    # Mirrors metadata["inventory_item_id"] so the dedup lookup can use an index
    inventory_item_id = fields.UUIDField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    expires_at = fields.DatetimeField(null=True)
    is_dismissed = fields.BooleanField(default=False)
    dismissed_at = fields.DatetimeField(null=True)
    dismissed_by = fields.CharField(max_length=64, null=True)

    class Meta:
        table = "notifications"
        indexes = [
            ("inventory_item_id", "is_dismissed"),
            ("type", "is_dismissed"),
            ("created_at",),
        ]
