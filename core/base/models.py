from django.db import models


class TimestampMixin(models.Model):
    """
    Adds creation and modification timestamps.

    Fields:
        - created_at: Timestamp when record was created
        - updated_at: Timestamp when record was last modified

    Usage:
        class MyModel(TimestampMixin):
            name = models.CharField(max_length=100)
    """
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="Timestamp when record was created"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when record was last modified"
    )

    class Meta:
        abstract = True
