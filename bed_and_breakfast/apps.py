from django.apps import AppConfig


class BedAndBreakfastConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bed_and_breakfast"
    verbose_name = "Bed & Breakfast"
