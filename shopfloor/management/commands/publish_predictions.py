"""
Management command to publish analytics predictions.

Usage:
    python manage.py publish_predictions
    python manage.py publish_predictions --shop 3 --shop 7
"""

from django.core.management.base import BaseCommand, CommandError

from shopfloor.models import Shop
from shopfloor.services import AnalyticsService


class Command(BaseCommand):
    help = "Compute sales predictions and emit PREDICTION_UPDATE events"

    def add_arguments(self, parser):
        parser.add_argument(
            "--shop",
            type=int,
            action="append",
            dest="shops",
            help="Shop ID to publish for (repeatable; default: all shops)",
        )

    def handle(self, *args, **options):
        shop_ids = options["shops"] or list(Shop.objects.values_list("pk", flat=True))
        missing = set(shop_ids) - set(Shop.objects.filter(pk__in=shop_ids).values_list("pk", flat=True))
        if missing:
            raise CommandError(f"Unknown shop(s): {', '.join(str(pk) for pk in sorted(missing))}")

        for shop_id in shop_ids:
            data = AnalyticsService.publish_predictions(shop_id)
            next_hour = data["predictions"]["next_hour"]["predicted_value"]
            trend = data["trend_indicators"]["sales_trend"]
            self.stdout.write(
                self.style.SUCCESS(f"Shop {shop_id}: next hour {next_hour} ({trend})")
            )
