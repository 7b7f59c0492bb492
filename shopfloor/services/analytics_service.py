"""
Analytics Service

Daily sales summary and hourly sales predictions.
"""

import logging
import statistics
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict

from django.db.models import Count, Sum
from django.utils import timezone

from ..models import Order
from ..signals import analytics_updated, send_event

logger = logging.getLogger(__name__)

# Completed orders older than this are ignored by predictions
HISTORY_WINDOW = timedelta(days=28)


def _range(mean, std_dev, factor=1):
    return {
        'predicted_value': round(mean * factor, 2),
        'confidence_interval': {
            'lower': round((mean - std_dev) * factor, 2),
            'upper': round((mean + std_dev) * factor, 2),
        },
    }


class AnalyticsService:

    @staticmethod
    def sales_summary(shop_id, date=None) -> Dict[str, Any]:
        """Get order statistics for a date (shop-local)."""
        if date is None:
            date = timezone.localdate()

        orders = Order.objects.filter(shop_id=shop_id, created_at__date=date)
        completed = orders.filter(status=Order.STATUS_COMPLETED)

        revenue = completed.aggregate(total=Sum('total'))['total'] or Decimal('0.00')
        completed_count = completed.count()
        by_method = {
            row['payment_method']: {'count': row['count'], 'revenue': str(row['revenue'])}
            for row in completed.values('payment_method').annotate(
                count=Count('id'), revenue=Sum('total'),
            ).order_by('payment_method')
        }
        average = (revenue / completed_count).quantize(Decimal('0.01')) if completed_count else Decimal('0.00')

        return {
            'date': date.isoformat(),
            'total_orders': orders.count(),
            'open': orders.filter(status=Order.STATUS_OPEN).count(),
            'completed': completed_count,
            'cancelled': orders.filter(status=Order.STATUS_CANCELLED).count(),
            'revenue': str(revenue),
            'average_order_value': str(average),
            'by_payment_method': by_method,
        }

    @staticmethod
    def predictions(shop_id, now=None) -> Dict[str, Any]:
        """
        Project sales from completed orders placed at the current hour of day.

        The next-hour figure is the mean order total at this hour with one
        standard deviation as its interval; day and week scale it by 24 and
        168 hours.
        """
        now = timezone.localtime(now or timezone.now())
        totals_by_hour = defaultdict(list)
        completed = Order.objects.filter(
            shop_id=shop_id,
            status=Order.STATUS_COMPLETED,
            created_at__gte=now - HISTORY_WINDOW,
        ).values_list('created_at', 'total')
        for created_at, total in completed:
            totals_by_hour[timezone.localtime(created_at).hour].append(float(total))

        history = totals_by_hour.get(now.hour, [])
        mean = statistics.mean(history) if history else 0.0
        std_dev = statistics.pstdev(history) if len(history) > 1 else 0.0

        hour_start = now.replace(minute=0, second=0, microsecond=0)
        current = [
            float(total) for total in Order.objects.filter(
                shop_id=shop_id,
                status=Order.STATUS_COMPLETED,
                created_at__gte=hour_start,
            ).values_list('total', flat=True)
        ]
        current_sales = round(sum(current), 2)

        if current_sales > mean:
            trend = 'increasing'
        elif current_sales < mean:
            trend = 'decreasing'
        else:
            trend = 'stable'

        return {
            'generated_at': now.isoformat(),
            'predictions': {
                'next_hour': _range(mean, std_dev),
                'next_day': _range(mean, std_dev, 24),
                'next_week': _range(mean, std_dev, 24 * 7),
            },
            'realtime_metrics': {
                'current_hour_sales': current_sales,
                'current_hour_orders': len(current),
                'average_order_value': round(current_sales / len(current), 2) if current else 0.0,
            },
            'trend_indicators': {
                'sales_trend': trend,
                'sample_size': len(history),
            },
        }

    @staticmethod
    def publish_predictions(shop_id, now=None) -> Dict[str, Any]:
        """Compute predictions and broadcast them as a PREDICTION_UPDATE."""
        data = AnalyticsService.predictions(shop_id, now=now)
        send_event(analytics_updated, Order, shop_id, **data)
        logger.debug("Published predictions for shop %s", shop_id)
        return data
