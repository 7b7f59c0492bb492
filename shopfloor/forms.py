from django import forms
from django.utils.translation import gettext_lazy as _

from .exceptions import ValidationError
from .models import KitchenTicket, Order, Reservation, Shop, ShopSettings, Table


def clean_or_raise(form):
    """Return ``form.cleaned_data`` or raise ValidationError with the field errors."""
    if not form.is_valid():
        errors = {field: [str(e) for e in errs] for field, errs in form.errors.items()}
        field, messages = next(iter(errors.items()))
        message = messages[0] if field == '__all__' else f"{field}: {messages[0]}"
        raise ValidationError(message, errors=errors)
    return form.cleaned_data


class ShopForm(forms.Form):
    name = forms.CharField(max_length=255)
    business_mode = forms.ChoiceField(choices=Shop.MODE_CHOICES, required=False)

    def clean_business_mode(self):
        return self.cleaned_data['business_mode'] or Shop.MODE_SHOP


class ShopUpdateForm(forms.Form):
    name = forms.CharField(max_length=255, required=False)
    business_mode = forms.ChoiceField(choices=Shop.MODE_CHOICES, required=False)


class ShopDeleteForm(forms.Form):
    confirmation_name = forms.CharField(max_length=255, required=False, strip=False)


class ShopSettingsForm(forms.ModelForm):
    class Meta:
        model = ShopSettings
        fields = ['stock_policy', 'release_table_to', 'currency']


class TableForm(forms.ModelForm):
    class Meta:
        model = Table
        fields = ['number', 'capacity', 'section']


class TableStatusForm(forms.Form):
    status = forms.ChoiceField(choices=Table.STATUS_CHOICES)


class ReservationForm(forms.Form):
    customer_name = forms.CharField(max_length=255)
    customer_phone = forms.CharField(max_length=50, required=False)
    party_size = forms.IntegerField(min_value=1, max_value=Reservation.MAX_PARTY_SIZE)
    reservation_time = forms.DateTimeField()
    table_id = forms.IntegerField(required=False, min_value=1)
    notes = forms.CharField(required=False)


class ReservationCheckForm(forms.Form):
    party_size = forms.IntegerField(min_value=1, max_value=Reservation.MAX_PARTY_SIZE)
    reservation_time = forms.DateTimeField()
    table_id = forms.IntegerField(required=False, min_value=1)
    exclude_reservation_id = forms.IntegerField(required=False, min_value=1)


class ReservationUpdateForm(forms.Form):
    """Partial update; ``status`` switches to the matching transition."""

    STATUS_ACTIONS = [
        (Reservation.STATUS_SEATED, _('Seat')),
        (Reservation.STATUS_CANCELLED, _('Cancel')),
        (Reservation.STATUS_NO_SHOW, _('No Show')),
    ]

    customer_name = forms.CharField(max_length=255, required=False)
    customer_phone = forms.CharField(max_length=50, required=False)
    party_size = forms.IntegerField(required=False, min_value=1, max_value=Reservation.MAX_PARTY_SIZE)
    reservation_time = forms.DateTimeField(required=False)
    table_id = forms.IntegerField(required=False, min_value=1)
    notes = forms.CharField(required=False)
    status = forms.ChoiceField(choices=STATUS_ACTIONS, required=False)

    def changes(self):
        """Fields present in the submitted payload, excluding ``status``."""
        return {
            name: value for name, value in self.cleaned_data.items()
            if name != 'status' and name in self.data
        }


class OrderItemForm(forms.Form):
    product_id = forms.IntegerField(min_value=1)
    quantity = forms.IntegerField(min_value=1, initial=1, required=False)

    def clean_quantity(self):
        return self.cleaned_data['quantity'] or 1


class OrderForm(forms.Form):
    table_id = forms.IntegerField(required=False, min_value=1)
    guest_count = forms.IntegerField(required=False, min_value=1)
    notes = forms.CharField(required=False)


def clean_items(items):
    """Validate a list of ``{product_id, quantity}`` dicts."""
    if not isinstance(items, list) or not items:
        raise ValidationError('At least one item is required', errors={'items': ['This field is required.']})
    cleaned = []
    for index, item in enumerate(items):
        form = OrderItemForm(item if isinstance(item, dict) else {})
        if not form.is_valid():
            errors = {f'items.{index}.{field}': [str(e) for e in errs] for field, errs in form.errors.items()}
            raise ValidationError('Invalid order items', errors=errors)
        cleaned.append(form.cleaned_data)
    return cleaned


class CompletePaymentForm(forms.Form):
    payment_method = forms.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES)


class CancelOrderForm(forms.Form):
    reason = forms.CharField(max_length=255, required=False)


class KitchenTicketStatusForm(forms.Form):
    status = forms.ChoiceField(choices=KitchenTicket.STATUS_CHOICES)


class OrderFilterForm(forms.Form):
    status = forms.ChoiceField(
        required=False,
        choices=[('', _('All Statuses'))] + list(Order.STATUS_CHOICES),
    )


class ReservationFilterForm(forms.Form):
    date = forms.DateField(required=False)
    status = forms.ChoiceField(
        required=False,
        choices=[('', _('All Statuses'))] + list(Reservation.STATUS_CHOICES),
    )


class DateForm(forms.Form):
    date = forms.DateField(required=False)
