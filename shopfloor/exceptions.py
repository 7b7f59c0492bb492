"""
Shopfloor error taxonomy.

Every error is per-request: views turn them into JSON responses with the
``status_code`` declared on the class.
"""


class ShopfloorError(Exception):
    status_code = 400
    code = 'error'

    def __init__(self, message='', **extra):
        super().__init__(message)
        self.message = str(message)
        self.extra = extra

    def as_dict(self):
        data = {'success': False, 'code': self.code, 'error': self.message}
        data.update(self.extra)
        return data


class ValidationError(ShopfloorError):
    """Malformed or out-of-range input."""
    status_code = 400
    code = 'validation_error'

    def __init__(self, message='', errors=None, **extra):
        if errors:
            extra['errors'] = errors
        super().__init__(message, **extra)


class ConfirmationRequired(ValidationError):
    """Destructive action needs an explicit confirmation step."""
    code = 'confirmation_required'


class PaymentFailed(ValidationError):
    """Gateway could not create or confirm a payment; the order stays open."""
    code = 'payment_failed'


class PermissionDenied(ShopfloorError):
    status_code = 403
    code = 'permission_denied'


class NotFoundError(ShopfloorError):
    status_code = 404
    code = 'not_found'


class ConflictError(ShopfloorError):
    """High-severity conflict or lost compare-and-swap at commit time."""
    status_code = 409
    code = 'conflict'

    def __init__(self, message='', conflicts=None, **extra):
        self.conflicts = list(conflicts or [])
        extra['conflicts'] = [c.as_dict() for c in self.conflicts]
        super().__init__(message, **extra)


class StateError(ShopfloorError):
    """Transition attempted from an illegal state."""
    status_code = 409
    code = 'invalid_state'


class OrderAlreadyCompleted(StateError):
    code = 'order_already_completed'
