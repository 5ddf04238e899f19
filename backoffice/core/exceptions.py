"""Domain exceptions raised by service functions and translated by views."""


class BusinessRuleError(Exception):
    """A request that is well-formed but violates a business rule"""
    status_code = 400


class InsufficientStockError(BusinessRuleError):
    status_code = 409


class InvalidStatusTransition(BusinessRuleError):
    pass


class ReceiptError(BusinessRuleError):
    """Goods received note could not be applied to its purchase order"""


class CouponError(BusinessRuleError):
    pass


class PaymentError(BusinessRuleError):
    pass
