from rest_framework import status
from rest_framework.exceptions import APIException, NotFound


class ProductNotFound(NotFound):
    default_detail = "Product not found."
    default_code = "product_not_found"


class ProductUnavailable(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Product is not available for purchase."
    default_code = "product_unavailable"


class InvalidQuantity(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid quantity."
    default_code = "invalid_quantity"


class ShippingAddressRequired(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Shipping address is required for physical items."
    default_code = "shipping_address_required"


class PaymentUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Payment processing is not configured."
    default_code = "payment_unavailable"


class PaymentFailed(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment processor request failed."
    default_code = "payment_failed"
