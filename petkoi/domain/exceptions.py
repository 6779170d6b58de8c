class DomainException(Exception):
    """Ошибки, которые можно показать пользователю"""
    pass


class InfrastructureError(Exception):
    """Сбой БД, почты и т.п. Клиенту отдаем без подробностей"""
    pass


class EmailDeliveryError(InfrastructureError):
    pass


class ValidationError(DomainException):
    pass


class OrderNotFoundError(DomainException):
    pass


class ProductUnavailableError(DomainException):
    pass


class OrderNotPayableError(DomainException):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Order not payable. Current status: {status}")


class OrderExpiredError(DomainException):
    pass


class AuthenticationFailedError(DomainException):
    pass


class OtpLockedError(AuthenticationFailedError):
    def __init__(self, message: str = "OTP locked. Try again in 1 hour."):
        super().__init__(message)


class OtpThrottledError(AuthenticationFailedError):
    pass


class AccessDeniedError(DomainException):
    pass


class AdminAlreadyExistsError(DomainException):
    pass


class AdminNotFoundError(DomainException):
    pass


class DonationNotFoundError(DomainException):
    pass


class DonationAlreadyReviewedError(DomainException):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Donation is already {status.lower()}")


class TicketNotFoundError(DomainException):
    pass


class TicketClosedError(DomainException):
    def __init__(self):
        super().__init__("Cannot add message to a closed ticket. Please create a new ticket.")
