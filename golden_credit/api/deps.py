from fastapi import Request

from golden_credit.services.credit_service import CreditService


def get_credit_service(request: Request) -> CreditService:
    """The CreditService built at startup."""
    return request.app.state.credit_service
