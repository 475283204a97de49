"""
Customer authentication API endpoints.
"""

import logging
from fastapi import APIRouter, HTTPException, status, Depends
from typing import Optional

from ..models import Customer, CustomerCredentials, Token
from ..services import Services, get_services
from ..utils.auth import ROLE_CUSTOMER, create_access_token, get_optional_customer_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def register(
    credentials: CustomerCredentials,
    services: Services = Depends(get_services),
):
    """
    Register a new customer.

    Raises:
        HTTPException: If a field is blank or the contract number is taken
    """
    customer, error = await services.customer_store.register(
        credentials.name, credentials.contract_number
    )
    if customer is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
    return customer


@router.post("/login", response_model=Token)
async def login(
    credentials: CustomerCredentials,
    services: Services = Depends(get_services),
):
    """
    Login with name and contract number and get an access token.

    Raises:
        HTTPException: If no active customer matches
    """
    customer = await services.customer_store.authenticate(
        credentials.name, credentials.contract_number
    )
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="بيانات الدخول غير صحيحة أو الحساب غير مفعل",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(
        "Customer logged in",
        extra={"extra_fields": {"customer_id": customer.id}},
    )
    return Token(access_token=create_access_token(customer.id, ROLE_CUSTOMER))


@router.get("/me", response_model=Customer)
async def get_current_customer(
    customer_id: Optional[str] = Depends(get_optional_customer_id),
    services: Services = Depends(get_services),
):
    """
    Get the logged-in customer.

    Raises:
        HTTPException: If no token was sent or the customer no longer exists
    """
    if customer_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    customer = await services.customer_store.get_customer(customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer
