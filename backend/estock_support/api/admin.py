"""
Admin API endpoints - Knowledge base, logs, feedback, company info and customers.
All endpoints except login and password reset require an admin token.
"""

import base64
import binascii
import hmac
import logging
from datetime import date
from fastapi import APIRouter, HTTPException, Depends, Query, Response, status
from fastapi.responses import PlainTextResponse
from typing import List

from ..core.errors import SupportError
from ..models import (
    AdminLogin, ChatLog, CompanyInfo, Customer, CustomerCredentials, KBItem,
    KnowledgeSnippet, ManualAppend, ManualUpdate, PasswordReset, SnippetCreate, Token, time_id,
)
from ..services import Services, get_services
from ..utils.auth import ROLE_ADMIN, create_access_token, require_admin
from ..utils.export import average_rating, feedback_to_csv, logs_to_csv
from .deps import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])
protected = APIRouter(dependencies=[Depends(require_admin)])


def _data_url_size(data_url: str) -> int:
    """
    Decoded byte size of a base64 data URL.

    Raises:
        HTTPException: If the value is not a base64 data URL
    """
    header, _, payload = data_url.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="imageUrl must be a base64 data URL")
    try:
        return len(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="imageUrl is not valid base64")


def _attachment(content: str, filename: str, media_type: str) -> PlainTextResponse:
    return PlainTextResponse(
        content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------- #
# Authentication
# ---------------------------------------------------------------------- #

@router.post("/login", response_model=Token)
async def admin_login(payload: AdminLogin, services: Services = Depends(get_services)):
    """
    Login to the admin dashboard.

    Raises:
        HTTPException: If the password is wrong
    """
    if not await services.knowledge_store.verify_admin_password(payload.password):
        logger.warning("Failed admin login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="كلمة المرور غير صحيحة",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(access_token=create_access_token("admin", ROLE_ADMIN))


@router.post("/reset-password", status_code=status.HTTP_204_NO_CONTENT)
async def reset_password(payload: PasswordReset, services: Services = Depends(get_services)):
    """
    Reset the admin password with the recovery key.

    Raises:
        HTTPException: Wrong recovery key (403) or password too short (400)
    """
    settings = services.settings
    if not hmac.compare_digest(payload.recovery_key, settings.admin_recovery_key):
        logger.warning("Admin password reset with wrong recovery key")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid recovery key")
    if len(payload.new_password) < settings.min_admin_password_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.min_admin_password_length} characters",
        )

    try:
        await services.knowledge_store.set_admin_password(payload.new_password)
    except SupportError as e:
        raise http_error(e)
    logger.info("Admin password reset")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@protected.put("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(payload: AdminLogin, services: Services = Depends(get_services)):
    """Change the admin password from the dashboard."""
    if len(payload.password) < services.settings.min_admin_password_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {services.settings.min_admin_password_length} characters",
        )
    try:
        await services.knowledge_store.set_admin_password(payload.password)
    except SupportError as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------- #
# Manual
# ---------------------------------------------------------------------- #

@protected.get("/manual")
async def get_manual(services: Services = Depends(get_services)):
    """Get the current base manual."""
    manual = await services.knowledge_store.get_manual()
    return {"content": manual, "length": len(manual)}


@protected.put("/manual")
async def replace_manual(payload: ManualUpdate, services: Services = Depends(get_services)):
    """Replace the base manual."""
    try:
        await services.knowledge_store.save_manual(payload.content)
    except SupportError as e:
        raise http_error(e)
    logger.info(f"Manual replaced ({len(payload.content)} chars)")
    return {"length": len(payload.content)}


@protected.post("/manual/append")
async def append_manual(payload: ManualAppend, services: Services = Depends(get_services)):
    """Append already-extracted document text to the manual."""
    try:
        length = await services.knowledge_store.append_manual(payload.source_name, payload.content)
    except SupportError as e:
        raise http_error(e)
    logger.info(f"Appended {payload.source_name} to manual ({length} chars total)")
    return {"length": length}


@protected.delete("/manual")
async def clear_manual(services: Services = Depends(get_services)):
    """Clear the manual, including the bundled default."""
    try:
        length = await services.knowledge_store.reset_manual()
    except SupportError as e:
        raise http_error(e)
    return {"length": length}


@protected.post("/manual/restore")
async def restore_manual(services: Services = Depends(get_services)):
    """Restore the bundled default manual."""
    length = await services.knowledge_store.restore_default_manual()
    return {"length": length}


@protected.get("/knowledge/export")
async def export_knowledge(services: Services = Depends(get_services)):
    """Download the manual and snippets as one text file."""
    content = await services.knowledge_store.export_knowledge()
    return _attachment(
        content,
        f"estock_knowledge_{date.today().isoformat()}.txt",
        "text/plain; charset=utf-8",
    )


# ---------------------------------------------------------------------- #
# Snippets & Q&A items
# ---------------------------------------------------------------------- #

@protected.get("/snippets", response_model=List[KnowledgeSnippet])
async def list_snippets(services: Services = Depends(get_services)):
    """List snippets, newest first."""
    return await services.knowledge_store.get_snippets()


@protected.post("/snippets", response_model=KnowledgeSnippet, status_code=status.HTTP_201_CREATED)
async def add_snippet(payload: SnippetCreate, services: Services = Depends(get_services)):
    """
    Add a knowledge snippet with an optional image.

    Raises:
        HTTPException: Blank content (400) or image over the upload cap (413)
    """
    if not payload.content.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content is required")
    if payload.image_url and _data_url_size(payload.image_url) > services.settings.max_image_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Image exceeds the 1 MiB limit",
        )

    snippet = KnowledgeSnippet(
        id=time_id(),
        content=payload.content.strip(),
        image_url=payload.image_url or None,
    )
    try:
        await services.knowledge_store.add_snippet(snippet)
    except SupportError as e:
        raise http_error(e)
    logger.info(f"Snippet {snippet.id} added (image={bool(snippet.image_url)})")
    return snippet


@protected.delete("/snippets/{snippet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_snippet(snippet_id: str, services: Services = Depends(get_services)):
    """Delete a snippet."""
    if not await services.knowledge_store.delete_snippet(snippet_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snippet not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@protected.get("/kb-items", response_model=List[KBItem])
async def list_kb_items(services: Services = Depends(get_services)):
    """List structured Q&A items."""
    return await services.knowledge_store.get_kb_items()


@protected.put("/kb-items", response_model=List[KBItem])
async def replace_kb_items(items: List[KBItem], services: Services = Depends(get_services)):
    """Replace all structured Q&A items."""
    try:
        await services.knowledge_store.save_kb_items(items)
    except SupportError as e:
        raise http_error(e)
    return items


# ---------------------------------------------------------------------- #
# Logs & feedback
# ---------------------------------------------------------------------- #

@protected.get("/logs", response_model=List[ChatLog])
async def list_logs(
    limit: int = Query(100, ge=1, le=1000),
    services: Services = Depends(get_services),
):
    """List chat logs, newest first."""
    return await services.knowledge_store.get_logs(limit)


@protected.get("/logs/export")
async def export_logs(services: Services = Depends(get_services)):
    """Download chat logs as CSV."""
    logs = await services.knowledge_store.get_logs(services.settings.logs_page_size)
    return _attachment(
        logs_to_csv(logs),
        f"estock_logs_{date.today().isoformat()}.csv",
        "text/csv; charset=utf-8",
    )


@protected.get("/feedback")
async def list_feedback(services: Services = Depends(get_services)):
    """List feedback, newest first, with the average rating."""
    items = await services.knowledge_store.get_feedback()
    return {
        "items": [f.model_dump(mode="json", by_alias=True) for f in items],
        "averageRating": average_rating(items),
    }


@protected.get("/feedback/export")
async def export_feedback(services: Services = Depends(get_services)):
    """Download feedback as CSV."""
    items = await services.knowledge_store.get_feedback()
    return _attachment(
        feedback_to_csv(items),
        f"estock_feedback_{date.today().isoformat()}.csv",
        "text/csv; charset=utf-8",
    )


# ---------------------------------------------------------------------- #
# Company info
# ---------------------------------------------------------------------- #

@protected.get("/company-info", response_model=CompanyInfo)
async def get_company_info(services: Services = Depends(get_services)):
    return await services.knowledge_store.get_company_info()


@protected.put("/company-info", response_model=CompanyInfo)
async def replace_company_info(info: CompanyInfo, services: Services = Depends(get_services)):
    """Replace the contact details shown to the assistant and the site."""
    try:
        await services.knowledge_store.save_company_info(info)
    except SupportError as e:
        raise http_error(e)
    return info


# ---------------------------------------------------------------------- #
# Customers
# ---------------------------------------------------------------------- #

@protected.get("/customers", response_model=List[Customer])
async def list_customers(services: Services = Depends(get_services)):
    return await services.customer_store.list_customers()


@protected.put("/customers/{customer_id}", response_model=Customer)
async def save_customer(customer_id: str, customer: Customer, services: Services = Depends(get_services)):
    """Create or update a customer (e.g. activate / deactivate)."""
    if customer.id != customer_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Customer id mismatch")
    return await services.customer_store.save_customer(customer)


@protected.delete("/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: str, services: Services = Depends(get_services)):
    if not await services.customer_store.delete_customer(customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@protected.post("/customers/bulk")
async def bulk_add_customers(
    entries: List[CustomerCredentials],
    services: Services = Depends(get_services),
):
    """Add many customers at once; existing contract numbers are skipped."""
    customers = [
        Customer(id=time_id(), name=e.name.strip(), contract_number=e.contract_number.strip())
        for e in entries
        if e.name.strip() and e.contract_number.strip()
    ]
    added = await services.customer_store.bulk_add(customers)
    logger.info(f"Bulk customer import: {added} of {len(entries)} added")
    return {"added": added}


router.include_router(protected)
