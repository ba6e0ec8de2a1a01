"""Product catalog routes, including admin management and image uploads."""

from __future__ import annotations

import logging
import math
import mimetypes
import secrets
import time
from decimal import Decimal
from pathlib import PurePosixPath
from typing import Literal

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.common import StorefrontSettings

from ..dependencies import get_blob_storage, get_session, get_settings, require_admin
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import Product
from ..money import from_cents, to_cents
from ..repository import CatalogRepository
from ..schemas import (
    MessageResponse,
    ProductCreate,
    ProductImagesResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from ..storage import BlobStorage

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


def _serialize_image(image) -> dict[str, object]:
    return {
        "id": image.id,
        "url": image.url,
        "isPrimary": image.is_primary,
        "sortOrder": image.sort_order,
    }


def _serialize_product(product: Product) -> dict[str, object]:
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "description": product.description,
        "price": from_cents(product.price_cents),
        "stockQuantity": product.stock_quantity,
        "categoryId": product.category_id,
        "category": (
            {"id": product.category.id, "name": product.category.name, "slug": product.category.slug}
            if product.category is not None
            else None
        ),
        "isActive": product.is_active,
        "images": [_serialize_image(image) for image in product.images],
        "createdAt": product.created_at,
        "updatedAt": product.updated_at,
    }


async def _product_page(
    repository: CatalogRepository,
    *,
    page: int,
    limit: int,
    **filters,
) -> ProductListResponse:
    products, total = await repository.list_products(limit=limit, offset=(page - 1) * limit, **filters)
    return ProductListResponse.model_validate(
        {
            "products": [_serialize_product(product) for product in products],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
        }
    )


async def _require_product(repository: CatalogRepository, product_id: int) -> Product:
    product = await repository.get_product(product_id, active_only=False)
    if product is None:
        raise NotFoundError("Product not found", reason="product_not_found")
    return product


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    category_id: int | None = Query(default=None, alias="categoryId", ge=1),
    min_price: Decimal | None = Query(default=None, alias="minPrice", ge=0),
    max_price: Decimal | None = Query(default=None, alias="maxPrice", ge=0),
    search: str | None = Query(default=None, max_length=255),
    sort_by: Literal["price", "createdAt"] = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    session: AsyncSession = Depends(get_session),
) -> ProductListResponse:
    return await _product_page(
        CatalogRepository(session),
        page=page,
        limit=limit,
        category_id=category_id,
        min_price_cents=to_cents(min_price) if min_price is not None else None,
        max_price_cents=to_cents(max_price) if max_price is not None else None,
        search=search.strip() if search else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/category/{category_id}", response_model=ProductListResponse)
async def list_products_in_category(
    category_id: int = Path(..., ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> ProductListResponse:
    repository = CatalogRepository(session)
    if await repository.get_category(category_id) is None:
        raise NotFoundError("Category not found", reason="category_not_found")
    return await _product_page(repository, page=page, limit=limit, category_id=category_id)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    product = await CatalogRepository(session).get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found", reason="product_not_found")
    return ProductResponse.model_validate(_serialize_product(product))


@router.post(
    "/admin/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_product(payload: ProductCreate, session: AsyncSession = Depends(get_session)) -> ProductResponse:
    repository = CatalogRepository(session)
    if await repository.get_product_by_slug(payload.slug) is not None:
        raise ConflictError("Product slug already exists", reason="slug_taken")
    if payload.category_id is not None and await repository.get_category(payload.category_id) is None:
        raise NotFoundError("Category not found", reason="category_not_found")
    product = await repository.create_product(
        name=payload.name,
        slug=payload.slug,
        description=payload.description,
        price_cents=to_cents(payload.price),
        stock_quantity=payload.stock_quantity,
        category_id=payload.category_id,
        is_active=payload.is_active,
    )
    _LOGGER.info("Created product %s (%s)", product.id, product.slug)
    return ProductResponse.model_validate(_serialize_product(product))


@router.put("/admin/products/{product_id}", response_model=ProductResponse, dependencies=[Depends(require_admin)])
async def update_product(
    payload: ProductUpdate,
    product_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ProductResponse:
    repository = CatalogRepository(session)
    product = await _require_product(repository, product_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise BadRequestError("No fields to update", reason="empty_update")

    if "slug" in changes and changes["slug"] != product.slug:
        if await repository.get_product_by_slug(changes["slug"]) is not None:
            raise ConflictError("Product slug already exists", reason="slug_taken")
    if changes.get("category_id") is not None and await repository.get_category(changes["category_id"]) is None:
        raise NotFoundError("Category not found", reason="category_not_found")
    if "price" in changes:
        price = changes.pop("price")
        if price is None:
            raise BadRequestError("price cannot be null", reason="invalid_price")
        changes["price_cents"] = to_cents(price)
    for required in ("name", "slug", "stock_quantity", "is_active"):
        if required in changes and changes[required] is None:
            raise BadRequestError(f"{required} cannot be null", reason="invalid_field")

    product = await repository.update_product(product, **changes)
    return ProductResponse.model_validate(_serialize_product(product))


@router.delete(
    "/admin/products/{product_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_product(
    product_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_blob_storage),
    settings: StorefrontSettings = Depends(get_settings),
) -> MessageResponse:
    repository = CatalogRepository(session)
    product = await _require_product(repository, product_id)
    blob_paths = [image.storage_path for image in product.images if image.storage_path]
    await repository.delete_product(product)
    for path in blob_paths:
        await storage.delete(settings.product_image_bucket, path)
    return MessageResponse(message="Product deleted successfully")


def _image_path(product_id: int, upload: UploadFile) -> str:
    suffix = PurePosixPath(upload.filename or "").suffix.lstrip(".").lower()
    if not suffix and upload.content_type:
        guessed = mimetypes.guess_extension(upload.content_type) or ""
        suffix = guessed.lstrip(".")
    return f"products/{product_id}/{int(time.time() * 1000)}-{secrets.token_hex(4)}.{suffix or 'bin'}"


@router.post(
    "/admin/products/{product_id}/images",
    response_model=ProductImagesResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def upload_product_images(
    product_id: int = Path(..., ge=1),
    images: list[UploadFile] = File(...),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_blob_storage),
    settings: StorefrontSettings = Depends(get_settings),
) -> ProductImagesResponse:
    repository = CatalogRepository(session)
    product = await _require_product(repository, product_id)
    if not images:
        raise BadRequestError("No images provided", reason="no_images")

    has_images = bool(product.images)
    next_order = max((image.sort_order for image in product.images), default=-1) + 1
    created = []
    uploaded: list[str] = []
    try:
        for index, upload in enumerate(images):
            path = _image_path(product.id, upload)
            data = await upload.read()
            url = await storage.upload(settings.product_image_bucket, path, data, upload.content_type)
            uploaded.append(path)
            image = await repository.add_image(
                product,
                url=url,
                storage_path=path,
                is_primary=not has_images and index == 0,
                sort_order=next_order + index,
            )
            created.append(image)
        await session.flush()
    except Exception:
        _LOGGER.warning("Image upload for product %s failed, removing %d stored blobs", product.id, len(uploaded))
        for path in uploaded:
            await storage.delete(settings.product_image_bucket, path)
        raise
    _LOGGER.info("Stored %d images for product %s", len(created), product.id)
    return ProductImagesResponse.model_validate({"images": [_serialize_image(image) for image in created]})


@router.delete(
    "/admin/products/{product_id}/images/{image_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_product_image(
    product_id: int = Path(..., ge=1),
    image_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_blob_storage),
    settings: StorefrontSettings = Depends(get_settings),
) -> MessageResponse:
    repository = CatalogRepository(session)
    product = await _require_product(repository, product_id)
    image = next((entry for entry in product.images if entry.id == image_id), None)
    if image is None:
        raise NotFoundError("Image not found", reason="image_not_found")
    storage_path = image.storage_path
    await repository.delete_image(product, image)
    if storage_path:
        await storage.delete(settings.product_image_bucket, storage_path)
    return MessageResponse(message="Image deleted successfully")
