"""Category browsing and admin creation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_session, require_admin
from ..errors import ConflictError, NotFoundError
from ..models import Category
from ..repository import CatalogRepository
from ..schemas import CategoryCreate, CategoryDetailResponse, CategoryResponse

router = APIRouter(prefix="/categories", tags=["categories"])


def _serialize_category(category: Category) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "createdAt": category.created_at,
    }


@router.get("", response_model=list[CategoryResponse])
async def list_categories(session: AsyncSession = Depends(get_session)) -> list[CategoryResponse]:
    categories = await CatalogRepository(session).list_categories()
    return [CategoryResponse.model_validate(_serialize_category(category)) for category in categories]


@router.get("/{category_id}", response_model=CategoryDetailResponse)
async def get_category(
    category_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> CategoryDetailResponse:
    repository = CatalogRepository(session)
    category = await repository.get_category(category_id)
    if category is None:
        raise NotFoundError("Category not found", reason="category_not_found")
    payload = _serialize_category(category)
    payload["productCount"] = await repository.count_products_in_category(category.id)
    return CategoryDetailResponse.model_validate(payload)


@router.post(
    "/admin/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_category(payload: CategoryCreate, session: AsyncSession = Depends(get_session)) -> CategoryResponse:
    repository = CatalogRepository(session)
    if await repository.get_category_by_slug(payload.slug) is not None:
        raise ConflictError("Category slug already exists", reason="slug_taken")
    category = await repository.create_category(
        name=payload.name, slug=payload.slug, description=payload.description
    )
    return CategoryResponse.model_validate(_serialize_category(category))
