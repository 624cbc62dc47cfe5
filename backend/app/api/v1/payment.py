from fastapi import APIRouter, HTTPException, status
from app.schemas import ProductResponse
from app.services.products import PRODUCTS, get_product

router = APIRouter()


@router.get("/products", response_model=list[ProductResponse])
async def list_products():
    return PRODUCTS


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product_detail(product_id: str):
    product = get_product(product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product
