"""Read-only catalog of paid plans. Prices are in fen (1/100 CNY)."""

from typing import Literal
from pydantic import BaseModel


class Product(BaseModel):
    id: str
    name: str
    description: str
    features: list[str]
    price_id: str
    price: int
    currency: str = "cny"
    type: Literal["one_time", "subscription"]
    interval: Literal["month", "year"] | None = None


_SUBSCRIPTION_FEATURES = [
    "无限次论文生成",
    "AI润色功能",
    "参考文献管理",
    "论文质量检测",
    "优先客服支持",
]

PRODUCTS: list[Product] = [
    Product(
        id="basic_paper",
        name="基础论文生成",
        description="单次论文生成服务",
        features=["生成1篇论文", "自动生成大纲和全文", "导出Word/PDF格式", "在线编辑功能"],
        price_id="price_basic_paper",
        price=2900,
        type="one_time",
    ),
    Product(
        id="monthly_subscription",
        name="月度会员",
        description="月度订阅，无限次论文生成",
        features=list(_SUBSCRIPTION_FEATURES),
        price_id="price_monthly_subscription",
        price=9900,
        type="subscription",
        interval="month",
    ),
    Product(
        id="yearly_subscription",
        name="年度会员",
        description="年度订阅，享受8折优惠",
        features=[*_SUBSCRIPTION_FEATURES, "年度8折优惠"],
        price_id="price_yearly_subscription",
        # 99 * 12 * 0.8
        price=95040,
        type="subscription",
        interval="year",
    ),
]


def get_product(product_id: str) -> Product | None:
    return next((p for p in PRODUCTS if p.id == product_id), None)
