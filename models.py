#models.py
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union

UNKNOWN_CATEGORY = "Unknown Category"


def _amount(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Category:
    id: str
    name: str
    slug: str = ""
    description: Optional[str] = None
    category_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            name=data.get("name") or "",
            slug=data.get("slug") or "",
            description=data.get("description"),
            category_id=data.get("categoryId"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class Order:
    id: str
    order_id: str = ""
    customer: str = ""
    category: Union[str, Category, None] = None
    date: str = ""
    source: str = ""
    geo: str = ""
    amount: float = 0.0
    viewed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Order":
        category = data.get("category")
        if isinstance(category, dict):
            category = Category.from_api(category)
        elif category is not None:
            category = str(category)

        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            order_id=str(data.get("orderId") or ""),
            customer=data.get("customer") or "",
            category=category,
            date=data.get("date") or "",
            source=data.get("source") or "",
            geo=data.get("geo") or "",
            amount=_amount(data.get("amount")),
            viewed_at=data.get("viewedAt"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    @property
    def category_ref(self) -> str:
        # id used to preselect the category <select> on the edit form
        if isinstance(self.category, Category):
            return self.category.id
        return self.category or ""


@dataclass
class User:
    id: str
    email: str
    role: str = "user"
    name: str = ""
    lastname: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        full = f"{self.name} {self.lastname}".strip()
        return full or self.email

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data.get("id") or data.get("_id") or data.get("userId") or ""),
            email=data.get("email") or "",
            role=data.get("role") or "user",
            name=data.get("name") or "",
            lastname=data.get("lastname") or "",
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_session(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "name": self.name,
            "lastname": self.lastname,
        }


@dataclass
class AuthResult:
    token: str
    user: User


# ---------- Order list retrieval results ----------
@dataclass(frozen=True)
class ListSuccess:
    records: List[Order] = field(default_factory=list)
    total: int = 0

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ListFailure:
    reason: str

    @property
    def ok(self) -> bool:
        return False


ListResult = Union[ListSuccess, ListFailure]
