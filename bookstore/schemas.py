"""
Database Schemas

MongoDB collection schemas and request bodies as Pydantic models.
Stored models map to collections by lowercase name:
- User -> "user" collection
- Book -> "book" collection
- Category -> "category" collection
- Order -> "order" collection
- Review -> "review" collection
"""

from datetime import datetime
from typing import Annotated, Optional, List, Literal, Dict, Any

from pydantic import BaseModel, Field, EmailStr, StringConstraints, conlist

Role = Literal["user", "admin"]
UserStatus = Literal["active", "suspended"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["credit_card", "debit_card", "upi", "net_banking", "cod"]
PaymentStatus = Literal["pending", "completed", "failed"]
BookFormat = Literal["Hardcover", "Paperback", "eBook", "Audiobook"]
Currency = Literal["INR", "USD", "EUR", "GBP"]
Availability = Literal["In Stock", "Out of Stock", "Pre-order", "Coming Soon"]
AgeGroup = Literal["Children (0-12)", "Young Adult (13-17)", "Adult (18+)", "All Ages"]

CategoryName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
CategoryDescription = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]


# ------------------------- Identity ---------------------------
class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class RefreshSession(BaseModel):
    jti: str = Field(..., description="Token identifier")
    expires_at: datetime


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="Hashed password")
    role: Role = Field("user", description="Role for access control")
    status: UserStatus = Field("active", description="Suspended users cannot sign in")
    address: Optional[Address] = None
    refresh_sessions: List[RefreshSession] = Field(default_factory=list)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[Address] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class RoleUpdate(BaseModel):
    role: Role


# ------------------------- Catalog ----------------------------
class BookImage(BaseModel):
    url: Optional[str] = None
    alt: Optional[str] = None


class Series(BaseModel):
    name: str
    number: Optional[int] = Field(None, ge=1)


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    authors: conlist(str, min_length=1)
    description: str = Field(..., min_length=1, max_length=2000)
    isbn: Optional[str] = None
    isbn13: Optional[str] = None
    edition: Optional[str] = None
    format: BookFormat = "Paperback"
    categories: conlist(str, min_length=1)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    currency: Currency = "INR"
    stock: int = Field(..., ge=0)
    images: List[BookImage] = Field(default_factory=list)
    published_date: Optional[datetime] = None
    publisher: Optional[str] = None
    language: str = "English"
    age_group: Optional[AgeGroup] = None
    tags: List[str] = Field(default_factory=list)
    series: Optional[Series] = None
    original_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    discount: float = Field(0, ge=0, le=100, allow_inf_nan=False)
    availability: Availability = "In Stock"
    featured: bool = False
    bestseller: bool = False
    pages: Optional[int] = Field(None, ge=1)


class Book(BookCreate):
    rating_avg: float = Field(0, ge=0, le=5, allow_inf_nan=False)
    rating_count: int = Field(0, ge=0)


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    authors: Optional[conlist(str, min_length=1)] = None
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    isbn: Optional[str] = None
    isbn13: Optional[str] = None
    edition: Optional[str] = None
    format: Optional[BookFormat] = None
    categories: Optional[conlist(str, min_length=1)] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    currency: Optional[Currency] = None
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[BookImage]] = None
    published_date: Optional[datetime] = None
    publisher: Optional[str] = None
    language: Optional[str] = None
    age_group: Optional[AgeGroup] = None
    tags: Optional[List[str]] = None
    series: Optional[Series] = None
    original_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    discount: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)
    availability: Optional[Availability] = None
    featured: Optional[bool] = None
    bestseller: Optional[bool] = None
    pages: Optional[int] = Field(None, ge=1)


class Category(BaseModel):
    name: CategoryName
    description: CategoryDescription = ""


class CategoryUpdate(BaseModel):
    name: Optional[CategoryName] = None
    description: Optional[CategoryDescription] = None


# ------------------------- Orders -----------------------------
class OrderItemRequest(BaseModel):
    book_id: str = Field(..., min_length=1, description="Referenced Book _id as string")
    quantity: int = Field(..., ge=1, description="Quantity ordered")


class OrderCreate(BaseModel):
    items: conlist(OrderItemRequest, min_length=1)
    payment_method: PaymentMethod
    shipping_address: Address


class OrderItem(BaseModel):
    book_id: str = Field(..., description="Referenced Book _id as string")
    title: str = Field(..., description="Snapshot of book title")
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Unit price at time of order")
    quantity: int = Field(..., ge=1, description="Quantity ordered")


class PaymentInfo(BaseModel):
    method: PaymentMethod
    status: PaymentStatus = "pending"
    transaction_id: Optional[str] = None


class Order(BaseModel):
    user_id: str = Field(..., description="Owning user id")
    items: conlist(OrderItem, min_length=1) = Field(..., description="Ordered items")
    subtotal: float = Field(..., ge=0, allow_inf_nan=False)
    tax: float = Field(..., ge=0, allow_inf_nan=False)
    shipping: float = Field(..., ge=0, allow_inf_nan=False)
    total: float = Field(..., ge=0, allow_inf_nan=False, description="Computed total amount")
    status: OrderStatus = Field("pending", description="Order status")
    payment_info: PaymentInfo
    shipping_address: Address


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# ------------------------- Reviews ----------------------------
class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    body: str = Field(..., min_length=1, max_length=1000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    body: Optional[str] = Field(None, min_length=1, max_length=1000)


class Review(BaseModel):
    book_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    title: str
    body: str


# ------------------------- Bulk import ------------------------
class BulkImportPayload(BaseModel):
    data: List[Dict[str, Any]]


class ImportResult(BaseModel):
    imported: int
    total: int
    errors: Optional[List[str]] = None
    message: str
