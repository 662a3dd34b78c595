"""Pydantic schemas for request/response."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# ----- User -----
class UserBase(BaseModel):
    email: EmailStr
    name: Optional[str] = None


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class UserResponse(UserBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MemberInfo(BaseModel):
    id: int
    name: Optional[str] = None
    email: EmailStr
    role: str = "member"


# ----- Group -----
class GroupBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class GroupCreate(GroupBase):
    member_ids: list[int] = []


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class GroupAddMember(BaseModel):
    email: EmailStr
    role: str = "member"


class MemberRoleUpdate(BaseModel):
    role: str


class GroupStats(BaseModel):
    total_members: int
    total_expenses: int
    total_amount: float


class GroupResponse(GroupBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    member_ids: list[int] = []
    members: list[MemberInfo] = []
    your_role: Optional[str] = None
    stats: Optional[GroupStats] = None

    class Config:
        from_attributes = True


# ----- Expense -----
class ExpenseBase(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    participant_ids: list[int]


class ExpenseCreate(ExpenseBase):
    group_id: int
    payer_id: int
    category: Optional[str] = None


class ExpenseUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: int
    group_id: int
    payer_id: int
    amount: float
    description: Optional[str] = None
    participant_ids: list[int]
    share: float
    category: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MyExpenseResponse(ExpenseResponse):
    group_name: Optional[str] = None
    your_share: float


# ----- Category -----
def _category_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Category name must not be blank")
    return v


class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        return _category_name(v)


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        return _category_name(v)


class CategoryResponse(CategoryBase):
    id: int
    is_default: bool = False

    class Config:
        from_attributes = True


class CategoryUsage(BaseModel):
    category_id: int
    name: str
    expense_count: int
    total_amount: float
    average_amount: float


# ----- Balances (who owes whom) -----
class MemberBalance(BaseModel):
    user_id: int
    name: Optional[str] = None
    balance: float


class DebtItem(BaseModel):
    from_user_id: int
    to_user_id: int
    amount: float


class GroupBalances(BaseModel):
    group_id: int
    balances: list[MemberBalance]
    debts: list[DebtItem]
    residual: float = 0.0


# ----- Stats -----
class GroupDashboard(BaseModel):
    group_id: int
    total_expenses: float
    expense_count: int
    member_count: int
    category_totals: dict[str, float]
    member_spending: list[dict]
    your_balance: float
