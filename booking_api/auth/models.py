from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from enum import Enum

class UserRole(str, Enum):
    USER = "user"
    COMPANY_ADMIN = "company_admin"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

class TokenData(BaseModel):
    """Claims carried by an access token issued by the auth service"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub: str
    email: Optional[str] = None
    company_id: Optional[str] = Field(None, alias="companyId")
    is_super_admin: bool = Field(False, alias="isSuperAdmin")
    role: UserRole = UserRole.USER
    exp: Optional[int] = None

    @property
    def company_scope(self) -> Optional[str]:
        """Company filter for admin queries; super admins see every company"""
        return None if self.is_super_admin else self.company_id
