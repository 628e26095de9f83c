"""
JWT令牌签发与校验，以及管理员身份判断
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging

import jwt
from pydantic import BaseModel

from aiborn.core.config import settings

logger = logging.getLogger(__name__)


class CurrentUser(BaseModel):
    """当前请求的用户身份"""

    user_id: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return is_admin_email(self.email)


def is_admin_email(email: Optional[str]) -> bool:
    """检查邮箱是否在管理员名单中（不区分大小写）"""
    if not email:
        return False

    admin_emails = settings.admin_email_list
    if not admin_emails:
        logger.warning("未配置ADMIN_EMAILS，管理员接口不可用")
        return False

    return email.strip().lower() in admin_emails


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    expires_minutes: Optional[int] = None
) -> str:
    """签发访问令牌"""
    expire_delta = timedelta(minutes=expires_minutes or settings.jwt_access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + expire_delta,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """校验并解析访问令牌，无效或过期返回None"""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.info("访问令牌已过期")
        return None
    except jwt.PyJWTError:
        logger.info("访问令牌无效")
        return None
