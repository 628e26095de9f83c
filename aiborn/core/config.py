from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from enum import Enum


class Environment(str, Enum):

    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # 应用基础配置
    app_name: str = "AI-Born VIP Service"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = True
    site_url: str = "https://ai-born.org"

    # 数据库配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "aiborn_db"
    db_user: str = "aiborn_user"
    db_password: str = "aiborn_password"

    # Redis配置 (统计缓存 + 限流计数)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # 认证配置
    jwt_secret_key: str = "aiborn-dev-jwt-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24
    admin_emails: str = ""  # 逗号分隔

    # 限流配置 (次数, 窗口秒数)
    code_validate_rate_limit: int = 10
    code_validate_rate_window: int = 60
    code_redeem_rate_limit: int = 10
    code_redeem_rate_window: int = 3600
    admin_rate_limit: int = 100
    admin_rate_window: int = 60
    org_member_rate_limit: int = 20
    org_member_rate_window: int = 60

    # VIP码配置
    code_generation_max_count: int = 10000
    code_stats_cache_ttl: int = 300
    excerpt_download_path: str = "/api/excerpt/download"

    # 日志配置
    log_level: str = "INFO"

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def admin_email_list(self) -> List[str]:
        """管理员邮箱列表（小写）"""
        return [
            email.strip().lower()
            for email in self.admin_emails.split(",")
            if email.strip()
        ]


# 全局配置实例
settings = Settings()
