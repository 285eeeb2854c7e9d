"""
用户与会话数据模型
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text

from app.core.database import Base, UTCDateTime, utc_now


class User(Base):
    """用户表"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True)
    password = Column(Text, nullable=False, comment="scrypt哈希，格式 hash.salt")
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    def to_dict(self):
        # 不暴露密码哈希
        return {
            "id": self.id,
            "username": self.username,
        }


class UserSession(Base):
    """登录会话表"""

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(128), nullable=False, unique=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    expires_at = Column(UTCDateTime, nullable=False)

    __table_args__ = (Index("ix_user_sessions_user_id", "user_id"),)
