from sqlalchemy import Column, Integer, String
from numbershop.data.database import Base

class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    # token sesji wydawany przez zewnetrzny identity provider
    api_token = Column(String, nullable=True, unique=True, index=True)
