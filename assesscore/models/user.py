from sqlalchemy import Column, String
from assesscore.database import Base

ROLES = ("employer", "candidate", "admin")


class User(Base):
    """
    Учётная запись, которую ведёт сервис аутентификации.
    Ядро только читает её, чтобы собрать Principal.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False)  # employer | candidate | admin
