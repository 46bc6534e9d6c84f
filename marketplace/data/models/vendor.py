from sqlalchemy import Column, Integer, ForeignKey, String, Numeric

from marketplace.data.database import Base


class VendorModel(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    store_name = Column(String, nullable=False)

    #procent, NULL = domyslna prowizja platformy
    commission_rate = Column(Numeric(5, 2), nullable=True)

    #naliczone do wyplaty, batchowanie wyplat poza zakresem
    pending_balance = Column(Numeric(12, 2), nullable=False, default=0)
