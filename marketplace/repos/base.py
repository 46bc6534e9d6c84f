# marketplace/repos/base.py
from sqlalchemy.orm import Session


class BaseRepo:
    def __init__(self, db: Session):
        self.db = db

    def flush(self):
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def conditional_update(self, stmt) -> int:
        """
        UPDATE ... WHERE <warunek na aktualny stan>, zwraca rowcount.
        0 = warunek nie spelniony (ktos byl szybszy albo duplikat).
        """
        #pending zmiany musza trafic do bazy przed update
        self.db.flush()
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        #obiekty w sesji moga byc nieaktualne po update
        self.db.expire_all()
        return result.rowcount
