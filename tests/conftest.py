import os
import tempfile
from datetime import timedelta
from types import SimpleNamespace
from uuid import uuid4

import pytest

# Settings are read once at import time; point them at a throwaway SQLite file.
_DB_DIR = tempfile.mkdtemp(prefix="voucher-engine-tests-")
os.environ["VOUCHERS_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'vouchers.db')}"
os.environ["VOUCHERS_SCHEDULER_ENABLED"] = "false"
os.environ["VOUCHERS_REDEMPTION_BACKOFF_MS"] = "5"

from fastapi.testclient import TestClient  # noqa: E402

from voucher_engine import models  # noqa: E402,F401
from voucher_engine.core.database import Base, SessionLocal, engine  # noqa: E402
from voucher_engine.main import app  # noqa: E402
from voucher_engine.models import CodeType, DiscountType  # noqa: E402
from voucher_engine.services import voucher_service  # noqa: E402
from voucher_engine.utils.datetime import utcnow  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_voucher():
    """Create and commit a voucher in its own session.

    Returns plain values so callers never hold an open transaction, which would
    keep the SQLite write lock away from request handlers and worker threads.
    """

    def _make(**overrides):
        now = utcnow()
        params = dict(
            provider_id=uuid4(),
            title={"en": "Coffee 20% off"},
            discount_type=DiscountType.PERCENTAGE,
            discount_value=20,
            valid_from=now - timedelta(days=1),
            expires_at=now + timedelta(days=30),
            max_redemptions=10,
            max_redemptions_per_user=1,
        )
        params.update(overrides)
        session = SessionLocal()
        try:
            voucher = voucher_service.create_voucher(session, **params)
            session.commit()
            codes = {code.code_type: code.code for code in voucher.codes}
            return SimpleNamespace(
                voucher_id=voucher.voucher_id,
                provider_id=voucher.provider_id,
                short_code=codes.get(CodeType.SHORT),
                qr_code=codes.get(CodeType.QR),
                static_code=codes.get(CodeType.STATIC),
            )
        finally:
            session.close()

    return _make
