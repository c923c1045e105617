"""
Vellore Mobile Point - Test Configuration and Fixtures
"""
import os
import tempfile
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from faker import Faker

_tmp_dir = tempfile.mkdtemp(prefix="storefront-tests-")

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ['RAZORPAY_KEY_ID'] = 'rzp_test_key'
os.environ['RAZORPAY_KEY_SECRET'] = 'rzp_test_secret'
os.environ['RAZORPAY_WEBHOOK_SECRET'] = 'rzp_webhook_secret'
os.environ['UPLOAD_PATH'] = os.path.join(_tmp_dir, 'uploads')
os.environ['LOG_FILE'] = os.path.join(_tmp_dir, 'logs', 'test.log')
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''
os.environ['ADMIN_EMAIL'] = 'owner@vellore-mobile-point.test'

from storefront.main import app
from storefront.core.database import Base, get_db
from storefront.core.security import get_password_hash, create_access_token
from storefront.models import Category, Product, User, UserRole

fake = Faker()

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

CUSTOMER_PASSWORD = 'Customer@123'
ADMIN_PASSWORD = 'Admin@12345'


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails():
    """Capture outgoing mail instead of talking to SMTP"""
    with patch(
        'storefront.services.email_service.email_service.send_email',
        new_callable=AsyncMock,
        return_value=True,
    ) as mock_send:
        yield mock_send


def _user(role: UserRole, password: str) -> User:
    return User(
        email=fake.unique.email(),
        name=fake.first_name() + ' ' + fake.last_name(),
        phone='9876543210',
        password_hash=get_password_hash(password),
        role=role,
    )


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a customer"""
    user = _user(UserRole.CUSTOMER, CUSTOMER_PASSWORD)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second customer, for ownership checks"""
    user = _user(UserRole.CUSTOMER, CUSTOMER_PASSWORD)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin"""
    user = _user(UserRole.ADMIN, ADMIN_PASSWORD)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token_data = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    }
    token = create_access_token(token_data)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for the customer"""
    return headers_for(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Generate authentication headers for the admin"""
    return headers_for(admin_user)


@pytest.fixture
async def category(db_session: AsyncSession) -> Category:
    category = Category(name='Smartphones', description='Phones and accessories')
    db_session.add(category)
    await db_session.commit()
    await db_session.refresh(category)
    return category


async def make_product(db_session: AsyncSession, **overrides) -> Product:
    values = {
        'name': 'Galaxy M34',
        'description': '6000mAh battery, 120Hz AMOLED display',
        'price': Decimal('499.00'),
        'category': 'Smartphones',
        'stock': 10,
        'warranty_months': 12,
        'images': ['/uploads/galaxy-m34.jpg'],
        'is_active': True,
    }
    values.update(overrides)
    product = Product(**values)
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


@pytest.fixture
async def product(db_session: AsyncSession, category: Category) -> Product:
    return await make_product(db_session)


@pytest.fixture
def shipping_address() -> dict:
    return {
        'name': 'Priya Raman',
        'address': '12 Katpadi Main Road, Gandhi Nagar',
        'city': 'Vellore',
        'state': 'Tamil Nadu',
        'pincode': '632006',
        'phone': '9876543210',
    }


@pytest.fixture
def product_factory(db_session: AsyncSession):
    """Build extra products: await product_factory(name=..., stock=...)"""
    async def _make(**overrides) -> Product:
        return await make_product(db_session, **overrides)
    return _make


@pytest.fixture
def token_headers():
    """Headers for any user: token_headers(user)"""
    return headers_for
