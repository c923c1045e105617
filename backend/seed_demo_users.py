"""
Seed Demo Users

Creates the accounts used for local testing of the storefront:
- admin@vellore-mobile-point.in / Admin@123 -> Admin (dashboard, orders, memberships)
- priya@example.com / Customer@123 -> Customer
- arjun@example.com / Customer@123 -> Customer

Run with: python seed_demo_users.py
"""
import asyncio

from sqlalchemy import select

from storefront.core.database import AsyncSessionLocal, init_db
from storefront.core.security import get_password_hash
from storefront.models.user import User, UserRole


DEMO_USERS = [
    {
        "email": "admin@vellore-mobile-point.in",
        "name": "Store Admin",
        "phone": "9876543210",
        "role": UserRole.ADMIN,
        "password": "Admin@123",
    },
    {
        "email": "priya@example.com",
        "name": "Priya Raman",
        "phone": "9840012345",
        "role": UserRole.CUSTOMER,
        "password": "Customer@123",
    },
    {
        "email": "arjun@example.com",
        "name": "Arjun Kumar",
        "phone": "9003098765",
        "role": UserRole.CUSTOMER,
        "password": "Customer@123",
    },
]


async def seed_demo_users():
    """Create or update demo users"""
    print("=" * 50)
    print("Seeding Demo Users...")
    print("=" * 50)

    await init_db()

    async with AsyncSessionLocal() as db:
        created_count = 0
        updated_count = 0

        for user_data in DEMO_USERS:
            email = user_data["email"]
            password_hash = get_password_hash(user_data["password"])

            existing_user = await db.scalar(select(User).where(User.email == email))

            if existing_user:
                existing_user.password_hash = password_hash
                existing_user.name = user_data["name"]
                existing_user.phone = user_data["phone"]
                existing_user.role = user_data["role"]
                updated_count += 1
                print(f"  Updated: {email} ({user_data['role'].value})")
            else:
                db.add(User(
                    email=email,
                    name=user_data["name"],
                    phone=user_data["phone"],
                    role=user_data["role"],
                    password_hash=password_hash,
                ))
                created_count += 1
                print(f"  Created: {email} ({user_data['role'].value})")

        await db.commit()

    print("=" * 50)
    print(f"Done! Created: {created_count}, Updated: {updated_count}")
    print("=" * 50)


def main():
    asyncio.run(seed_demo_users())


if __name__ == "__main__":
    main()
