# scripts/grant_admin.py
import sys, asyncio
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


from matecloud.db.session import AsyncSessionLocal
from matecloud.modules.profiles.crud import get_profile_by_email_or_none
from matecloud.modules.profiles.models import Admin, Profile


async def main():
    ref = input("User id (UUID do Supabase) ou email: ").strip()
    if not ref:
        print("Nada informado")
        return

    async with AsyncSessionLocal() as db:
        if "@" in ref:
            profile = await get_profile_by_email_or_none(db, ref)
        else:
            profile = await db.get(Profile, ref)
        if not profile:
            print("Perfil não encontrado (o usuário precisa ter feito login ao menos uma vez)")
            return

        if await db.get(Admin, profile.id):
            print("Usuário já é admin")
            return

        db.add(Admin(user_id=profile.id))
        await db.commit()
        print(f"Admin concedido: {profile.id} ({profile.email or profile.username})")

if __name__ == "__main__":
    asyncio.run(main())
