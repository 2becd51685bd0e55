"""
Tests for profile, password and freeze/delete operations.

Run with: pytest tests/test_user_service.py -v
"""

from unittest.mock import patch

import pytest
import pytest_asyncio

from app.core.config import Settings
from app.core.exceptions import BadRequestException, ForbiddenException, UnauthorizedException
from app.models.user import UserRole
from app.services.auth_service import RECENTLY_USED_MESSAGE, SAME_AS_CURRENT_MESSAGE, AccountService
from app.services.storage_service import StorageService
from app.services.user_service import UserService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def make_user(db, sink, email, role=UserRole.USER, password="Secret1"):
    accounts = AccountService(db, sink)
    user, _ = await accounts.signup(
        first_name="Test",
        last_name="User",
        email=email,
        password=password,
        phone="+201000000000",
        role=role,
    )
    await accounts.confirm_email(email, otp=sink.last.otp_code)
    return user


@pytest.fixture
def users(db, tmp_path):
    return UserService(db, storage=StorageService(Settings(upload_dir=str(tmp_path))))


@pytest_asyncio.fixture
async def member(db, sink):
    return await make_user(db, sink, "member@x.com")


@pytest_asyncio.fixture
async def other(db, sink):
    return await make_user(db, sink, "other@x.com")


@pytest_asyncio.fixture
async def admin(db, sink):
    return await make_user(db, sink, "admin@x.com", role=UserRole.ADMIN)


class TestProfile:
    def test_phone_is_decrypted(self, users, member):
        profile = users.get_profile(member)

        assert profile["phone"] == "+201000000000"
        assert profile["email"] == "member@x.com"
        assert "password" not in profile
        assert "password_history" not in profile

    @pytest.mark.asyncio
    async def test_profile_image(self, users, member, tmp_path):
        with patch("app.services.storage_service._sniff_mime", return_value="image/png"):
            await users.update_profile_image(member, (PNG, "image/png", "me.png"))

        assert member.profile_image.startswith(f"uploads/profile/{member.id}/")
        assert member.profile_image.endswith(".png")
        stored = tmp_path / member.profile_image[len("uploads/"):]
        assert stored.read_bytes() == PNG

    @pytest.mark.asyncio
    async def test_cover_images_limit(self, users, member):
        uploads = [(PNG, "image/png", f"{i}.png") for i in range(6)]
        with pytest.raises(BadRequestException):
            await users.update_cover_images(member, uploads)

    @pytest.mark.asyncio
    async def test_cover_images_replace_list(self, users, member):
        uploads = [(PNG, "image/png", f"{i}.png") for i in range(3)]
        with patch("app.services.storage_service._sniff_mime", return_value="image/png"):
            await users.update_cover_images(member, uploads)

        assert len(member.cover_images) == 3
        assert all(path.startswith(f"uploads/cover/{member.id}/") for path in member.cover_images)

    @pytest.mark.asyncio
    async def test_cover_images_all_or_nothing(self, users, member, tmp_path):
        uploads = [(PNG, "image/png", "ok.png"), (b"%PDF-1.4", "application/pdf", "doc.pdf")]
        with patch("app.services.storage_service._sniff_mime", return_value="image/png"):
            with pytest.raises(BadRequestException):
                await users.update_cover_images(member, uploads)

        assert member.cover_images == []
        assert not (tmp_path / "cover").exists()


class TestUpdatePassword:
    """Tests for authenticated password change."""

    @pytest.mark.asyncio
    async def test_wrong_old_password(self, users, member):
        with pytest.raises(BadRequestException) as exc_info:
            await users.update_password(member, "Wrong1", "NewSecret1")
        assert exc_info.value.message == "Invalid old password"

    @pytest.mark.asyncio
    async def test_same_as_current(self, users, member):
        with pytest.raises(BadRequestException) as exc_info:
            await users.update_password(member, "Secret1", "Secret1")
        assert exc_info.value.message == SAME_AS_CURRENT_MESSAGE

    @pytest.mark.asyncio
    async def test_change_then_reuse_rejected(self, users, member):
        await users.update_password(member, "Secret1", "NewSecret1")

        assert await users.hasher.verify("NewSecret1", member.password)
        assert await users.hasher.verify("Secret1", member.password_history[0])

        with pytest.raises(BadRequestException) as exc_info:
            await users.update_password(member, "NewSecret1", "Secret1")
        assert exc_info.value.message == RECENTLY_USED_MESSAGE


class TestFreeze:
    """Tests for freeze, unfreeze and delete rules."""

    @pytest.mark.asyncio
    async def test_self_freeze(self, users, member):
        frozen = await users.freeze_account(member)

        assert frozen is member
        assert member.is_frozen
        assert member.frozen_by == member.id

        with pytest.raises(BadRequestException):
            await users.freeze_account(member)

    @pytest.mark.asyncio
    async def test_self_freeze_by_own_id(self, users, member):
        await users.freeze_account(member, member.id)
        assert member.is_frozen

    @pytest.mark.asyncio
    async def test_non_admin_cannot_freeze_others(self, users, member, other):
        with pytest.raises(ForbiddenException):
            await users.freeze_account(member, other.id)
        assert not other.is_frozen

    @pytest.mark.asyncio
    async def test_admin_freezes_and_unfreezes(self, users, admin, member):
        await users.freeze_account(admin, member.id)
        assert member.frozen_by == admin.id

        await users.unfreeze_account(admin, member.id)
        assert not member.is_frozen
        assert member.unfrozen_by == admin.id
        assert member.unfrozen_at is not None

        with pytest.raises(BadRequestException):
            await users.unfreeze_account(admin, member.id)

    @pytest.mark.asyncio
    async def test_admin_freeze_missing_target(self, users, admin):
        with pytest.raises(UnauthorizedException):
            await users.freeze_account(admin, "00000000-0000-0000-0000-000000000000")

    @pytest.mark.asyncio
    async def test_unfreeze_requires_admin(self, users, member, other):
        await users.freeze_account(other)
        with pytest.raises(ForbiddenException):
            await users.unfreeze_account(member, other.id)

    @pytest.mark.asyncio
    async def test_delete(self, users, admin, member):
        member_id = member.id
        await users.delete_account(admin, member_id)
        assert await users._get(member_id) is None

    @pytest.mark.asyncio
    async def test_delete_frozen_rejected(self, users, admin, member):
        await users.freeze_account(admin, member.id)
        with pytest.raises(UnauthorizedException):
            await users.delete_account(admin, member.id)

    @pytest.mark.asyncio
    async def test_delete_requires_admin(self, users, member, other):
        with pytest.raises(ForbiddenException):
            await users.delete_account(member, other.id)

    @pytest.mark.asyncio
    async def test_version_bumps_on_freeze(self, users, member):
        version = member.version
        await users.freeze_account(member)
        assert member.version == version + 1
