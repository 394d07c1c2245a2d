import pytest
from argon2.exceptions import VerifyMismatchError

from app.core.errors import NotFoundError, ValidationError
from app.models.otp import OtpStatus
from app.services.password import hash_password, ph
from app.services.password_reset import PasswordResetService


@pytest.fixture
def reset_service(user_store, otp_store, gateway) -> PasswordResetService:
    return PasswordResetService(user_store, otp_store, gateway)


def test_password_hashing_roundtrip():
    hashed = hash_password("s3cret")

    assert hashed != "s3cret"
    assert hashed.startswith("$argon2")
    assert ph.verify(hashed, "s3cret")
    with pytest.raises(VerifyMismatchError):
        ph.verify(hashed, "wrong")


@pytest.mark.asyncio
async def test_reset_succeeds_once(reset_service, user_store, otp_store, add_user, otp_row):
    await add_user(7, "a@b.com")
    record = await otp_store.create("a@b.com", "482913")

    await reset_service.reset(7, "a@b.com", "482913", "n3w-pass")

    user = await user_store.find_by_id(7)
    assert ph.verify(user.password, "n3w-pass")
    assert (await otp_row(record.id)).otp_status == OtpStatus.VERIFIED.value

    with pytest.raises(ValidationError, match="invalid or has expired"):
        await reset_service.reset(7, "a@b.com", "482913", "another")
    assert ph.verify((await user_store.find_by_id(7)).password, "n3w-pass")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,otp,password",
    [
        (None, "482913", "pw"),
        ("a@b.com", None, "pw"),
        ("a@b.com", "482913", None),
        ("", "482913", "pw"),
    ],
)
async def test_missing_fields_stop_before_gateway(reset_service, gateway, email, otp, password):
    with pytest.raises(ValidationError, match="required"):
        await reset_service.reset(7, email, otp, password)

    assert gateway.checked == []


@pytest.mark.asyncio
async def test_bad_format_leaves_otp_untouched(reset_service, gateway, otp_store, add_user, otp_row):
    await add_user(7, "a@b.com")
    record = await otp_store.create("a@b.com", "482913")
    gateway.valid = False

    with pytest.raises(ValidationError, match="Invalid OTP format"):
        await reset_service.reset(7, "a@b.com", "482913", "pw")

    assert gateway.checked == ["482913"]
    assert (await otp_row(record.id)).otp_status == OtpStatus.CREATED.value


@pytest.mark.asyncio
async def test_unknown_user_is_not_found(reset_service, otp_store, add_user, otp_row):
    await add_user(7, "a@b.com")
    record = await otp_store.create("a@b.com", "482913")

    with pytest.raises(NotFoundError):
        await reset_service.reset(7, "other@b.com", "482913", "pw")

    assert (await otp_row(record.id)).otp_status == OtpStatus.CREATED.value


@pytest.mark.asyncio
async def test_wrong_otp_keeps_old_password(reset_service, user_store, otp_store, add_user):
    await add_user(7, "a@b.com", password="old-hash")
    await otp_store.create("a@b.com", "482913")

    with pytest.raises(ValidationError):
        await reset_service.reset(7, "a@b.com", "123456", "pw")

    assert (await user_store.find_by_id(7)).password == "old-hash"


@pytest.mark.asyncio
async def test_expired_otp_is_rejected(reset_service, user_store, otp_store, add_user, backdate_otp, otp_row):
    await add_user(7, "a@b.com", password="old-hash")
    record = await otp_store.create("a@b.com", "482913")
    await backdate_otp(record.id, 6)

    with pytest.raises(ValidationError, match="invalid or has expired"):
        await reset_service.reset(7, "a@b.com", "482913", "pw")

    assert (await otp_row(record.id)).otp_status == OtpStatus.EXPIRED.value
    assert (await user_store.find_by_id(7)).password == "old-hash"


@pytest.mark.asyncio
async def test_failed_password_write_is_reported(reset_service, user_store, otp_store, add_user, monkeypatch):
    await add_user(7, "a@b.com")
    await otp_store.create("a@b.com", "482913")

    async def no_update(user_id, password_hash):
        return False

    monkeypatch.setattr(user_store, "update_password", no_update)

    with pytest.raises(ValidationError, match="Failed to update password"):
        await reset_service.reset(7, "a@b.com", "482913", "pw")
