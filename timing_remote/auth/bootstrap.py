"""Bootstrap admin account from environment variables."""

from timing_remote.auth.password import hash_password
from timing_remote.config import Settings
from timing_remote.core.exceptions import ConfigurationError
from timing_remote.core.logging import get_logger
from timing_remote.db.protocols import AccountStore
from timing_remote.db.types import Account, AccountType

logger = get_logger(__name__)


def ensure_bootstrap_admin(store: AccountStore, settings: Settings) -> Account | None:
    """Create an admin account when no live account exists.

    Returns the new account, or None when accounts already exist. Missing
    or malformed credentials are a startup error since nobody could log in.
    """
    if store.count_accounts() > 0:
        return None

    name = (settings.bootstrap_admin_name or "").strip()
    email = (settings.bootstrap_admin_email or "").strip()
    password = settings.bootstrap_admin_password or ""

    if not name or not email or not password:
        logger.error(
            "No accounts exist and bootstrap admin credentials are incomplete",
            data={
                "name_set": bool(name),
                "email_set": bool(email),
                "password_set": bool(password),
            },
        )
        raise ConfigurationError(
            "Admin account doesn't exist and bootstrap credentials have not been supplied"
        )
    if "@" not in email:
        raise ConfigurationError("BOOTSTRAP_ADMIN_EMAIL is not a valid email address")

    admin = Account(
        name=name,
        email=email,
        password=hash_password(password),
        type=AccountType.ADMIN,
    )
    store.add_account(admin)
    logger.warning(
        "Bootstrap admin created",
        data={"account_id": admin.id, "email": email},
    )
    return admin
