# clubhub/models/__init__.py
# Import all models here so SQLAlchemy registers them into Base.metadata.

from clubhub.models.user import User  # noqa: F401
from clubhub.models.event import Event, Registration  # noqa: F401
from clubhub.models.payment import Payment, PaymentReceipt, Receipt  # noqa: F401
from clubhub.models.registration_mirror import RegistrationMirror  # noqa: F401
from clubhub.models.email_config import EmailConfig  # noqa: F401
from clubhub.models.directory import HOD, Committee, CommitteeMember  # noqa: F401
