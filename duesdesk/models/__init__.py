from duesdesk.models.due import (  # noqa: F401
    Due,
    DueAssignmentType,
    DuePaymentStatus,
    DuePenalty,
    DueType,
    RecurringFrequency,
)
from duesdesk.models.payment import (  # noqa: F401
    Payment,
    PaymentApprovalStatus,
    PaymentMethod,
)
from duesdesk.models.pharmacy import Pharmacy, RegistrationStatus  # noqa: F401
from duesdesk.models.sequence import SequenceCounter  # noqa: F401
