"""Dues services package.

    from duesdesk.services import dues as dues_service
    dues_service.assignments.assign_individual(db, pharmacy_id, payload)
    dues_service.reviews.approve(db, payment_id, approved_by)
"""

from duesdesk.services.dues.assignments import DueAssignments
from duesdesk.services.dues.due_types import DueTypes
from duesdesk.services.dues.payments import PaymentSubmissions
from duesdesk.services.dues.records import Dues
from duesdesk.services.dues.reporting import DueReporting
from duesdesk.services.dues.reviews import PaymentReviews

# Singleton instances for service access
due_types = DueTypes()
dues = Dues()
assignments = DueAssignments()
payments = PaymentSubmissions()
reviews = PaymentReviews()
reporting = DueReporting()
