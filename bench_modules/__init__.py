"""
Lifecycle modules.

One sub-package per component of the engagement lifecycle:

    engagement_requests  request negotiation, offers and conversation
    finalization         matchmaking fee checkout and payment confirmation
    contracts            dual-agreement contracts
    timesheets           weekly hours and client approval
    invoicing            invoices from approved timesheets
    ratings              counterparty ratings after completion

Each sub-package holds ``models.py`` (frozen DTOs and enums), ``orm.py``
(SQLAlchemy models), ``workflows.py`` (transition tables) and
``service.py``.
"""
