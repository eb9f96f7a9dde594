"""
TenderDesk - Tender discovery engine and terminal dashboard.

Lists, filters and pages tenders from a remote source, with saved/urgent
view modes, summary statistics and a locally persisted bookmark set.
"""

__version__ = "0.1.0"
__app_name__ = "tenderdesk"
