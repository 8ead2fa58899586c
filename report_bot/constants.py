from __future__ import annotations

MONTH_NAMES = [
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
]

REPORT_DISPLAY = {
    "visitor_list": "Visitor List Report",
    "visitor_analytics": "Visitor Analytics Report",
    "event_list": "Event List Report",
    "event_participants": "Event Participants Report",
    "donation_report": "Donation Report",
    "donation_type_report": "Donation Type Report",
    "cultural_objects": "Cultural Objects Report",
    "archive_analytics": "Archive Analysis Report",
    "financial_report": "Financial Report",
    "staff_performance": "Staff Performance Report",
    "predictive_analytics": "Predictive Analytics Report",
    "comprehensive_dashboard": "Comprehensive Museum Report",
}

DONATION_TYPE_DISPLAY = {
    "all": "All Types",
    "monetary": "Monetary",
    "artifact": "Artifact",
    "loan": "Loan Artifact",
    "donated": "Donated Artifact",
}

# Keyword sets shared by the classifier and the dialogue phases.
REPORT_VERBS = ("report", "generate", "create", "analytics", "summary")
ALL_DATA_WORDS = ("all", "complete", "everything")
THIS_MONTH_WORDS = ("month", "recent", "last")
CUSTOM_RANGE_WORDS = ("custom", "specific", "range")
GENERATE_WORDS = ("generate", "create", "yes", "ok", "start")
ALL_DATA_PHRASES = ("all available data", "for all")

ACKNOWLEDGMENT_WORDS = ("thank", "thanks", "ok", "okay", "great", "good", "perfect", "awesome")
YES_REPLIES = ("yes", "yeah", "yep", "sure", "of course")
NO_REPLIES = ("no", "nope", "not really", "that's all", "all good")

ARCHIVE_REQUEST_TEXT = "Analyze our digital archive usage and provide insights on popular content"
CULTURAL_OBJECTS_REQUEST_TEXT = (
    "Generate a comprehensive cultural objects report with collection details and artifacts"
)

# Days back / forward for the fallback window when no date can be resolved.
DEFAULT_WINDOW_DAYS_BACK = 90
DEFAULT_WINDOW_DAYS_FORWARD = 30

VISITOR_YEARS_BACK = 5

GREETING = (
    "Hi! I'm your museum report assistant. I can help you generate reports and analyze "
    "your museum data. What would you like to explore?"
)
