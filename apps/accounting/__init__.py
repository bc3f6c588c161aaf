"""Cash-basis accounting reports."""
