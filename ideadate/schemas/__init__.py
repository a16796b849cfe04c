"""ideadate/schemas — plan, profile and suggestion types plus the parse boundary."""
