"""modules/scoring — journey score, arc model and arc contribution."""
