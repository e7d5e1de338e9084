"""Web API for stored monitor captures."""
