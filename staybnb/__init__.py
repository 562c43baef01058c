"""StayBnB: short-term rental marketplace API."""
