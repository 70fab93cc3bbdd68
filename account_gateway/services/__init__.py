"""Business services for the account gateway."""
