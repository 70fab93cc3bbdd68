"""HTTP routers for the account gateway."""
