"""Background workers driving periodic refreshes."""
