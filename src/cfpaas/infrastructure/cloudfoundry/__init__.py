"""Cloud Foundry client, session and client cache."""
