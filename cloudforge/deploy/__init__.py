"""Deployment backends and the plumbing that runs them off the UI loop."""
