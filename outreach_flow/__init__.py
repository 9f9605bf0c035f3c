"""Outreach Flow: campaign workflow engine and LinkedIn outreach scheduler."""
