"""Test suite for redeploy."""
